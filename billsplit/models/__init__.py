from ..extensions import db

from .user import User
from .utility_provider import UtilityProvider, UTILITY_CATEGORIES
from .tenant import Tenant
from .consolidated_bill import ConsolidatedBill, BillCategory

__all__ = [
    "db",
    "User",
    "UtilityProvider",
    "UTILITY_CATEGORIES",
    "Tenant",
    "ConsolidatedBill",
    "BillCategory",
]
