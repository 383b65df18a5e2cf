import re
from decimal import Decimal, InvalidOperation
from urllib.parse import urlparse

from ..errors import ValidationError
from ..models import UTILITY_CATEGORIES

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})$")

NAME_MAX_LENGTH = 100
MIN_YEAR = 2000
MAX_YEAR = 2100


def validate_email(email) -> bool:
    """Validate email format"""
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email.strip()))


def validate_url(url) -> bool:
    if not isinstance(url, str):
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_amount(value, field="amount", allow_negative=False) -> Decimal:
    """Parse 12.5, "12.50", "$1,234.56" into a Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationError("Amount is required", field=field, value=value)
    try:
        amount = Decimal(str(value).replace("$", "").replace(",", "").strip())
    except InvalidOperation:
        raise ValidationError("Amount must be a valid number", field=field, value=value)
    if not amount.is_finite():
        raise ValidationError("Amount must be a valid number", field=field, value=value)
    if amount < 0 and not allow_negative:
        raise ValidationError("Amount must be non-negative", field=field, value=value)
    return amount


def parse_year_month(value, field="month"):
    """Parse "YYYY-MM" into (year, month)."""
    match = MONTH_PATTERN.match(str(value or "").strip())
    if not match:
        raise ValidationError("Invalid month format. Use YYYY-MM", field=field, value=value)
    year, month = int(match.group(1)), int(match.group(2))
    validate_period(year, month)
    return year, month


def validate_period(year, month):
    try:
        year, month = int(year), int(month)
    except (TypeError, ValueError):
        raise ValidationError("Year and month must be integers", field="year", value=year)
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}", field="year", value=year)
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12", field="month", value=month)
    return year, month


def _clean_name(value, field, required=True):
    name = (value or "").strip() if isinstance(value, str) or value is None else None
    if name is None:
        raise ValidationError("Must be a string", field=field, value=value)
    if not name:
        if required:
            raise ValidationError("Name is required", field=field)
        return None
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError("Name is too long", field=field, value=value)
    return name


def validate_category(category, field="category"):
    if category not in UTILITY_CATEGORIES:
        raise ValidationError(
            f"Category must be one of {', '.join(UTILITY_CATEGORIES)}", field=field, value=category
        )
    return category


def validate_provider_payload(data, partial=False):
    """Return the cleaned provider fields; `partial` skips required checks."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid payload")
    cleaned = {}

    if not partial or "name" in data:
        cleaned["name"] = _clean_name(data.get("name"), "name")
    if not partial or "category" in data:
        cleaned["category"] = validate_category(data.get("category"))

    if data.get("email"):
        if not validate_email(data["email"]):
            raise ValidationError("Invalid email format", field="email", value=data["email"])
        cleaned["email"] = data["email"].strip()
    elif "email" in data:
        cleaned["email"] = None

    if data.get("website"):
        if not validate_url(data["website"]):
            raise ValidationError("Invalid URL format", field="website", value=data["website"])
        cleaned["website"] = data["website"].strip()
    elif "website" in data:
        cleaned["website"] = None

    return cleaned


def validate_shares(shares):
    if shares is None:
        shares = {}
    if not isinstance(shares, dict):
        raise ValidationError("Shares must be an object keyed by category", field="shares")
    cleaned = {}
    for category, value in shares.items():
        validate_category(category, field=f"shares.{category}")
        if value is None or value == "":
            value = 0
        if isinstance(value, bool):
            raise ValidationError("Share must be a number", field=f"shares.{category}", value=value)
        try:
            pct = float(value)
        except (TypeError, ValueError):
            raise ValidationError("Share must be a number", field=f"shares.{category}", value=value)
        if not 0 <= pct <= 100:
            raise ValidationError("Share must be between 0 and 100", field=f"shares.{category}", value=value)
        cleaned[category] = int(pct) if pct.is_integer() else pct
    return {c: cleaned.get(c, 0) for c in UTILITY_CATEGORIES}


def validate_tenant_payload(data, partial=False):
    if not isinstance(data, dict):
        raise ValidationError("Invalid payload")
    cleaned = {}

    if not partial or "name" in data:
        cleaned["name"] = _clean_name(data.get("name"), "name")
    if not partial or "email" in data:
        email = data.get("email")
        if not validate_email(email):
            raise ValidationError("Please enter a valid email address", field="email", value=email)
        cleaned["email"] = email.strip()
    if "secondary_name" in data:
        cleaned["secondary_name"] = _clean_name(data.get("secondary_name"), "secondary_name", required=False)
    if not partial or "shares" in data:
        cleaned["shares"] = validate_shares(data.get("shares"))

    return cleaned


def validate_bill_payload(data, partial=False):
    """Validate a consolidated bill body.

    Line items arrive as {"Water": {"provider_name": ..., "amount": ...}, ...}.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid payload")
    cleaned = {}

    if not partial or "year" in data or "month" in data:
        cleaned["year"], cleaned["month"] = validate_period(data.get("year"), data.get("month"))

    if "tenant_id" in data:
        tenant_id = data.get("tenant_id")
        if tenant_id is not None and (isinstance(tenant_id, bool) or not str(tenant_id).isdigit()):
            raise ValidationError("tenant_id must be an integer", field="tenant_id", value=tenant_id)
        cleaned["tenant_id"] = int(tenant_id) if tenant_id is not None else None

    if not partial or "categories" in data:
        categories = data.get("categories")
        if not isinstance(categories, dict) or not categories:
            raise ValidationError("At least one category is required", field="categories")
        items = {}
        for category, detail in categories.items():
            validate_category(category, field=f"categories.{category}")
            if not isinstance(detail, dict):
                raise ValidationError("Category detail must be an object", field=f"categories.{category}")
            provider_name = (detail.get("provider_name") or "").strip()
            if not provider_name:
                raise ValidationError("Provider name is required", field=f"categories.{category}.provider_name")
            provider_id = detail.get("provider_id")
            items[category] = {
                "provider_id": int(provider_id) if provider_id not in (None, "") and str(provider_id).isdigit() else None,
                "provider_name": provider_name,
                "gmail_message_id": detail.get("gmail_message_id") or None,
                "amount": parse_amount(detail.get("amount"), field=f"categories.{category}.amount"),
            }
        cleaned["categories"] = items

    if "paid" in data:
        if not isinstance(data["paid"], bool):
            raise ValidationError("paid must be a boolean", field="paid", value=data["paid"])
        cleaned["paid"] = data["paid"]

    return cleaned
