from datetime import datetime
from decimal import Decimal

from flask import Blueprint, current_app, jsonify

from ..errors import AppError, get_error_message
from ..models import ConsolidatedBill, Tenant, UtilityProvider
from ..security import current_user, login_required
from ..utils.billing import previous_month, round_to_currency
from .bills import build_current_bill, serialize_with_share, summarize_bills

dashboard_bp = Blueprint("dashboard", __name__)


@dashboard_bp.get("/dashboard")
@login_required
def dashboard():
    """Landlord overview: counts, balances, last month's bills and this month's inbox total"""
    user = current_user()
    today = datetime.utcnow().date()

    tenants = Tenant.query.filter_by(user_id=user.id).all()
    outstanding = sum((t.balance for t in tenants), Decimal("0"))

    last_year, last_month = previous_month(today)
    last_bills = (
        ConsolidatedBill.query.filter_by(user_id=user.id, year=last_year, month=last_month)
        .order_by(ConsolidatedBill.id)
        .all()
    )

    payload = {
        "provider_count": UtilityProvider.query.filter_by(user_id=user.id).count(),
        "tenant_count": len(tenants),
        "total_outstanding": float(round_to_currency(outstanding)),
        "last_month": {
            "year": last_year,
            "month": last_month,
            "bills": [serialize_with_share(b) for b in last_bills],
            "summary": summarize_bills(last_bills),
        },
        "current_month": None,
        "inbox_error": None,
    }

    try:
        bill, _ = build_current_bill(user, today.year, today.month)
        payload["current_month"] = serialize_with_share(bill)
    except AppError as exc:
        # dashboard still renders without the mailbox
        current_app.logger.warning("Dashboard inbox fetch failed for user %s: %s", user.id, exc.message)
        payload["inbox_error"] = get_error_message(exc)

    return jsonify(payload), 200
