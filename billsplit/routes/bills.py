from datetime import datetime
from decimal import Decimal

from flask import Blueprint, current_app, jsonify, request

from ..errors import BusinessLogicError, ValidationError
from ..extensions import db
from ..models import BillCategory, ConsolidatedBill, Tenant, UtilityProvider
from ..security import current_user, get_owned_or_404, login_required
from ..utils.billing import construct_email, get_tenant_shares, initialize_consolidated_bill, round_to_currency
from ..utils.inbox import fetch_user_bills, send_email
from ..utils.validation import parse_year_month, validate_bill_payload

bills_bp = Blueprint("bills", __name__)


# ============= HELPERS =============

def _requested_period(value=None):
    """Parse YYYY-MM, defaulting to the current month."""
    if value:
        return parse_year_month(value)
    today = datetime.utcnow().date()
    return today.year, today.month


def _owned_tenant(user, tenant_id):
    if tenant_id is None:
        return None
    return get_owned_or_404(Tenant, tenant_id, user)


def _ensure_no_duplicate(user, year, month, tenant_id, exclude_id=None):
    query = ConsolidatedBill.query.filter_by(user_id=user.id, year=year, month=month, tenant_id=tenant_id)
    if exclude_id is not None:
        query = query.filter(ConsolidatedBill.id != exclude_id)
    if query.first():
        raise BusinessLogicError(
            f"Consolidated bill for {month}/{year} already exists.",
            operation="create" if exclude_id is None else "update",
            entity="ConsolidatedBill",
        )


def _apply_categories(bill, items):
    """Replace the bill's line items, updating rows in place by category."""
    existing = bill.categories_by_name
    for category, detail in items.items():
        item = existing.pop(category, None)
        if item is None:
            item = BillCategory(category=category)
            bill.categories.append(item)
        item.provider_id = detail["provider_id"]
        item.provider_name = detail["provider_name"]
        item.gmail_message_id = detail["gmail_message_id"]
        item.amount = round_to_currency(detail["amount"])
    for leftover in existing.values():
        bill.categories.remove(leftover)
    bill.recalculate_total()


def serialize_with_share(bill, tenant=None):
    data = bill.serialize()
    tenant = tenant or bill.tenant
    if tenant is not None:
        shares, total = get_tenant_shares(bill, tenant)
        data["tenant_shares"] = {k: float(round_to_currency(v)) for k, v in shares.items()}
        data["tenant_total"] = float(round_to_currency(total))
    return data


def _filtered_bills(user, args):
    query = ConsolidatedBill.query.filter_by(user_id=user.id)

    if args.get("month"):
        year, month = parse_year_month(args.get("month"))
        query = query.filter_by(year=year, month=month)
    elif args.get("year"):
        year = args.get("year", type=int)
        if year is None:
            raise ValidationError("year must be an integer", field="year")
        query = query.filter_by(year=year)

    status = (args.get("status") or "all").lower()
    if status == "paid":
        query = query.filter(ConsolidatedBill.paid.is_(True))
    elif status == "unpaid":
        query = query.filter(ConsolidatedBill.paid.is_(False))
    elif status != "all":
        raise ValidationError("status must be one of all, paid, unpaid", field="status", value=status)

    tenant_id = args.get("tenant_id", type=int)
    if tenant_id:
        query = query.filter_by(tenant_id=tenant_id)

    return query.order_by(ConsolidatedBill.year.desc(), ConsolidatedBill.month.desc(), ConsolidatedBill.id).all()


def summarize_bills(bills):
    """Totals over the tenant shares of the given bills."""
    billed = paid = Decimal("0")
    sent = 0
    for bill in bills:
        if bill.date_sent:
            sent += 1
        if bill.tenant is None:
            continue
        _, share = get_tenant_shares(bill, bill.tenant)
        billed += share
        if bill.paid:
            paid += share
    return {
        "total_bills": len(bills),
        "total_bills_sent": sent,
        "total_amount_billed": float(round_to_currency(billed)),
        "total_paid": float(round_to_currency(paid)),
        "total_unpaid": float(round_to_currency(billed - paid)),
        "paid_count": sum(1 for b in bills if b.paid),
        "unpaid_count": sum(1 for b in bills if not b.paid),
    }


def build_current_bill(user, year, month):
    providers = UtilityProvider.query.filter_by(user_id=user.id).order_by(UtilityProvider.name).all()
    fetched = fetch_user_bills(user, providers, month, year)
    bill = initialize_consolidated_bill(user.id, fetched, datetime(year, month, 1).date())
    return bill, fetched


# ============= CRUD =============

@bills_bp.get("/bills")
@login_required
def list_bills():
    """Consolidated bills, newest first, filterable by month/year/status/tenant"""
    bills = _filtered_bills(current_user(), request.args)
    return jsonify({"total": len(bills), "bills": [serialize_with_share(b) for b in bills]}), 200


@bills_bp.get("/bills/history")
@login_required
def bills_history():
    bills = _filtered_bills(current_user(), request.args)
    months = sorted({f"{b.year:04d}-{b.month:02d}" for b in bills}, reverse=True)
    return jsonify(
        {
            "summary": summarize_bills(bills),
            "months": months,
            "bills": [serialize_with_share(b) for b in bills],
        }
    ), 200


@bills_bp.post("/bills")
@login_required
def create_bill():
    user = current_user()
    data = validate_bill_payload(request.get_json(silent=True) or {})
    tenant = _owned_tenant(user, data.get("tenant_id"))
    _ensure_no_duplicate(user, data["year"], data["month"], tenant.id if tenant else None)

    bill = ConsolidatedBill(
        user_id=user.id,
        year=data["year"],
        month=data["month"],
        tenant_id=tenant.id if tenant else None,
        paid=data.get("paid", False),
    )
    _apply_categories(bill, data["categories"])
    if bill.paid:
        bill.date_paid = datetime.utcnow()
    db.session.add(bill)
    db.session.commit()
    current_app.logger.info("Created consolidated bill %s for %s/%s", bill.id, bill.month, bill.year)
    return jsonify(serialize_with_share(bill)), 201


@bills_bp.get("/bills/<int:bill_id>")
@login_required
def get_bill(bill_id):
    bill = get_owned_or_404(ConsolidatedBill, bill_id, current_user(), "Bill")
    return jsonify(serialize_with_share(bill)), 200


@bills_bp.route("/bills/<int:bill_id>", methods=["PUT", "PATCH"])
@login_required
def update_bill(bill_id):
    user = current_user()
    bill = get_owned_or_404(ConsolidatedBill, bill_id, user, "Bill")
    data = validate_bill_payload(request.get_json(silent=True) or {}, partial=True)

    year, month = data.get("year", bill.year), data.get("month", bill.month)
    tenant_id = bill.tenant_id
    if "tenant_id" in data:
        tenant = _owned_tenant(user, data["tenant_id"])
        tenant_id = tenant.id if tenant else None
    _ensure_no_duplicate(user, year, month, tenant_id, exclude_id=bill.id)

    bill.year, bill.month, bill.tenant_id = year, month, tenant_id
    if "categories" in data:
        _apply_categories(bill, data["categories"])
    if "paid" in data and data["paid"] != bill.paid:
        if data["paid"]:
            bill.mark_paid()
        else:
            bill.mark_unpaid()
    db.session.commit()
    return jsonify(serialize_with_share(bill)), 200


@bills_bp.delete("/bills/<int:bill_id>")
@login_required
def delete_bill(bill_id):
    bill = get_owned_or_404(ConsolidatedBill, bill_id, current_user(), "Bill")
    db.session.delete(bill)
    db.session.commit()
    return jsonify({"ok": True, "deleted_id": bill_id}), 200


@bills_bp.post("/bills/<int:bill_id>/mark-paid")
@login_required
def mark_bill_paid(bill_id):
    bill = get_owned_or_404(ConsolidatedBill, bill_id, current_user(), "Bill")
    data = request.get_json(silent=True) or {}
    bill.mark_paid(payment_message_id=data.get("payment_message_id"))
    db.session.commit()
    current_app.logger.info("Bill %s marked paid manually", bill.id)
    return jsonify(serialize_with_share(bill)), 200


# ============= MAILBOX =============

@bills_bp.get("/bills/current")
@login_required
def current_month_bill():
    """Consolidate the month's provider emails without saving anything"""
    user = current_user()
    year, month = _requested_period(request.args.get("month"))
    bill, fetched = build_current_bill(user, year, month)
    tenant = _owned_tenant(user, request.args.get("tenant_id", type=int))
    data = serialize_with_share(bill, tenant)
    data["provider_bills"] = [b.serialize() for b in fetched]
    return jsonify(data), 200


@bills_bp.get("/bills/<int:bill_id>/email-preview")
@login_required
def email_preview(bill_id):
    user = current_user()
    bill = get_owned_or_404(ConsolidatedBill, bill_id, user, "Bill")
    tenant = _owned_tenant(user, request.args.get("tenant_id", type=int)) or bill.tenant
    if tenant is None:
        raise ValidationError("Select a tenant to preview the email", field="tenant_id")
    content = construct_email(tenant, bill)
    return jsonify({"to": tenant.email, "subject": content.subject, "body": content.body}), 200


@bills_bp.post("/bills/send")
@login_required
def send_bill():
    """Assign the month's consolidated bill to a tenant and email it"""
    user = current_user()
    data = request.get_json(silent=True) or {}
    tenant_id = data.get("tenant_id")
    if tenant_id is None:
        raise ValidationError("tenant_id is required", field="tenant_id")
    tenant = _owned_tenant(user, tenant_id)

    if data.get("bill_id"):
        bill = get_owned_or_404(ConsolidatedBill, data["bill_id"], user, "Bill")
        if bill.tenant_id not in (None, tenant.id):
            raise BusinessLogicError(
                "Bill is already assigned to another tenant.", operation="send", entity="ConsolidatedBill",
                entity_id=bill.id,
            )
        if bill.tenant_id is None:
            _ensure_no_duplicate(user, bill.year, bill.month, tenant.id, exclude_id=bill.id)
        bill.tenant_id = tenant.id
    else:
        year, month = _requested_period(data.get("month"))
        bill = ConsolidatedBill.query.filter_by(user_id=user.id, year=year, month=month, tenant_id=tenant.id).first()
        if bill is None:
            bill, _ = build_current_bill(user, year, month)
            if not bill.categories:
                raise BusinessLogicError(
                    "No utility bills found for this month.", operation="send", entity="ConsolidatedBill"
                )
            bill.tenant_id = tenant.id
            db.session.add(bill)
            db.session.flush()

    content = construct_email(tenant, bill)
    try:
        message_id = send_email(user, content, tenant)
    except Exception:
        db.session.rollback()
        raise
    bill.date_sent = datetime.utcnow()
    db.session.commit()
    current_app.logger.info("Bill %s sent to tenant %s", bill.id, tenant.id)

    data = serialize_with_share(bill, tenant)
    data["message_id"] = message_id
    return jsonify(data), 200
