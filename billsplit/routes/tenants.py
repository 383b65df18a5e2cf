from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import or_

from ..errors import ValidationError
from ..extensions import db
from ..models import Tenant
from ..security import current_user, get_owned_or_404, login_required
from ..utils.billing import round_to_currency
from ..utils.reconciliation import reconcile_tenant_payment, unpaid_bills_for
from ..utils.validation import parse_amount, validate_tenant_payload

tenants_bp = Blueprint("tenants", __name__)


def _parse_date_arg(data, key):
    value = data.get(key)
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be in YYYY-MM-DD format", field=key, value=value)


@tenants_bp.get("/tenants")
@login_required
def list_tenants():
    q = (request.args.get("q") or "").strip()
    query = Tenant.query.filter_by(user_id=current_user().id)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Tenant.name.ilike(like), Tenant.email.ilike(like), Tenant.secondary_name.ilike(like)))
    tenants = query.order_by(Tenant.name).all()
    return jsonify({"total": len(tenants), "tenants": [t.serialize() for t in tenants]}), 200


@tenants_bp.post("/tenants")
@login_required
def create_tenant():
    user = current_user()
    data = validate_tenant_payload(request.get_json(silent=True) or {})
    tenant = Tenant(user_id=user.id, outstanding_balance=round_to_currency(0), **data)
    db.session.add(tenant)
    db.session.commit()
    current_app.logger.info("Created tenant %s for user %s", tenant.id, user.id)
    return jsonify(tenant.serialize()), 201


@tenants_bp.get("/tenants/<int:tenant_id>")
@login_required
def get_tenant(tenant_id):
    tenant = get_owned_or_404(Tenant, tenant_id, current_user())
    data = tenant.serialize()
    data["unpaid_bill_ids"] = [b.id for b in unpaid_bills_for(tenant)]
    return jsonify(data), 200


@tenants_bp.route("/tenants/<int:tenant_id>", methods=["PUT", "PATCH"])
@login_required
def update_tenant(tenant_id):
    tenant = get_owned_or_404(Tenant, tenant_id, current_user())
    data = validate_tenant_payload(request.get_json(silent=True) or {}, partial=True)
    for field, value in data.items():
        setattr(tenant, field, value)
    db.session.commit()
    return jsonify(tenant.serialize()), 200


@tenants_bp.delete("/tenants/<int:tenant_id>")
@login_required
def delete_tenant(tenant_id):
    tenant = get_owned_or_404(Tenant, tenant_id, current_user())
    db.session.delete(tenant)
    db.session.commit()
    return jsonify({"ok": True, "deleted_id": tenant_id}), 200


@tenants_bp.put("/tenants/<int:tenant_id>/balance")
@login_required
def update_balance(tenant_id):
    """Overwrite the tenant's carried-forward balance"""
    tenant = get_owned_or_404(Tenant, tenant_id, current_user())
    data = request.get_json(silent=True) or {}
    amount = parse_amount(data.get("outstanding_balance", data.get("balance")), field="outstanding_balance")
    tenant.outstanding_balance = round_to_currency(amount)
    db.session.commit()
    current_app.logger.info("Tenant %s balance set to %s", tenant.id, tenant.outstanding_balance)
    return jsonify(tenant.serialize()), 200


@tenants_bp.post("/tenants/<int:tenant_id>/reconcile")
@login_required
def reconcile(tenant_id):
    """Search the mailbox for the tenant's payment and settle the matching bill"""
    user = current_user()
    tenant = get_owned_or_404(Tenant, tenant_id, user)
    data = request.get_json(silent=True) or {}
    result = reconcile_tenant_payment(
        user,
        tenant,
        start=_parse_date_arg(data, "start"),
        end=_parse_date_arg(data, "end"),
    )
    return jsonify(result.serialize()), 200
