from flask import Blueprint, current_app, jsonify, request

from ..errors import BusinessLogicError
from ..extensions import db
from ..models import UtilityProvider
from ..security import current_user, get_owned_or_404, login_required
from ..utils.validation import validate_provider_payload

providers_bp = Blueprint("providers", __name__)


def _ensure_unique_name(user, name, exclude_id=None):
    query = UtilityProvider.query.filter_by(user_id=user.id, name=name)
    if exclude_id is not None:
        query = query.filter(UtilityProvider.id != exclude_id)
    if query.first():
        raise BusinessLogicError(
            f'Utility provider "{name}" already exists.',
            operation="create" if exclude_id is None else "update",
            entity="UtilityProvider",
        )


@providers_bp.get("/providers")
@login_required
def list_providers():
    """Get the landlord's utility providers, optionally by category"""
    query = UtilityProvider.query.filter_by(user_id=current_user().id)
    category = request.args.get("category")
    if category:
        query = query.filter(UtilityProvider.category == category)
    providers = query.order_by(UtilityProvider.name).all()
    return jsonify({"total": len(providers), "providers": [p.serialize() for p in providers]}), 200


@providers_bp.post("/providers")
@login_required
def create_provider():
    user = current_user()
    data = validate_provider_payload(request.get_json(silent=True) or {})
    _ensure_unique_name(user, data["name"])

    provider = UtilityProvider(user_id=user.id, **data)
    db.session.add(provider)
    db.session.commit()
    current_app.logger.info("Created provider %s for user %s", provider.id, user.id)
    return jsonify(provider.serialize()), 201


@providers_bp.get("/providers/<int:provider_id>")
@login_required
def get_provider(provider_id):
    provider = get_owned_or_404(UtilityProvider, provider_id, current_user(), "Utility provider")
    return jsonify(provider.serialize()), 200


@providers_bp.route("/providers/<int:provider_id>", methods=["PUT", "PATCH"])
@login_required
def update_provider(provider_id):
    user = current_user()
    provider = get_owned_or_404(UtilityProvider, provider_id, user, "Utility provider")
    data = validate_provider_payload(request.get_json(silent=True) or {}, partial=True)
    if "name" in data:
        _ensure_unique_name(user, data["name"], exclude_id=provider.id)

    for field, value in data.items():
        setattr(provider, field, value)
    db.session.commit()
    return jsonify(provider.serialize()), 200


@providers_bp.delete("/providers/<int:provider_id>")
@login_required
def delete_provider(provider_id):
    provider = get_owned_or_404(UtilityProvider, provider_id, current_user(), "Utility provider")
    db.session.delete(provider)
    db.session.commit()
    return jsonify({"ok": True, "deleted_id": provider_id}), 200
