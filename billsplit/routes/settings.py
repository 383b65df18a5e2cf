from flask import Blueprint, jsonify, request

from ..errors import ValidationError
from ..extensions import db
from ..security import current_user, login_required
from ..utils.validation import validate_email

settings_bp = Blueprint("settings", __name__)


@settings_bp.get("/settings")
@login_required
def get_settings():
    return jsonify(current_user().serialize()), 200


@settings_bp.patch("/settings")
@login_required
def update_settings():
    user = current_user()
    data = request.get_json(silent=True) or {}

    if "name" in data:
        name = (data.get("name") or "").strip()
        if len(name) > 100:
            raise ValidationError("Name must be at most 100 characters", field="name")
        user.name = name or None
    if "email" in data:
        email = (data.get("email") or "").strip()
        if not validate_email(email):
            raise ValidationError("Please enter a valid email address", field="email", value=email)
        user.email = email

    db.session.commit()
    return jsonify(user.serialize()), 200
