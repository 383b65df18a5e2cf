# routes/auth.py
import hmac
from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import create_access_token

from ..errors import AuthenticationError, ValidationError
from ..extensions import db
from ..models import User
from ..security import current_user, login_required
from ..utils.validation import validate_email

auth_bp = Blueprint("auth", __name__)


def _check_bridge_key():
    expected = current_app.config.get("OAUTH_BRIDGE_KEY")
    if not expected:
        return
    supplied = request.headers.get("X-Auth-Bridge-Key", "")
    if not hmac.compare_digest(supplied, expected):
        raise AuthenticationError("Invalid session bridge key", reason="INVALID_CREDENTIALS")


def _parse_expiry(value):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("access_token_expires_at must be epoch seconds", field="access_token_expires_at")


@auth_bp.post("/auth/session")
def open_session():
    """Exchange a completed OAuth sign-in for an API token.

    The OAuth front end posts the profile and the mail access token it was
    granted; the landlord row is created on first sign-in.
    """
    _check_bridge_key()
    data = request.get_json(silent=True) or {}

    account_id = str(data.get("provider_account_id") or "").strip()
    if not account_id:
        raise ValidationError("provider_account_id is required", field="provider_account_id")
    email = (data.get("email") or "").strip()
    if not validate_email(email):
        raise ValidationError("Invalid email format", field="email", value=email)

    user = User.query.filter_by(provider_account_id=account_id).first()
    created = user is None
    if created:
        user = User(provider_account_id=account_id, email=email)
        db.session.add(user)

    user.email = email
    user.name = (data.get("name") or "").strip() or user.name
    if data.get("access_token"):
        user.access_token = data["access_token"]
        user.access_token_expires_at = _parse_expiry(data.get("access_token_expires_at"))
    user.last_login = datetime.utcnow()
    db.session.commit()

    current_app.logger.info("Session opened for user %s (new=%s)", user.id, created)
    token = create_access_token(identity=str(user.id))
    return jsonify({"access_token": token, "user": user.serialize()}), 201 if created else 200


@auth_bp.get("/auth/me")
@login_required
def me():
    return jsonify(current_user().serialize(include_sensitive=True)), 200


@auth_bp.put("/auth/token")
@login_required
def update_mail_token():
    """Store a refreshed mail API token for the signed-in landlord."""
    data = request.get_json(silent=True) or {}
    token = data.get("access_token")
    if not token:
        raise ValidationError("access_token is required", field="access_token")
    user = current_user()
    user.access_token = token
    user.access_token_expires_at = _parse_expiry(data.get("access_token_expires_at"))
    db.session.commit()
    return jsonify(user.serialize()), 200
