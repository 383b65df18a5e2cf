# billsplit/security.py
from functools import wraps

from flask import g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from .errors import AuthenticationError, NotFoundError
from .extensions import db
from .models import User


def login_required(fn):
    """Usage: @login_required, then `current_user()` inside the view."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        identity = get_jwt_identity()
        user = db.session.get(User, int(identity)) if str(identity).isdigit() else None
        if user is None:
            raise AuthenticationError("Unknown user", reason="INVALID_CREDENTIALS")
        g.current_user = user
        return fn(*args, **kwargs)
    return wrapper


def current_user():
    return g.current_user


def get_owned_or_404(model, record_id, user, entity=None):
    """Fetch a row that belongs to `user`; anything else is reported as missing."""
    obj = model.query.filter_by(id=record_id, user_id=user.id).first()
    if obj is None:
        raise NotFoundError(entity or model.__name__, entity_id=record_id)
    return obj
