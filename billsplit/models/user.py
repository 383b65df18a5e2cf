import time
from datetime import datetime

from ..extensions import db


class User(db.Model):
    """Landlord account. Identity comes from the OAuth provider."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    provider_account_id = db.Column(db.String(255), unique=True, nullable=False, index=True)

    name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=False, index=True)

    # Mail API authorization issued with the OAuth sign-in
    access_token = db.Column(db.Text, nullable=True)
    access_token_expires_at = db.Column(db.Integer, nullable=True)  # epoch seconds

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = db.Column(db.DateTime, nullable=True)

    providers = db.relationship("UtilityProvider", backref="user", lazy=True, cascade="all, delete-orphan")
    tenants = db.relationship("Tenant", backref="user", lazy=True, cascade="all, delete-orphan")
    bills = db.relationship("ConsolidatedBill", backref="user", lazy=True, cascade="all, delete-orphan")

    def is_token_expired(self, now=None) -> bool:
        """True when there is no mail token or it has already expired."""
        if not self.access_token or not self.access_token_expires_at:
            return True
        now = int(now if now is not None else time.time())
        return self.access_token_expires_at < now

    def serialize(self, include_sensitive=False):
        data = {
            "id": self.id,
            "provider_account_id": self.provider_account_id,
            "name": self.name,
            "email": self.email,
            "has_mail_access": not self.is_token_expired(),
            "access_token_expires_at": self.access_token_expires_at,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None,
        }
        if include_sensitive:
            data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
