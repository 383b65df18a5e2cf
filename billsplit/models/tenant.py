from datetime import datetime
from decimal import Decimal

from ..extensions import db
from .utility_provider import UTILITY_CATEGORIES


class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    secondary_name = db.Column(db.String(100), nullable=True)  # e.g. partner who also pays

    # Percentage of each utility category, {"Water": 50, "Gas": 25, ...}
    shares = db.Column(db.JSON, nullable=False, default=dict)

    # Carried-forward unpaid amount, never negative
    outstanding_balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bills = db.relationship("ConsolidatedBill", backref="tenant", lazy=True)

    def __repr__(self):
        return f"<Tenant {self.id}: {self.name}>"

    @property
    def payer_names(self):
        """Names a payment email may come from, primary first."""
        return [n for n in (self.name, self.secondary_name) if n]

    def share_for(self, category) -> Decimal:
        return Decimal(str((self.shares or {}).get(category) or 0))

    @property
    def balance(self) -> Decimal:
        return Decimal(self.outstanding_balance or 0)

    def serialize(self):
        shares = self.shares or {}
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "secondary_name": self.secondary_name,
            "shares": {c: shares.get(c, 0) for c in UTILITY_CATEGORIES},
            "outstanding_balance": float(self.balance),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
