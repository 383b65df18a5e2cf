from datetime import datetime
from decimal import Decimal

from ..extensions import db


class ConsolidatedBill(db.Model):
    """One month of utility charges, billed to (at most) one tenant."""

    __tablename__ = "consolidated_bills"
    __table_args__ = (
        db.UniqueConstraint("user_id", "year", "month", "tenant_id", name="uq_bill_user_month_tenant"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True, index=True)

    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)  # 1..12

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    # Status tracking
    paid = db.Column(db.Boolean, nullable=False, default=False, index=True)
    date_sent = db.Column(db.DateTime, nullable=True)
    date_paid = db.Column(db.DateTime, nullable=True)
    payment_message_id = db.Column(db.String(255), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    categories = db.relationship(
        "BillCategory",
        backref="bill",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="BillCategory.id",
    )

    def __repr__(self):
        return f"<ConsolidatedBill {self.id}: {self.month}/{self.year} tenant={self.tenant_id} ${self.total_amount}>"

    @property
    def period_key(self):
        return (self.year, self.month)

    @property
    def categories_by_name(self):
        return {item.category: item for item in self.categories}

    def recalculate_total(self):
        """Keep total_amount equal to the sum of the line items."""
        self.total_amount = sum((Decimal(item.amount or 0) for item in self.categories), Decimal("0.00"))
        return self.total_amount

    def mark_paid(self, payment_message_id=None, payment_date=None):
        self.paid = True
        self.date_paid = payment_date or datetime.utcnow()
        if payment_message_id:
            self.payment_message_id = payment_message_id

    def mark_unpaid(self):
        self.paid = False
        self.date_paid = None
        self.payment_message_id = None

    def serialize(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "tenant_id": self.tenant_id,
            "tenant_name": self.tenant.name if self.tenant else None,
            "year": self.year,
            "month": self.month,
            "categories": {item.category: item.serialize() for item in self.categories},
            "total_amount": float(self.total_amount or 0),
            "paid": bool(self.paid),
            "date_sent": self.date_sent.isoformat() if self.date_sent else None,
            "date_paid": self.date_paid.isoformat() if self.date_paid else None,
            "payment_message_id": self.payment_message_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class BillCategory(db.Model):
    """Per-category line item of a consolidated bill."""

    __tablename__ = "bill_categories"
    __table_args__ = (db.UniqueConstraint("bill_id", "category", name="uq_bill_category"),)

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("consolidated_bills.id"), nullable=False, index=True)

    category = db.Column(db.String(20), nullable=False)
    provider_id = db.Column(db.Integer, db.ForeignKey("utility_providers.id", ondelete="SET NULL"), nullable=True)
    provider_name = db.Column(db.String(255), nullable=False)
    gmail_message_id = db.Column(db.Text, nullable=True)  # comma separated when several emails were summed
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    def __repr__(self):
        return f"<BillCategory {self.category}: {self.provider_name} ${self.amount}>"

    def serialize(self):
        return {
            "provider_id": self.provider_id,
            "provider_name": self.provider_name,
            "gmail_message_id": self.gmail_message_id,
            "amount": float(self.amount or 0),
        }
