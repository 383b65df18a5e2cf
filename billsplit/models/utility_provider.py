from datetime import datetime

from ..extensions import db

UTILITY_CATEGORIES = ("Water", "Gas", "Electricity", "Internet", "Other")


class UtilityProvider(db.Model):
    __tablename__ = "utility_providers"
    __table_args__ = (db.UniqueConstraint("user_id", "name", name="uq_provider_user_name"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(20), nullable=False)  # one of UTILITY_CATEGORIES

    # Optional contact info
    email = db.Column(db.String(255), nullable=True)
    website = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<UtilityProvider {self.id}: {self.name} ({self.category})>"

    def serialize(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "category": self.category,
            "email": self.email,
            "website": self.website,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
