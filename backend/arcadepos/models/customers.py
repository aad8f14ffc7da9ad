from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data for tracking purchases and visits.

    Denormalized aggregates are updated when a sale is paid.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Denormalized aggregates (updated when sales are paid)
    total_spent_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    total_visits = db.Column(db.Integer, nullable=False, default=0)
    last_visit_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "is_active": self.is_active,
            "total_spent_usd_cents": self.total_spent_usd_cents,
            "total_visits": self.total_visits,
            "last_visit_at": to_utc_z(self.last_visit_at),
            "created_at": to_utc_z(self.created_at),
        }
