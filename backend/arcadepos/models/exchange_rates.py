from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ExchangeRate(db.Model):
    """
    History of the USD to LBP rate (whole pounds per dollar).

    Rows are append-only; the newest effective row is the current rate.
    """
    __tablename__ = "exchange_rates"
    __table_args__ = (
        db.CheckConstraint("rate > 0", name="ck_exchange_rates_rate_positive"),
        db.Index("ix_exchange_rates_effective_from", "effective_from"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    rate = db.Column(db.Integer, nullable=False)
    previous_rate = db.Column(db.Integer, nullable=True)
    updated_by_user_id = db.Column(db.Integer, nullable=False)
    effective_from = db.Column(db.DateTime(timezone=True), nullable=False)
    notes = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rate": self.rate,
            "previous_rate": self.previous_rate,
            "updated_by_user_id": self.updated_by_user_id,
            "effective_from": to_utc_z(self.effective_from),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
