from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z

DISCOUNT_TYPE_PERCENTAGE = "PERCENTAGE"

TARGET_PRODUCT = "PRODUCT"
TARGET_CATEGORY = "CATEGORY"
TARGET_GAMING_SESSION = "GAMING_SESSION"
TARGET_SALE = "SALE"

DISCOUNT_TARGETS = (TARGET_PRODUCT, TARGET_CATEGORY, TARGET_GAMING_SESSION, TARGET_SALE)
# Targets that point at a specific record and therefore need target_id
TARGETS_WITH_ID = (TARGET_PRODUCT, TARGET_CATEGORY)


class Discount(db.Model):
    """
    Percentage discount scoped to one kind of target.

    PRODUCT / CATEGORY discounts name the product or category in target_id;
    GAMING_SESSION and SALE discounts apply to any session or sale and
    leave target_id empty.
    value_bps holds the percentage in basis points (1000 = 10%).
    """
    __tablename__ = "discounts"
    __table_args__ = (
        db.Index("ix_discounts_target", "target", "target_id"),
        db.Index("ix_discounts_window", "start_date", "end_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)

    discount_type = db.Column(db.String(32), nullable=False, default=DISCOUNT_TYPE_PERCENTAGE)
    value_bps = db.Column(db.Integer, nullable=False, default=0)

    target = db.Column(db.String(32), nullable=False)
    target_id = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def percentage(self) -> Decimal:
        return Decimal(self.value_bps or 0) / 100

    def is_valid_at(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        if self.start_date and now < self.start_date:
            return False
        if self.end_date and now > self.end_date:
            return False
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.discount_type,
            "value": float(self.percentage),
            "target": self.target,
            "target_id": self.target_id,
            "is_active": self.is_active,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
