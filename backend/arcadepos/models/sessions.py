from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .fields import AppliedDiscountField, MoneyField

SESSION_STATUS_ACTIVE = "ACTIVE"
SESSION_STATUS_COMPLETED = "COMPLETED"
SESSION_STATUS_CANCELLED = "CANCELLED"

SESSION_PAYMENT_UNPAID = "UNPAID"
SESSION_PAYMENT_PARTIAL = "PARTIAL"
SESSION_PAYMENT_PAID = "PAID"


class GamingSession(db.Model):
    """
    A billed interval of PC usage.

    LIFECYCLE: ACTIVE -> COMPLETED (end, or forced by payment)
               ACTIVE -> CANCELLED (abort, nothing charged)

    The session owns its cost fields. Its line item inside the linked sale
    is only ever written from these fields by the sale service.

    The partial unique index allows at most one ACTIVE session per PC, which
    is the store-level backstop against two concurrent starts.
    """
    __tablename__ = "gaming_sessions"
    __table_args__ = (
        db.UniqueConstraint("session_number", name="uq_gaming_sessions_number"),
        db.Index(
            "uq_gaming_sessions_active_pc",
            "pc_id",
            unique=True,
            sqlite_where=db.text("status = 'ACTIVE'"),
            postgresql_where=db.text("status = 'ACTIVE'"),
        ),
        db.Index("ix_gaming_sessions_status_start", "status", "start_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_number = db.Column(db.String(32), nullable=False)

    pc_id = db.Column(db.Integer, db.ForeignKey("pcs.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(128), nullable=True)

    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    duration_minutes = db.Column(db.Integer, nullable=True)

    hourly_rate_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    hourly_rate_lbp = db.Column(db.Integer, nullable=False, default=0)
    hourly_rate = MoneyField("hourly_rate")

    # Applied discount snapshot
    discount_id = db.Column(db.Integer, nullable=True)
    discount_name = db.Column(db.String(100), nullable=True)
    discount_bps = db.Column(db.Integer, nullable=True)
    discount_amount_usd_cents = db.Column(db.Integer, nullable=True)
    discount_amount_lbp = db.Column(db.Integer, nullable=True)
    discount = AppliedDiscountField("discount")

    total_cost_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_lbp = db.Column(db.Integer, nullable=False, default=0)
    total_cost = MoneyField("total_cost")

    final_amount_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    final_amount_lbp = db.Column(db.Integer, nullable=False, default=0)
    final_amount = MoneyField("final_amount")

    status = db.Column(db.String(16), nullable=False, default=SESSION_STATUS_ACTIVE, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default=SESSION_PAYMENT_UNPAID, index=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    started_by_user_id = db.Column(db.Integer, nullable=False)
    ended_by_user_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    pc = db.relationship("PC", backref=db.backref("sessions", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("gaming_sessions", lazy=True))
    sale = db.relationship("Sale", backref=db.backref("sessions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_active(self) -> bool:
        return self.status == SESSION_STATUS_ACTIVE

    def to_dict(self) -> dict:
        discount = self.discount
        return {
            "id": self.id,
            "session_number": self.session_number,
            "pc_id": self.pc_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time),
            "duration_minutes": self.duration_minutes,
            "hourly_rate": self.hourly_rate.to_dict(),
            "discount": discount.to_dict() if discount else None,
            "total_cost": self.total_cost.to_dict(),
            "final_amount": self.final_amount.to_dict(),
            "status": self.status,
            "payment_status": self.payment_status,
            "sale_id": self.sale_id,
            "started_by_user_id": self.started_by_user_id,
            "ended_by_user_id": self.ended_by_user_id,
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
