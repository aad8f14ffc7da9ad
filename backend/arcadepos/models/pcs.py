from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .fields import MoneyField

PC_STATUS_AVAILABLE = "AVAILABLE"
PC_STATUS_OCCUPIED = "OCCUPIED"
PC_STATUS_MAINTENANCE = "MAINTENANCE"
PC_STATUS_RESERVED = "RESERVED"

PC_STATUSES = (PC_STATUS_AVAILABLE, PC_STATUS_OCCUPIED, PC_STATUS_MAINTENANCE, PC_STATUS_RESERVED)


class PC(db.Model):
    """
    Gaming station billed by the hour.

    The hourly rate is snapshotted into each session at start, so later
    rate changes never affect running or finished sessions.
    version_id makes two concurrent "occupy" writes collide instead of
    silently overwriting each other.
    """
    __tablename__ = "pcs"
    __table_args__ = (
        db.UniqueConstraint("pc_number", name="uq_pcs_pc_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pc_number = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PC_STATUS_AVAILABLE, index=True)

    hourly_rate_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    hourly_rate_lbp = db.Column(db.Integer, nullable=False, default=0)
    hourly_rate = MoneyField("hourly_rate")

    location = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pc_number": self.pc_number,
            "name": self.name,
            "status": self.status,
            "hourly_rate": self.hourly_rate.to_dict(),
            "location": self.location,
            "notes": self.notes,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
