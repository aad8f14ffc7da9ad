from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

SEQUENCE_SESSION = "SESSION"
SEQUENCE_INVOICE = "INVOICE"
SEQUENCE_KINDS = (SEQUENCE_SESSION, SEQUENCE_INVOICE)


class DocumentSequence(db.Model):
    """
    Atomic per-day counters for session and invoice numbers.

    One row per (kind, day); next_number is bumped with a single UPDATE so
    concurrent writers never read the same value.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("sequence_type", "sequence_date", name="uq_doc_sequences_type_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sequence_type = db.Column(db.String(32), nullable=False, index=True)
    sequence_date = db.Column(db.Date, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sequence_type": self.sequence_type,
            "sequence_date": self.sequence_date.isoformat(),
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
