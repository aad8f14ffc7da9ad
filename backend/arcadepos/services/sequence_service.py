# Overview: Daily session/invoice numbers (YYYYMMDD-NNNN) from an atomic counter.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import DocumentSequence, GamingSession, Sale
from ..models.documents import SEQUENCE_INVOICE, SEQUENCE_KINDS, SEQUENCE_SESSION
from ..time_utils import local_today


def format_sequence_number(day: date, number: int, pad: int = 4) -> str:
    return f"{day:%Y%m%d}-{number:0{pad}d}"


def _bump_counter(kind: str, day: date) -> int | None:
    """Increment the (kind, day) counter; returns the number taken, or None if the row is missing."""
    result = db.session.execute(
        update(DocumentSequence)
        .where(
            DocumentSequence.sequence_type == kind,
            DocumentSequence.sequence_date == day,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )
    if not result.rowcount:
        return None
    db.session.flush()
    next_number = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(sequence_type=kind, sequence_date=day)
        .scalar()
    )
    return next_number - 1


def next_sequence_number(kind: str, *, day: date | None = None) -> str:
    """
    Atomically allocate the next number of `kind` for the given day.

    The counter row for (kind, day) is bumped with a single UPDATE, so two
    concurrent callers always receive different numbers. The first call of
    a day inserts the row inside a savepoint; if another writer inserted it
    first, only the savepoint is rolled back and the UPDATE path is taken.
    Changes the caller has already staged are kept either way.
    """
    if kind not in SEQUENCE_KINDS:
        raise ValidationError(f"Invalid sequence kind: {kind}. Must be one of {list(SEQUENCE_KINDS)}")

    day = day or local_today()

    number = _bump_counter(kind, day)
    if number is None:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(sequence_type=kind, sequence_date=day, next_number=2))
            number = 1
        except IntegrityError:
            number = _bump_counter(kind, day)
            if number is None:
                raise

    return format_sequence_number(day, number)


_NUMBER_COLUMNS = {
    SEQUENCE_SESSION: GamingSession.session_number,
    SEQUENCE_INVOICE: Sale.invoice_number,
}


def allocate_number(kind: str, *, day: date | None = None) -> str:
    """
    Allocate a number that is not already taken by an existing record.

    A collision (e.g. with numbers minted before the counter existed) is
    retried once with a freshly generated number, then reported as a
    ConflictError.
    """
    column = _NUMBER_COLUMNS[kind]
    attempted = []
    for _ in range(2):
        number = next_sequence_number(kind, day=day)
        taken = db.session.query(column).filter(column == number).first()
        if not taken:
            return number
        attempted.append(number)

    raise ConflictError(
        f"Could not allocate a unique {kind.lower()} number",
        details={"attempted": attempted},
    )
