"""
PC Directory Service

WHY: Sessions need to know whether a station can be occupied and what it
costs per hour. The hourly rate is entered in USD and converted to LBP
exactly once, here; after that both figures live independently.

DESIGN PRINCIPLES:
- One ACTIVE session per PC at a time
- A PC under maintenance or deactivated cannot be occupied
- Status flips are version-checked so concurrent starts collide
"""

from __future__ import annotations

from flask import current_app

from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import PC, GamingSession
from ..models.pcs import (
    PC_STATUS_AVAILABLE,
    PC_STATUS_OCCUPIED,
    PC_STATUSES,
)
from ..models.sessions import SESSION_STATUS_ACTIVE
from ..money import Money, convert_usd
from . import exchange_rate_service
from .concurrency import lock_for_update, run_atomic


# =============================================================================
# DIRECTORY LOOKUPS
# =============================================================================

def get_pc(pc_id: int, *, for_update: bool = False) -> PC:
    query = db.session.query(PC).filter_by(id=pc_id)
    if for_update:
        query = lock_for_update(query)
    pc = query.first()
    if not pc:
        raise NotFoundError(f"PC {pc_id} not found")
    return pc


def list_pcs(include_inactive: bool = False) -> list[PC]:
    query = db.session.query(PC)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(PC.pc_number).all()


def get_active_session_for_pc(pc_id: int) -> GamingSession | None:
    return db.session.query(GamingSession).filter_by(
        pc_id=pc_id,
        status=SESSION_STATUS_ACTIVE,
    ).first()


def is_available(pc: PC) -> bool:
    return pc.is_active and pc.status == PC_STATUS_AVAILABLE


def get_hourly_rate(pc: PC) -> Money:
    return pc.hourly_rate


def set_occupied(pc: PC) -> None:
    pc.status = PC_STATUS_OCCUPIED


def set_available(pc: PC) -> None:
    pc.status = PC_STATUS_AVAILABLE


# =============================================================================
# DIRECTORY MANAGEMENT
# =============================================================================

def create_pc(
    pc_number: str,
    name: str,
    hourly_rate_usd=None,
    location: str | None = None,
    notes: str | None = None,
) -> PC:
    """
    Register a new gaming PC.

    Args:
        pc_number: Unique station identifier (stored upper-case, e.g. "PC-01")
        name: Display name
        hourly_rate_usd: Rate per hour in USD; defaults to DEFAULT_HOURLY_RATE_USD.
            The LBP rate is derived from it at the current exchange rate.
    """
    def _op():
        number = (pc_number or "").strip().upper()
        if not number:
            raise ValidationError("pc_number is required")
        if not name:
            raise ValidationError("name is required")

        existing = db.session.query(PC).filter_by(pc_number=number).first()
        if existing:
            raise ConflictError(f"PC number '{number}' already exists")

        rate_usd = hourly_rate_usd
        if rate_usd is None:
            rate_usd = current_app.config["DEFAULT_HOURLY_RATE_USD"]

        pc = PC(
            pc_number=number,
            name=name,
            status=PC_STATUS_AVAILABLE,
            hourly_rate=convert_usd(rate_usd, exchange_rate_service.get_current_rate()),
            location=location,
            notes=notes,
            is_active=True,
        )
        db.session.add(pc)
        db.session.flush()
        return pc

    return run_atomic(_op)


def update_hourly_rate(pc_id: int, hourly_rate_usd) -> PC:
    """
    Set a new hourly rate (converted once to LBP).

    Running sessions keep the rate they snapshotted at start.
    """
    def _op():
        pc = get_pc(pc_id, for_update=True)
        pc.hourly_rate = convert_usd(hourly_rate_usd, exchange_rate_service.get_current_rate())
        return pc

    return run_atomic(_op)


def set_status(pc_id: int, status: str) -> PC:
    """
    Move a PC between AVAILABLE / MAINTENANCE / RESERVED by hand.

    OCCUPIED is owned by the session lifecycle and cannot be set here, and
    a PC with an ACTIVE session cannot be taken out of service.
    """
    def _op():
        if status not in PC_STATUSES:
            raise ValidationError(f"Invalid PC status: {status}. Must be one of {list(PC_STATUSES)}")
        if status == PC_STATUS_OCCUPIED:
            raise InvalidStateError("PC can only become OCCUPIED by starting a session")

        pc = get_pc(pc_id, for_update=True)
        active = get_active_session_for_pc(pc.id)
        if active:
            raise InvalidStateError(
                f"Cannot set PC to {status} while it has an active session",
                details={"session_id": active.id},
            )

        pc.status = status
        return pc

    return run_atomic(_op)


def set_active(pc_id: int, is_active: bool) -> PC:
    def _op():
        pc = get_pc(pc_id, for_update=True)
        if not is_active and get_active_session_for_pc(pc.id):
            raise InvalidStateError("Cannot deactivate PC with an active session. End the session first.")
        pc.is_active = is_active
        return pc

    return run_atomic(_op)
