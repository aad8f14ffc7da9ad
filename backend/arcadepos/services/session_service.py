# Overview: Gaming session state machine and its time-to-cost conversion.

"""
Gaming Session Service

WHY: A session meters PC time. It is the only owner of its cost and
discount fields; whenever those change it hands a SessionPricing value to
the sale service, which is the only writer of the linked sale.

LIFECYCLE:
    ACTIVE -> COMPLETED   end_session(), or forced by payment
    ACTIVE -> CANCELLED   cancel_session(), nothing is charged
COMPLETED and CANCELLED are terminal.

COST:
    minutes = ceil((now - start_time) / 60s)
    cost    = hourly_rate x minutes / 60   (rounded per currency)
Partial minutes bill as full minutes. A session ended at the instant it
started bills zero unless MIN_BILLABLE_MINUTES is configured.

The same elapsed_cost() is used for ending, for payment-forced ending and
for projections, so a quote equals the charge when no time has passed.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import GamingSession
from ..models.discounts import TARGET_GAMING_SESSION
from ..models.documents import SEQUENCE_SESSION
from ..models.pcs import PC_STATUS_AVAILABLE
from ..models.sales import SALE_STATUS_PENDING
from ..models.sessions import (
    SESSION_PAYMENT_PAID,
    SESSION_PAYMENT_UNPAID,
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_CANCELLED,
    SESSION_STATUS_COMPLETED,
)
from ..money import Money, sum_money
from ..time_utils import local_day_range_utc, parse_iso_datetime, utcnow
from . import customer_service, discount_service, notification_service, pc_service, sale_service
from .concurrency import lock_for_update, run_atomic
from .sale_service import SessionPricing
from .sequence_service import allocate_number

WALK_IN_CUSTOMER = "Walk-in"

_MICROSECONDS_PER_MINUTE = 60 * 1_000_000


# =============================================================================
# COST FORMULA
# =============================================================================

def elapsed_minutes(start_time: datetime, now: datetime, minimum: int = 0) -> int:
    """Whole minutes between start_time and now, any partial minute rounded up."""
    delta = now - start_time
    micros = (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds
    minutes = max(0, -(-micros // _MICROSECONDS_PER_MINUTE))
    if minimum > 0:
        minutes = max(minutes, minimum)
    return minutes


def elapsed_cost(start_time: datetime, now: datetime, hourly_rate: Money, minimum: int = 0) -> tuple[int, Money]:
    """
    Returns:
        (minutes, cost) where cost = hourly_rate x minutes / 60
    """
    minutes = elapsed_minutes(start_time, now, minimum)
    return minutes, hourly_rate.scale(minutes, 60)


def min_billable_minutes() -> int:
    return int(current_app.config.get("MIN_BILLABLE_MINUTES", 0) or 0)


def pricing_of(session: GamingSession) -> SessionPricing:
    return SessionPricing(
        session_id=session.id,
        session_number=session.session_number,
        total_cost=session.total_cost,
        discount=session.discount,
        final_amount=session.final_amount,
    )


# =============================================================================
# LOOKUPS
# =============================================================================

def get_session(session_id: int, *, for_update: bool = False) -> GamingSession:
    query = db.session.query(GamingSession).filter_by(id=session_id)
    if for_update:
        query = lock_for_update(query)
    session = query.first()
    if not session:
        raise NotFoundError(f"Gaming session {session_id} not found")
    return session


def _require_active(session: GamingSession, action: str) -> None:
    if session.status != SESSION_STATUS_ACTIVE:
        raise InvalidStateError(
            f"Cannot {action} a session with status {session.status}",
            details={"session_id": session.id, "status": session.status},
        )


# =============================================================================
# TRANSITIONS
# =============================================================================

def start_session(
    pc_id: int,
    user_id: int,
    customer_id: int | None = None,
    customer_name: str | None = None,
    existing_sale_id: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> GamingSession:
    """
    Occupy a PC and open a billed session.

    The session's line is added to existing_sale_id when given (it must be
    PENDING), otherwise to a new sale. The PC's current hourly rate is
    snapshotted; later rate changes do not affect this session.

    Raises:
        NotFoundError: PC, customer or sale missing
        InvalidStateError: PC inactive, not AVAILABLE, or already running a session
        ConflictError: another start on the same PC committed first
    """
    def _op():
        when = now or utcnow()
        pc = pc_service.get_pc(pc_id, for_update=True)
        if not pc.is_active:
            raise InvalidStateError(f"PC {pc.pc_number} is not active")
        if pc.status != PC_STATUS_AVAILABLE:
            raise InvalidStateError(
                f"PC {pc.pc_number} is not available (status: {pc.status})",
                details={"pc_id": pc.id, "status": pc.status},
            )
        running = pc_service.get_active_session_for_pc(pc.id)
        if running:
            raise InvalidStateError(
                f"PC {pc.pc_number} already has an active session",
                details={"session_id": running.id},
            )

        name = customer_name
        if customer_id is not None:
            customer = customer_service.get_customer(customer_id)
            name = name or customer.name

        sale = None
        if existing_sale_id is not None:
            sale = sale_service.get_sale(existing_sale_id, for_update=True)
            if sale.status != SALE_STATUS_PENDING:
                raise InvalidStateError(
                    f"Cannot add a gaming session to a sale with status {sale.status}",
                    details={"sale_id": sale.id},
                )

        session_number = allocate_number(SEQUENCE_SESSION)
        if sale is None:
            sale = sale_service.new_sale(user_id, customer_id=customer_id)

        session = GamingSession(
            session_number=session_number,
            pc=pc,
            customer_id=customer_id,
            customer_name=name or WALK_IN_CUSTOMER,
            start_time=when,
            hourly_rate=pc_service.get_hourly_rate(pc),
            total_cost=Money.zero(),
            final_amount=Money.zero(),
            status=SESSION_STATUS_ACTIVE,
            payment_status=SESSION_PAYMENT_UNPAID,
            sale=sale,
            started_by_user_id=user_id,
            notes=notes,
        )
        db.session.add(session)
        sale_service.add_session_item(sale, session, pc.name)
        pc_service.set_occupied(pc)
        db.session.flush()
        return session

    session = run_atomic(_op)
    current_app.logger.info(
        "Session %s started on PC %s (sale %s)",
        session.session_number, session.pc_id, session.sale_id,
    )
    notification_service.notify_unlock(session.pc_id, session_id=session.id, session_number=session.session_number)
    return session


def _finalize(session: GamingSession, user_id: int, when: datetime, validated=None) -> SessionPricing:
    minutes, cost = elapsed_cost(session.start_time, when, session.hourly_rate, min_billable_minutes())

    session.end_time = when
    session.duration_minutes = minutes
    session.total_cost = cost
    if validated is not None:
        session.discount = validated.apply(cost)
        session.final_amount = cost - session.discount.amount
    else:
        session.discount = None
        session.final_amount = cost
    session.status = SESSION_STATUS_COMPLETED
    session.ended_by_user_id = user_id
    return pricing_of(session)


def end_session(
    session_id: int,
    user_id: int,
    discount_id: int | None = None,
    now: datetime | None = None,
) -> GamingSession:
    """
    Finalize an ACTIVE session's cost and free its PC.

    Args:
        discount_id: Optional GAMING_SESSION discount applied to the total cost

    Raises:
        InvalidStateError: session not ACTIVE
        DiscountNotApplicableError: discount inactive, expired or not a
            session discount
    """
    def _op():
        when = now or utcnow()
        session = get_session(session_id, for_update=True)
        _require_active(session, "end")

        validated = None
        if discount_id is not None:
            validated = discount_service.resolve_discount_by_id(
                discount_id, TARGET_GAMING_SESSION, session, now=when
            )

        pricing = _finalize(session, user_id, when, validated)
        sale_service.apply_session_pricing(session.sale, pricing)
        pc_service.set_available(session.pc)
        return session

    session = run_atomic(_op)
    current_app.logger.info(
        "Session %s ended after %s min, final %s",
        session.session_number, session.duration_minutes, session.final_amount.to_dict(),
    )
    notification_service.notify_lock(session.pc_id, session_id=session.id, session_number=session.session_number)
    return session


def cancel_session(session_id: int, user_id: int, now: datetime | None = None) -> GamingSession:
    """
    Abort an ACTIVE session without charge.

    The session's line is removed from its sale; a PENDING sale left empty
    is cancelled with it. Other lines of the sale are untouched.
    """
    def _op():
        when = now or utcnow()
        session = get_session(session_id, for_update=True)
        _require_active(session, "cancel")

        session.end_time = when
        session.duration_minutes = elapsed_minutes(session.start_time, when)
        session.total_cost = Money.zero()
        session.discount = None
        session.final_amount = Money.zero()
        session.status = SESSION_STATUS_CANCELLED
        session.ended_by_user_id = user_id

        sale_service.remove_session_item(session.sale, session.session_number)
        pc_service.set_available(session.pc)
        return session

    session = run_atomic(_op)
    current_app.logger.info("Session %s cancelled by user %s", session.session_number, user_id)
    notification_service.notify_lock(session.pc_id, session_id=session.id, session_number=session.session_number)
    return session


def finalize_for_payment(session: GamingSession, user_id: int, now: datetime) -> SessionPricing:
    """
    End a still-ACTIVE session without discount because its sale is being paid.

    Runs inside the caller's unit of work; the caller applies the returned
    pricing to the sale.
    """
    _require_active(session, "finalize")
    pricing = _finalize(session, user_id, now)
    pc_service.set_available(session.pc)
    return pricing


def apply_session_discount(session: GamingSession, discount_id: int | None, now: datetime | None = None) -> SessionPricing:
    """
    Set (or with discount_id=None remove) the discount of a COMPLETED, unpaid session.

    Runs inside the caller's unit of work.
    """
    if session.status == SESSION_STATUS_ACTIVE:
        raise InvalidStateError(
            "End the session before applying a discount",
            details={"session_id": session.id},
        )
    if session.status != SESSION_STATUS_COMPLETED:
        raise InvalidStateError(f"Cannot discount a session with status {session.status}")
    if session.payment_status == SESSION_PAYMENT_PAID:
        raise InvalidStateError("Cannot discount a paid session")

    if discount_id is None:
        session.discount = None
        session.final_amount = session.total_cost
    else:
        validated = discount_service.resolve_discount_by_id(
            discount_id, TARGET_GAMING_SESSION, session, now=now
        )
        session.discount = validated.apply(session.total_cost)
        session.final_amount = session.total_cost - session.discount.amount
    return pricing_of(session)


def mark_paid(session: GamingSession) -> None:
    session.payment_status = SESSION_PAYMENT_PAID


# =============================================================================
# QUERIES
# =============================================================================

def list_active_sessions() -> list[GamingSession]:
    return (
        db.session.query(GamingSession)
        .filter_by(status=SESSION_STATUS_ACTIVE)
        .order_by(GamingSession.start_time.desc())
        .all()
    )


def list_sessions(
    status: str | None = None,
    pc_id: int | None = None,
    customer_id: int | None = None,
    payment_status: str | None = None,
    start_date=None,
    end_date=None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be at least 1", details={"page": page, "limit": limit})
    query = db.session.query(GamingSession)
    if status:
        query = query.filter(GamingSession.status == status)
    if pc_id:
        query = query.filter(GamingSession.pc_id == pc_id)
    if customer_id:
        query = query.filter(GamingSession.customer_id == customer_id)
    if payment_status:
        query = query.filter(GamingSession.payment_status == payment_status)
    if start_date:
        if isinstance(start_date, str):
            start_date = parse_iso_datetime(start_date)
        query = query.filter(GamingSession.start_time >= start_date)
    if end_date:
        if isinstance(end_date, str):
            end_date = parse_iso_datetime(end_date)
        query = query.filter(GamingSession.start_time <= end_date)

    total = query.count()
    sessions = (
        query.order_by(GamingSession.start_time.desc(), GamingSession.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "sessions": [s.to_dict() for s in sessions],
        "total": total,
        "page": page,
        "total_pages": (total + limit - 1) // limit,
    }


def today_stats() -> dict:
    """Session counts and paid session revenue for sessions started today."""
    start, end = local_day_range_utc()
    sessions = (
        db.session.query(GamingSession)
        .filter(GamingSession.start_time >= start, GamingSession.start_time < end)
        .all()
    )

    paid = [s for s in sessions if s.payment_status == SESSION_PAYMENT_PAID]
    return {
        "active_sessions": sum(1 for s in sessions if s.status == SESSION_STATUS_ACTIVE),
        "completed_sessions": sum(1 for s in sessions if s.status == SESSION_STATUS_COMPLETED),
        "total_revenue": sum_money(s.final_amount for s in paid).to_dict(),
        "unpaid_sessions": sum(
            1 for s in sessions
            if s.status == SESSION_STATUS_COMPLETED and s.payment_status == SESSION_PAYMENT_UNPAID
        ),
    }
