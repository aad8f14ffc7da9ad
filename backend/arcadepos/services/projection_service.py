# Overview: Read-only "what would it cost right now" quotes for sessions and sales.

"""
Cost Projection Service

WHY: Cashiers quote running sessions before ending or charging them.
Projections use the exact formulas of end_session() and recompute(), so a
quote matches the payment charge when no time passes in between.

Nothing here writes to the database.
"""

from __future__ import annotations

from datetime import datetime

from ..errors import InvalidStateError
from ..extensions import db
from ..models import GamingSession
from ..models.sales import SESSION_SKU_PREFIX
from ..models.sessions import SESSION_STATUS_ACTIVE
from ..money import Money
from ..time_utils import to_utc_z, utcnow
from . import sale_service, session_service


def _project(session: GamingSession, now: datetime) -> tuple[int, Money]:
    return session_service.elapsed_cost(
        session.start_time,
        now,
        session.hourly_rate,
        session_service.min_billable_minutes(),
    )


def project_session_cost(session_id: int, now: datetime | None = None) -> dict:
    """
    Current duration and cost of an ACTIVE session.

    Returns:
        {"session_id", "session_number", "duration": minutes, "cost": Money dict,
         "hourly_rate", "start_time", "as_of"}
    """
    now = now or utcnow()
    session = session_service.get_session(session_id)
    if session.status != SESSION_STATUS_ACTIVE:
        raise InvalidStateError(
            f"Session {session.session_number} is not active",
            details={"session_id": session.id, "status": session.status},
        )

    minutes, cost = _project(session, now)
    return {
        "session_id": session.id,
        "session_number": session.session_number,
        "duration": minutes,
        "cost": cost.to_dict(),
        "hourly_rate": session.hourly_rate.to_dict(),
        "start_time": to_utc_z(session.start_time),
        "as_of": to_utc_z(now),
    }


def project_sale_cost(sale_id: int, now: datetime | None = None) -> dict:
    """
    Totals a sale would have if every ACTIVE session on it ended at `now`.

    Finalized lines keep their stored pricing; each running session's line
    is replaced by its projected cost and the totals are derived the same
    way recompute() derives them (including the sale discount).
    """
    now = now or utcnow()
    sale = sale_service.get_sale(sale_id)

    active = {
        session.session_number: session
        for session in db.session.query(GamingSession).filter_by(
            sale_id=sale.id, status=SESSION_STATUS_ACTIVE
        )
    }

    lines = []
    per_session = []
    for item in sale.items:
        session = active.get(item.product_sku[len(SESSION_SKU_PREFIX):]) if item.is_session_item else None
        if session is None:
            discount = item.discount
            lines.append((item.subtotal, discount.amount if discount else None))
            continue

        minutes, cost = _project(session, now)
        lines.append((cost, None))
        per_session.append({
            "session_id": session.id,
            "session_number": session.session_number,
            "pc_id": session.pc_id,
            "duration": minutes,
            "cost": cost.to_dict(),
        })

    derived = sale_service.derive_totals(lines, sale.sale_discount)
    return {
        "sale_id": sale.id,
        "invoice_number": sale.invoice_number,
        "current_totals": derived.totals.to_dict(),
        "subtotal_before_discount": derived.subtotal_before_discount.to_dict(),
        "total_item_discounts": derived.total_item_discounts.to_dict(),
        "sale_discount": derived.sale_discount.to_dict() if derived.sale_discount else None,
        "has_active_sessions": bool(per_session),
        "per_session": per_session,
        "as_of": to_utc_z(now),
    }
