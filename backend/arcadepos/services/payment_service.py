# Overview: Settles a sale in one currency, finalizing any sessions still running.

"""
Payment Service

WHY: Paying a sale closes it for good. Sessions still running on it are
finalized first (as an End without discount) so the amount checked is
the amount actually owed.

DESIGN PRINCIPLES:
- One payment per sale, in USD or LBP
- The tendered amount must cover totals in the payment currency
- amount_paid keeps the tendered figure plus its conversion at the
  exchange rate current at payment time
- Payment failures are reported immediately, never retried
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..errors import InsufficientFundsError, InvalidStateError, ValidationError
from ..extensions import db
from ..models import GamingSession, Sale
from ..models.sales import (
    SALE_STATUS_CANCELLED,
    SALE_STATUS_PAID,
    VALID_PAYMENT_METHODS,
)
from ..models.sessions import SESSION_STATUS_ACTIVE, SESSION_STATUS_CANCELLED
from ..money import convert_payment, normalize_currency, to_decimal
from ..time_utils import utcnow
from . import customer_service, exchange_rate_service, notification_service, sale_service, session_service
from .concurrency import run_atomic


def _validate_payment_method(payment_method: str) -> str:
    method = (payment_method or "").strip().upper()
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method}. Must be one of {VALID_PAYMENT_METHODS}"
        )
    return method


def change_due(sale: Sale) -> Decimal:
    """Over-tender in the payment currency (zero until the sale is paid)."""
    if sale.status != SALE_STATUS_PAID or not sale.payment_currency:
        return Decimal("0")
    return sale.amount_paid.amount_in(sale.payment_currency) - sale.totals.amount_in(sale.payment_currency)


def pay_sale(
    sale_id: int,
    user_id: int,
    payment_method: str,
    payment_currency: str,
    amount,
    now: datetime | None = None,
) -> Sale:
    """
    Pay a PENDING sale.

    Args:
        payment_method: CASH, CARD or BANK_TRANSFER
        payment_currency: USD or LBP
        amount: Tendered amount in payment_currency

    Raises:
        InvalidStateError: sale already PAID or CANCELLED
        InsufficientFundsError: amount < totals[payment_currency]
    """
    method = _validate_payment_method(payment_method)
    currency = normalize_currency(payment_currency)
    tendered = to_decimal(amount)
    if tendered < 0:
        raise ValidationError("Payment amount cannot be negative")

    locked_pcs: list[tuple[int, str]] = []

    def _op():
        when = now or utcnow()
        sale = sale_service.get_sale(sale_id, for_update=True)
        if sale.status == SALE_STATUS_PAID:
            raise InvalidStateError("Sale is already paid", details={"sale_id": sale.id})
        if sale.status == SALE_STATUS_CANCELLED:
            raise InvalidStateError("Cannot pay a cancelled sale", details={"sale_id": sale.id})

        sessions = (
            db.session.query(GamingSession)
            .filter(GamingSession.sale_id == sale.id, GamingSession.status != SESSION_STATUS_CANCELLED)
            .all()
        )

        locked_pcs.clear()
        for session in sessions:
            if session.status == SESSION_STATUS_ACTIVE:
                pricing = session_service.finalize_for_payment(session, user_id, when)
                sale_service.apply_session_pricing(sale, pricing)
                locked_pcs.append((session.pc_id, session.session_number))

        sale_service.recompute(sale)

        due = sale.totals.amount_in(currency)
        if tendered < due:
            raise InsufficientFundsError(
                "Insufficient payment amount",
                details={
                    "currency": currency,
                    "amount_due": str(due),
                    "amount_tendered": str(tendered),
                },
            )

        sale.payment_method = method
        sale.payment_currency = currency
        sale.amount_paid = convert_payment(tendered, currency, exchange_rate_service.get_current_rate(when))
        sale.status = SALE_STATUS_PAID
        sale.paid_at = when

        for session in sessions:
            session_service.mark_paid(session)

        if sale.customer_id:
            customer_service.record_purchase(sale.customer_id, sale.totals)

        return sale

    sale = run_atomic(_op)
    current_app.logger.info(
        "Sale %s paid in %s (%s), totals %s",
        sale.invoice_number, currency, method, sale.totals.to_dict(),
    )
    for pc_id, session_number in locked_pcs:
        notification_service.notify_lock(pc_id, session_number=session_number, reason="payment")
    return sale
