"""
Exchange Rate Service

The USD to LBP rate moves often, so cashiers set it at runtime instead of
redeploying. Every change appends a row that remembers the rate it
replaced; the newest row already in effect is the current rate. Until the
first row exists the configured EXCHANGE_RATE_USD_TO_LBP is used.

The rate only matters at the moments LBP is derived from USD (a PC rate
or product price being set, a payment being recorded). Amounts already
stored keep the rate they were converted at.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import ExchangeRate
from ..money import LBP, USD, convert_payment, normalize_currency, to_decimal
from ..time_utils import utcnow
from .concurrency import run_atomic


def get_latest_rate(now: datetime | None = None) -> ExchangeRate | None:
    """Newest rate row already in effect at `now`, or None before the first update."""
    when = now or utcnow()
    return (
        db.session.query(ExchangeRate)
        .filter(ExchangeRate.effective_from <= when)
        .order_by(ExchangeRate.effective_from.desc(), ExchangeRate.id.desc())
        .first()
    )


def get_current_rate(now: datetime | None = None) -> int:
    latest = get_latest_rate(now)
    if latest is not None:
        return latest.rate
    return int(current_app.config["EXCHANGE_RATE_USD_TO_LBP"])


def _parse_rate(value) -> int:
    rate = to_decimal(value)
    if rate <= 0:
        raise ValidationError("Exchange rate must be greater than zero", details={"rate": str(rate)})
    if rate != rate.to_integral_value():
        raise ValidationError("Exchange rate must be a whole number of LBP per USD", details={"rate": str(rate)})
    return int(rate)


def update_rate(user_id: int, rate, notes: str | None = None, *, now: datetime | None = None) -> ExchangeRate:
    """Record a new rate, effective immediately."""
    new_rate = _parse_rate(rate)
    if notes is not None and len(notes) > 500:
        raise ValidationError("Notes must be at most 500 characters")
    when = now or utcnow()

    def _op():
        row = ExchangeRate(
            rate=new_rate,
            previous_rate=get_current_rate(when),
            updated_by_user_id=user_id,
            effective_from=when,
            notes=notes,
        )
        db.session.add(row)
        db.session.flush()
        return row

    row = run_atomic(_op)
    current_app.logger.info(
        "Exchange rate set to %s LBP/USD by user %s (was %s)",
        row.rate, user_id, row.previous_rate,
    )
    return row


def get_rate_history(limit: int = 20) -> list[ExchangeRate]:
    if limit < 1:
        raise ValidationError("limit must be at least 1", details={"limit": limit})
    return (
        db.session.query(ExchangeRate)
        .order_by(ExchangeRate.effective_from.desc(), ExchangeRate.id.desc())
        .limit(limit)
        .all()
    )


def convert(amount, from_currency: str) -> dict:
    """Quote `amount` of one currency in the other at the current rate."""
    currency = normalize_currency(from_currency)
    rate = get_current_rate()
    money = convert_payment(amount, currency, rate)
    to_currency = LBP if currency == USD else USD
    return {
        "amount": str(money.amount_in(currency)),
        "from": currency,
        "to": to_currency,
        "converted": str(money.amount_in(to_currency)),
        "rate": rate,
    }
