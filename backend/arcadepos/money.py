"""
Dual-currency amounts.

Every amount in the system carries a USD and an LBP component. The two are
rounded independently (USD to cents, LBP to whole pounds, half-up) and are
never re-derived from each other after a price is first set; they only
move together through addition, subtraction and proportional scaling.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from .errors import NegativeAmountError, ValidationError

USD = "USD"
LBP = "LBP"
CURRENCIES = (USD, LBP)

_CENT = Decimal("0.01")
_POUND = Decimal("1")


def to_decimal(value) -> Decimal:
    """Coerce int / str / Decimal / float input into a Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Invalid amount: {value!r}")
    if isinstance(value, float):
        # str() keeps the literal the caller typed (2.7 -> "2.7")
        value = str(value)
    if not isinstance(value, Decimal):
        try:
            value = Decimal(value)
        except (ArithmeticError, TypeError, ValueError):
            raise ValidationError(f"Invalid amount: {value!r}")
    # NaN and Infinity cannot be compared or quantized
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {value}")
    return value


def round_usd(value) -> Decimal:
    return to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def round_lbp(value) -> Decimal:
    return to_decimal(value).quantize(_POUND, rounding=ROUND_HALF_UP)


def normalize_currency(currency: str) -> str:
    code = (currency or "").strip().upper()
    if code not in CURRENCIES:
        raise ValidationError(f"Invalid currency: {currency}. Must be one of {list(CURRENCIES)}")
    return code


@dataclass(frozen=True)
class Money:
    """Immutable {usd, lbp} pair; both components are always >= 0."""
    usd: Decimal = Decimal("0.00")
    lbp: Decimal = Decimal("0")

    def __post_init__(self):
        usd = round_usd(self.usd)
        lbp = round_lbp(self.lbp)
        if usd < 0 or lbp < 0:
            raise NegativeAmountError(
                "Amount cannot be negative",
                details={"usd": str(usd), "lbp": str(lbp)},
            )
        object.__setattr__(self, "usd", usd)
        object.__setattr__(self, "lbp", lbp)

    @classmethod
    def zero(cls) -> "Money":
        return cls()

    @classmethod
    def from_storage(cls, usd_cents: int | None, lbp: int | None) -> "Money":
        return cls(usd=Decimal(usd_cents or 0) / 100, lbp=Decimal(lbp or 0))

    def to_storage(self) -> tuple[int, int]:
        return int(self.usd * 100), int(self.lbp)

    def add(self, other: "Money") -> "Money":
        return Money(self.usd + other.usd, self.lbp + other.lbp)

    def subtract(self, other: "Money") -> "Money":
        """Raises NegativeAmountError if either component would go below zero."""
        return Money(self.usd - other.usd, self.lbp - other.lbp)

    def scale(self, factor, divisor=1) -> "Money":
        """
        Multiply both components by factor / divisor, rounding once at the end.

        Passing the ratio as two numbers (e.g. minutes, 60) keeps the product
        exact until the final rounding.
        """
        factor = to_decimal(factor)
        divisor = to_decimal(divisor)
        if divisor == 0:
            raise ValidationError("Cannot scale by a zero divisor")
        return Money(self.usd * factor / divisor, self.lbp * factor / divisor)

    def percentage(self, pct) -> "Money":
        return self.scale(pct, 100)

    def amount_in(self, currency: str) -> Decimal:
        return self.usd if normalize_currency(currency) == USD else self.lbp

    def is_zero(self) -> bool:
        return self.usd == 0 and self.lbp == 0

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def to_dict(self) -> dict:
        return {"usd": float(self.usd), "lbp": int(self.lbp)}


def sum_money(amounts) -> Money:
    total = Money.zero()
    for amount in amounts:
        total = total + amount
    return total


def convert_usd(amount_usd, exchange_rate) -> Money:
    """Build a Money from a USD figure; the only place LBP is derived from USD."""
    usd = to_decimal(amount_usd)
    return Money(usd=usd, lbp=usd * to_decimal(exchange_rate))


def convert_payment(amount, currency: str, exchange_rate) -> Money:
    """Record a tendered amount in both currencies at the given rate."""
    amount = to_decimal(amount)
    rate = to_decimal(exchange_rate)
    if normalize_currency(currency) == USD:
        return Money(usd=amount, lbp=amount * rate)
    return Money(usd=amount / rate, lbp=amount)
