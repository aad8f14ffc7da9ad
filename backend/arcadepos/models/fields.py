from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..money import Money


@dataclass(frozen=True)
class AppliedDiscount:
    """
    Snapshot of a discount at the moment it was applied.

    Stored beside the thing it reduces (sale item, session, sale) so later
    edits or deletion of the Discount row never change settled amounts.
    """
    discount_id: int | None
    name: str
    percentage: Decimal
    amount: Money

    def with_amount(self, amount: Money) -> "AppliedDiscount":
        return AppliedDiscount(self.discount_id, self.name, self.percentage, amount)

    def to_dict(self) -> dict:
        return {
            "discount_id": self.discount_id,
            "name": self.name,
            "percentage": float(self.percentage),
            "amount": self.amount.to_dict(),
        }


class MoneyField:
    """
    Expose a `<prefix>_usd_cents` / `<prefix>_lbp` column pair as Money.

    Amounts are stored the way the rest of the schema stores them: integer
    cents for USD and whole pounds for LBP. With nullable=True a pair of
    NULL columns reads back as None.
    """

    def __init__(self, prefix: str, nullable: bool = False):
        self.usd_attr = f"{prefix}_usd_cents"
        self.lbp_attr = f"{prefix}_lbp"
        self.nullable = nullable

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        usd_cents = getattr(obj, self.usd_attr)
        lbp = getattr(obj, self.lbp_attr)
        if self.nullable and usd_cents is None and lbp is None:
            return None
        return Money.from_storage(usd_cents, lbp)

    def __set__(self, obj, value: Money | None):
        if value is None:
            if not self.nullable:
                raise ValueError(f"{self.name} cannot be None")
            setattr(obj, self.usd_attr, None)
            setattr(obj, self.lbp_attr, None)
            return
        usd_cents, lbp = value.to_storage()
        setattr(obj, self.usd_attr, usd_cents)
        setattr(obj, self.lbp_attr, lbp)


class AppliedDiscountField:
    """
    Expose the `discount_*` snapshot columns as an optional AppliedDiscount.

    Expects columns `<prefix>_id`, `<prefix>_name`, `<prefix>_bps` and the
    money pair `<prefix>_amount_usd_cents` / `<prefix>_amount_lbp`.
    Percentages are kept in basis points (1000 = 10%).
    """

    def __init__(self, prefix: str = "discount"):
        self.prefix = prefix
        self.amount = MoneyField(f"{prefix}_amount", nullable=True)
        self.amount.name = f"{prefix}_amount"

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        name = getattr(obj, f"{self.prefix}_name")
        if name is None:
            return None
        bps = getattr(obj, f"{self.prefix}_bps") or 0
        return AppliedDiscount(
            discount_id=getattr(obj, f"{self.prefix}_id"),
            name=name,
            percentage=Decimal(bps) / 100,
            amount=self.amount.__get__(obj) or Money.zero(),
        )

    def __set__(self, obj, value: AppliedDiscount | None):
        if value is None:
            setattr(obj, f"{self.prefix}_id", None)
            setattr(obj, f"{self.prefix}_name", None)
            setattr(obj, f"{self.prefix}_bps", None)
            self.amount.__set__(obj, None)
            return
        setattr(obj, f"{self.prefix}_id", value.discount_id)
        setattr(obj, f"{self.prefix}_name", value.name)
        setattr(obj, f"{self.prefix}_bps", int(value.percentage * 100))
        self.amount.__set__(obj, value.amount)
