# Overview: Discount management and resolution against products, sessions and sales.

"""
Discount Service

WHY: Percentage discounts are scoped to exactly one kind of target.
Resolution checks that a discount may be used on the thing in hand before
any amount is computed, so a wrong-target discount never half-applies.

TARGETS:
- PRODUCT: one product (target_id = product id)
- CATEGORY: every product in one category (target_id = category id)
- GAMING_SESSION: any session, applied when its cost is finalized
- SALE: any sale, applied to the running total after item discounts

STACKING: at most one discount per item, per session and per sale. The
three levels add up (an item discount and a sale discount both reduce the
same sale).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..errors import DiscountNotApplicableError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Discount, Product
from ..models.discounts import (
    DISCOUNT_TARGETS,
    DISCOUNT_TYPE_PERCENTAGE,
    TARGET_CATEGORY,
    TARGET_GAMING_SESSION,
    TARGET_PRODUCT,
    TARGET_SALE,
    TARGETS_WITH_ID,
)
from ..models.fields import AppliedDiscount
from ..money import Money, to_decimal
from ..time_utils import parse_iso_datetime, utcnow
from . import inventory_service
from .concurrency import run_atomic


@dataclass(frozen=True)
class ValidatedDiscount:
    """A discount that passed resolution for a specific target."""
    discount_id: int
    name: str
    percentage: Decimal

    def apply(self, base: Money) -> AppliedDiscount:
        return AppliedDiscount(
            discount_id=self.discount_id,
            name=self.name,
            percentage=self.percentage,
            amount=apply_percentage(base, self.percentage),
        )


# =============================================================================
# RESOLUTION
# =============================================================================

def apply_percentage(base: Money, pct) -> Money:
    """base x pct / 100, rounded per currency (cents / whole pounds)."""
    pct = to_decimal(pct)
    if pct < 0 or pct > 100:
        raise ValidationError("Discount percentage must be between 0 and 100")
    return base.percentage(pct)


def resolve_discount(
    discount: Discount,
    target: str,
    target_ref=None,
    *,
    now: datetime | None = None,
) -> ValidatedDiscount:
    """
    Validate that `discount` may be applied to `target_ref`.

    Args:
        discount: Discount row
        target: What the discount is being applied to: PRODUCT (a sale
            line; target_ref is the Product), CATEGORY (target_ref is a
            category id), GAMING_SESSION or SALE (target_ref unused).

    Raises:
        DiscountNotApplicableError: inactive, outside its window, or aimed
            at a different target
    """
    now = now or utcnow()

    if not discount.is_active:
        raise DiscountNotApplicableError(f"Discount {discount.name} is not active")

    if not discount.is_valid_at(now):
        raise DiscountNotApplicableError(
            f"Discount {discount.name} is not valid at this time",
            details={
                "start_date": discount.start_date.isoformat() if discount.start_date else None,
                "end_date": discount.end_date.isoformat() if discount.end_date else None,
            },
        )

    if discount.target == TARGET_PRODUCT:
        product_id = target_ref.id if isinstance(target_ref, Product) else target_ref
        if target != TARGET_PRODUCT or product_id != discount.target_id:
            raise DiscountNotApplicableError(
                f"Discount {discount.name} applies only to product {discount.target_id}",
                details={"discount_id": discount.id, "target_id": discount.target_id},
            )
    elif discount.target == TARGET_CATEGORY:
        if target == TARGET_PRODUCT and isinstance(target_ref, Product):
            category_id = target_ref.category_id
        elif target == TARGET_CATEGORY:
            category_id = target_ref
        else:
            category_id = None
        if category_id is None or category_id != discount.target_id:
            raise DiscountNotApplicableError(
                f"Discount {discount.name} applies only to category {discount.target_id}",
                details={"discount_id": discount.id, "target_id": discount.target_id},
            )
    elif discount.target == TARGET_GAMING_SESSION:
        if target != TARGET_GAMING_SESSION:
            raise DiscountNotApplicableError(
                f"Discount {discount.name} can only be applied to gaming sessions"
            )
    elif discount.target == TARGET_SALE:
        if target != TARGET_SALE:
            raise DiscountNotApplicableError(
                f"Discount {discount.name} can only be applied to whole sales"
            )
    else:
        raise DiscountNotApplicableError(f"Discount {discount.name} has unknown target {discount.target}")

    return ValidatedDiscount(
        discount_id=discount.id,
        name=discount.name,
        percentage=discount.percentage,
    )


def resolve_discount_by_id(discount_id: int, target: str, target_ref=None, *, now: datetime | None = None) -> ValidatedDiscount:
    return resolve_discount(get_discount(discount_id), target, target_ref, now=now)


# =============================================================================
# MANAGEMENT
# =============================================================================

def _percentage_to_bps(value) -> int:
    pct = to_decimal(value)
    if pct < 0 or pct > 100:
        raise ValidationError("Discount value must be between 0 and 100")
    return int((pct * 100).to_integral_value())


def _coerce_datetime(value):
    if value is None or isinstance(value, datetime):
        return value
    return parse_iso_datetime(value)


def _validate_target(target: str, target_id: int | None) -> None:
    if target not in DISCOUNT_TARGETS:
        raise ValidationError(f"Invalid discount target: {target}. Must be one of {list(DISCOUNT_TARGETS)}")

    if target in TARGETS_WITH_ID:
        if target_id is None:
            raise ValidationError(f"target_id is required for {target} discounts")
        if target == TARGET_PRODUCT:
            inventory_service.get_product(target_id)
        else:
            inventory_service.get_category(target_id)
    elif target_id is not None:
        raise ValidationError(f"target_id should not be provided for {target} discounts")


def _validate_window(start_date, end_date) -> None:
    if start_date and end_date and end_date <= start_date:
        raise ValidationError("End date must be after start date")


def get_discount(discount_id: int) -> Discount:
    discount = db.session.get(Discount, discount_id)
    if not discount:
        raise NotFoundError(f"Discount {discount_id} not found")
    return discount


def create_discount(user_id: int, data: dict) -> Discount:
    """
    Create a percentage discount.

    Required keys: name, value (0..100), target. target_id is required for
    PRODUCT / CATEGORY and must be absent otherwise.
    """
    def _op():
        name = (data.get("name") or "").strip()
        if len(name) < 2:
            raise ValidationError("Discount name must be at least 2 characters")

        target = data.get("target")
        target_id = data.get("target_id")
        _validate_target(target, target_id)

        start_date = _coerce_datetime(data.get("start_date"))
        end_date = _coerce_datetime(data.get("end_date"))
        _validate_window(start_date, end_date)

        discount = Discount(
            name=name,
            description=data.get("description"),
            discount_type=DISCOUNT_TYPE_PERCENTAGE,
            value_bps=_percentage_to_bps(data.get("value", 0)),
            target=target,
            target_id=target_id,
            is_active=data.get("is_active", True),
            start_date=start_date,
            end_date=end_date,
            created_by_user_id=user_id,
        )
        db.session.add(discount)
        db.session.flush()
        return discount

    return run_atomic(_op)


def update_discount(discount_id: int, data: dict) -> Discount:
    """Update a discount, re-validating the target/target_id combination."""
    def _op():
        discount = get_discount(discount_id)

        new_target = data.get("target", discount.target)
        new_target_id = data["target_id"] if "target_id" in data else discount.target_id
        _validate_target(new_target, new_target_id)

        start_date = _coerce_datetime(data["start_date"]) if "start_date" in data else discount.start_date
        end_date = _coerce_datetime(data["end_date"]) if "end_date" in data else discount.end_date
        _validate_window(start_date, end_date)

        discount.target = new_target
        discount.target_id = new_target_id
        discount.start_date = start_date
        discount.end_date = end_date
        if "value" in data:
            discount.value_bps = _percentage_to_bps(data["value"])
        for key in ("name", "description", "is_active"):
            if key in data:
                setattr(discount, key, data[key])
        return discount

    return run_atomic(_op)


def delete_discount(discount_id: int) -> None:
    """Delete a discount. Applied snapshots on sales and sessions are kept."""
    def _op():
        discount = get_discount(discount_id)
        db.session.delete(discount)

    run_atomic(_op)


def list_discounts(
    target: str | None = None,
    is_active: bool | None = None,
    target_id: int | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be at least 1", details={"page": page, "limit": limit})
    query = db.session.query(Discount)
    if target:
        query = query.filter_by(target=target)
    if is_active is not None:
        query = query.filter_by(is_active=is_active)
    if target_id is not None:
        query = query.filter_by(target_id=target_id)

    total = query.count()
    discounts = (
        query.order_by(Discount.created_at.desc(), Discount.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "discounts": [d.to_dict() for d in discounts],
        "total": total,
        "page": page,
        "total_pages": (total + limit - 1) // limit,
    }


def _active_query(now: datetime):
    return db.session.query(Discount).filter(
        Discount.is_active.is_(True),
        (Discount.start_date.is_(None)) | (Discount.start_date <= now),
        (Discount.end_date.is_(None)) | (Discount.end_date >= now),
    )


def get_active_discounts_for_product(product_id: int, now: datetime | None = None) -> list[Discount]:
    """Product-specific and category discounts usable on product_id, highest first."""
    product = inventory_service.get_product(product_id)

    now = now or utcnow()
    scope = (Discount.target == TARGET_PRODUCT) & (Discount.target_id == product.id)
    if product.category_id:
        scope = scope | ((Discount.target == TARGET_CATEGORY) & (Discount.target_id == product.category_id))

    return _active_query(now).filter(scope).order_by(Discount.value_bps.desc()).all()


def get_active_discounts_for_gaming_session(now: datetime | None = None) -> list[Discount]:
    return (
        _active_query(now or utcnow())
        .filter(Discount.target == TARGET_GAMING_SESSION)
        .order_by(Discount.value_bps.desc())
        .all()
    )


def get_active_discounts_for_sale(now: datetime | None = None) -> list[Discount]:
    return (
        _active_query(now or utcnow())
        .filter(Discount.target == TARGET_SALE)
        .order_by(Discount.value_bps.desc())
        .all()
    )
