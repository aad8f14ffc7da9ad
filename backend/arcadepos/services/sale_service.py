# Overview: Sale aggregate reconciliation; owns every write to sales and sale items.

"""
Sale Service

WHY: A sale mixes product lines with gaming-session lines. Its totals are
derived data and have exactly one writer, recompute(), so a stale or
hand-written total can never be paid.

DESIGN PRINCIPLES:
- recompute() runs after every change to items, item discounts or the
  sale discount; nothing else writes the derived totals
- The sale discount stores its percentage; its amount is re-derived
  against the current running total on every recompute
- Product lines reserve stock on the way in and restore it on the way out
- Session lines are priced only from a SessionPricing value emitted by the
  session lifecycle; this module never computes a session's cost

INVARIANT:
    totals = subtotal_before_discount - total_item_discounts - sale_discount.amount
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import GamingSession, Product, Sale, SaleItem
from ..models.discounts import TARGET_PRODUCT, TARGET_SALE
from ..models.fields import AppliedDiscount
from ..models.sales import (
    SALE_STATUS_CANCELLED,
    SALE_STATUS_PAID,
    SALE_STATUS_PENDING,
    SESSION_SKU_PREFIX,
)
from ..models.sessions import SESSION_STATUS_ACTIVE
from ..models.documents import SEQUENCE_INVOICE
from ..money import Money, sum_money
from ..time_utils import local_day_range_utc, parse_iso_datetime, utcnow
from . import customer_service, discount_service, inventory_service
from .concurrency import lock_for_update, run_atomic
from .sequence_service import allocate_number


@dataclass(frozen=True)
class SessionPricing:
    """Finalized pricing of one gaming session, as emitted by the session lifecycle."""
    session_id: int
    session_number: str
    total_cost: Money
    discount: AppliedDiscount | None
    final_amount: Money


@dataclass(frozen=True)
class SaleTotals:
    subtotal_before_discount: Money
    total_item_discounts: Money
    sale_discount: AppliedDiscount | None
    totals: Money


# =============================================================================
# RECONCILIATION
# =============================================================================

def derive_totals(lines, sale_discount: AppliedDiscount | None) -> SaleTotals:
    """
    Pure totals derivation shared by recompute() and the cost projector.

    Args:
        lines: iterable of (subtotal, item discount amount or None)
        sale_discount: snapshot whose percentage is reapplied to the
            running total; its stored amount is ignored
    """
    lines = list(lines)
    subtotal = sum_money(line_subtotal for line_subtotal, _ in lines)
    item_discounts = sum_money(amount for _, amount in lines if amount is not None)
    running = subtotal - item_discounts

    if sale_discount is not None:
        sale_discount = sale_discount.with_amount(
            discount_service.apply_percentage(running, sale_discount.percentage)
        )
        running = running - sale_discount.amount

    return SaleTotals(
        subtotal_before_discount=subtotal,
        total_item_discounts=item_discounts,
        sale_discount=sale_discount,
        totals=running,
    )


def _item_lines(items):
    for item in items:
        discount = item.discount
        yield item.subtotal, discount.amount if discount else None


def recompute(sale: Sale) -> Sale:
    """Re-derive every total of `sale` from its items. Idempotent."""
    derived = derive_totals(_item_lines(sale.items), sale.sale_discount)
    sale.subtotal_before_discount = derived.subtotal_before_discount
    sale.total_item_discounts = derived.total_item_discounts
    sale.sale_discount = derived.sale_discount
    sale.totals = derived.totals
    return sale


def reprice_item(item: SaleItem) -> SaleItem:
    """subtotal = unit price x quantity; final = subtotal - item discount."""
    item.subtotal = item.unit_price.scale(item.quantity)
    discount = item.discount
    if discount is not None:
        discount = discount.with_amount(
            discount_service.apply_percentage(item.subtotal, discount.percentage)
        )
        item.discount = discount
        item.final_amount = item.subtotal - discount.amount
    else:
        item.final_amount = item.subtotal
    return item


# =============================================================================
# LOOKUPS
# =============================================================================

def get_sale(sale_id: int, *, for_update: bool = False) -> Sale:
    query = db.session.query(Sale).filter_by(id=sale_id)
    if for_update:
        query = lock_for_update(query)
    sale = query.first()
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def get_sale_by_invoice(invoice_number: str) -> Sale:
    sale = db.session.query(Sale).filter_by(invoice_number=invoice_number).first()
    if not sale:
        raise NotFoundError(f"Sale with invoice {invoice_number} not found")
    return sale


def _require_pending(sale: Sale, action: str) -> None:
    if sale.status != SALE_STATUS_PENDING:
        raise InvalidStateError(
            f"Cannot {action} a sale with status {sale.status}",
            details={"sale_id": sale.id, "status": sale.status},
        )


def _active_sessions(sale: Sale) -> list[GamingSession]:
    return (
        db.session.query(GamingSession)
        .filter_by(sale_id=sale.id, status=SESSION_STATUS_ACTIVE)
        .all()
    )


# =============================================================================
# PRODUCT LINES
# =============================================================================

def _parse_item_spec(spec: dict) -> tuple[int, int, int | None]:
    try:
        product_id = int(spec["product_id"])
        quantity = int(spec.get("quantity", 1))
    except (KeyError, TypeError, ValueError):
        raise ValidationError("Each item requires product_id and an integer quantity", details={"item": spec})
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1", details={"product_id": product_id})
    return product_id, quantity, spec.get("discount_id")


def _build_product_line(product_id: int, quantity: int, discount_id: int | None, now: datetime) -> SaleItem:
    product: Product = inventory_service.reserve_stock(product_id, quantity)

    item = SaleItem(
        product_id=product.id,
        product_name=product.name,
        product_sku=product.sku,
        quantity=quantity,
        unit_price=product.price,
    )
    if discount_id is not None:
        validated = discount_service.resolve_discount_by_id(discount_id, TARGET_PRODUCT, product, now=now)
        item.discount = validated.apply(Money.zero())
    return reprice_item(item)


def _restock_product_items(items) -> None:
    for item in items:
        if item.product_id and not item.is_session_item:
            inventory_service.restock(item.product_id, item.quantity)


def new_sale(user_id: int, customer_id: int | None = None, notes: str | None = None) -> Sale:
    """Stage an empty PENDING sale with a fresh invoice number."""
    invoice_number = allocate_number(SEQUENCE_INVOICE)
    if customer_id is not None:
        customer_service.get_customer(customer_id)

    sale = Sale(
        invoice_number=invoice_number,
        customer_id=customer_id,
        status=SALE_STATUS_PENDING,
        cashier_user_id=user_id,
        notes=notes,
    )
    db.session.add(sale)
    return recompute(sale)


def create_sale(
    user_id: int,
    items: list[dict],
    customer_id: int | None = None,
    sale_discount_id: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Sale:
    """
    Create a PENDING sale from product lines.

    Args:
        items: [{"product_id", "quantity", "discount_id"?}, ...] (at least one)

    Raises:
        InsufficientStockError, DiscountNotApplicableError, NotFoundError
    """
    if not items:
        raise ValidationError("Sale must have at least one item")

    def _op():
        when = now or utcnow()
        sale = new_sale(user_id, customer_id=customer_id, notes=notes)
        for spec in items:
            sale.append_item(_build_product_line(*_parse_item_spec(spec), now=when))
        if sale_discount_id is not None:
            _attach_sale_discount(sale, sale_discount_id, when)
        recompute(sale)
        db.session.flush()
        return sale

    sale = run_atomic(_op)
    current_app.logger.info("Sale %s created with %d item(s)", sale.invoice_number, len(sale.items))
    return sale


def add_item(sale_id: int, product_id: int, quantity: int = 1, discount_id: int | None = None, now: datetime | None = None) -> Sale:
    """Append one product line to a PENDING sale."""
    def _op():
        sale = get_sale(sale_id, for_update=True)
        _require_pending(sale, "add items to")
        sale.append_item(
            _build_product_line(*_parse_item_spec({
                "product_id": product_id,
                "quantity": quantity,
                "discount_id": discount_id,
            }), now=now or utcnow())
        )
        return recompute(sale)

    return run_atomic(_op)


def _attach_sale_discount(sale: Sale, discount_id: int, now: datetime) -> None:
    validated = discount_service.resolve_discount_by_id(discount_id, TARGET_SALE, sale, now=now)
    sale.sale_discount = validated.apply(Money.zero())


# =============================================================================
# SESSION LINES (written only on behalf of the session lifecycle)
# =============================================================================

def add_session_item(sale: Sale, session: GamingSession, pc_name: str) -> SaleItem:
    """Append the zero-priced placeholder line for a newly started session."""
    _require_pending(sale, "add a gaming session to")
    item = SaleItem(
        session=session,
        product_name=f"Gaming - {pc_name}",
        product_sku=f"{SESSION_SKU_PREFIX}{session.session_number}",
        quantity=1,
        unit_price=Money.zero(),
        subtotal=Money.zero(),
        final_amount=Money.zero(),
    )
    sale.append_item(item)
    recompute(sale)
    return item


def apply_session_pricing(sale: Sale, pricing: SessionPricing) -> Sale:
    """Copy a session's finalized pricing onto its line and recompute."""
    item = sale.find_session_item(pricing.session_number)
    if item is None:
        raise NotFoundError(
            f"Sale {sale.invoice_number} has no line for session {pricing.session_number}",
            details={"sale_id": sale.id, "session_id": pricing.session_id},
        )

    item.quantity = 1
    item.unit_price = pricing.total_cost
    item.subtotal = pricing.total_cost
    item.discount = pricing.discount
    item.final_amount = pricing.final_amount
    return recompute(sale)


def remove_session_item(sale: Sale, session_number: str) -> bool:
    """
    Drop a cancelled session's line.

    Returns True when the sale was left empty and, being PENDING, was
    cancelled along with it.
    """
    sku = f"{SESSION_SKU_PREFIX}{session_number}"
    sale.remove_items_where(lambda item: item.product_sku == sku)
    recompute(sale)

    if not sale.items and sale.status == SALE_STATUS_PENDING:
        sale.status = SALE_STATUS_CANCELLED
        return True
    return False


# =============================================================================
# UPDATE / CANCEL
# =============================================================================

def update_sale(
    sale_id: int,
    user_id: int,
    items: list[dict] | None = None,
    session_discounts: list[dict] | None = None,
    sale_discount_id: int | None = None,
    clear_sale_discount: bool = False,
    customer_id: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Sale:
    """
    Edit a PENDING sale.

    Args:
        items: Replaces every product line ([{"product_id", "quantity",
            "discount_id"?}]). Stock of the old lines is restored and the
            new lines reserved. Session lines are left as they are.
        session_discounts: [{"product_sku": "SESSION-...", "discount_id"?}].
            Routed to the session lifecycle; a missing discount_id removes
            the session's discount. Only COMPLETED sessions accept one.
        sale_discount_id: SALE-targeted discount to attach.
        clear_sale_discount: Remove the sale discount.

    Returns:
        The recomputed sale
    """
    from . import session_service

    if sale_discount_id is not None and clear_sale_discount:
        raise ValidationError("Pass either sale_discount_id or clear_sale_discount, not both")

    def _op():
        when = now or utcnow()
        sale = get_sale(sale_id, for_update=True)
        _require_pending(sale, "update")

        if customer_id is not None:
            customer_service.get_customer(customer_id)
            sale.customer_id = customer_id
        if notes is not None:
            sale.notes = notes

        if items is not None:
            parsed = [_parse_item_spec(spec) for spec in items]
            removed = sale.remove_items_where(lambda item: not item.is_session_item)
            _restock_product_items(removed)
            for product_id, quantity, discount_id in parsed:
                sale.append_item(_build_product_line(product_id, quantity, discount_id, when))

        for entry in session_discounts or []:
            sku = entry.get("product_sku") or ""
            if not sku.startswith(SESSION_SKU_PREFIX):
                raise ValidationError(f"'{sku}' is not a gaming session line", details={"product_sku": sku})
            item = sale.find_session_item(sku[len(SESSION_SKU_PREFIX):])
            if item is None or item.session is None:
                raise NotFoundError(f"Sale {sale.invoice_number} has no session line {sku}")
            pricing = session_service.apply_session_discount(
                item.session,
                entry.get("discount_id"),
                now=when,
            )
            apply_session_pricing(sale, pricing)

        if clear_sale_discount:
            sale.sale_discount = None
        elif sale_discount_id is not None:
            _attach_sale_discount(sale, sale_discount_id, when)

        return recompute(sale)

    sale = run_atomic(_op)
    current_app.logger.info("Sale %s updated by user %s", sale.invoice_number, user_id)
    return sale


def cancel_sale(sale_id: int, user_id: int) -> Sale:
    """
    Cancel a PENDING sale and restore product stock.

    Refused while a linked gaming session is still ACTIVE; cancel or end
    the session first.
    """
    def _op():
        sale = get_sale(sale_id, for_update=True)
        if sale.status == SALE_STATUS_PAID:
            raise InvalidStateError("Cannot cancel a paid sale")
        if sale.status == SALE_STATUS_CANCELLED:
            raise InvalidStateError("Sale is already cancelled")

        active = _active_sessions(sale)
        if active:
            raise InvalidStateError(
                "Cannot cancel a sale with an active gaming session",
                details={"session_ids": [s.id for s in active]},
            )

        _restock_product_items(sale.product_items)
        sale.status = SALE_STATUS_CANCELLED
        return sale

    sale = run_atomic(_op)
    current_app.logger.info("Sale %s cancelled by user %s", sale.invoice_number, user_id)
    return sale


# =============================================================================
# QUERIES
# =============================================================================

def list_sales(
    status: str | None = None,
    customer_id: int | None = None,
    cashier_user_id: int | None = None,
    start_date=None,
    end_date=None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be at least 1", details={"page": page, "limit": limit})
    query = db.session.query(Sale)
    if status:
        query = query.filter(Sale.status == status)
    if customer_id:
        query = query.filter(Sale.customer_id == customer_id)
    if cashier_user_id:
        query = query.filter(Sale.cashier_user_id == cashier_user_id)
    if start_date:
        if isinstance(start_date, str):
            start_date = parse_iso_datetime(start_date)
        query = query.filter(Sale.created_at >= start_date)
    if end_date:
        if isinstance(end_date, str):
            end_date = parse_iso_datetime(end_date)
        query = query.filter(Sale.created_at <= end_date)

    total = query.count()
    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "sales": [s.to_dict(include_items=False) for s in sales],
        "total": total,
        "page": page,
        "total_pages": (total + limit - 1) // limit,
    }


def today_summary() -> dict:
    """Counts and paid revenue for today's non-cancelled sales."""
    start, end = local_day_range_utc()
    base = db.session.query(Sale).filter(
        Sale.created_at >= start,
        Sale.created_at < end,
        Sale.status != SALE_STATUS_CANCELLED,
    )

    usd_cents, lbp = (
        base.filter(Sale.status == SALE_STATUS_PAID)
        .with_entities(
            func.coalesce(func.sum(Sale.totals_usd_cents), 0),
            func.coalesce(func.sum(Sale.totals_lbp), 0),
        )
        .one()
    )

    return {
        "total_sales": base.count(),
        "total_revenue": Money.from_storage(usd_cents, lbp).to_dict(),
        "pending_sales": base.filter(Sale.status == SALE_STATUS_PENDING).count(),
        "paid_sales": base.filter(Sale.status == SALE_STATUS_PAID).count(),
    }
