from __future__ import annotations

from typing import Callable

from ..extensions import db
from ..time_utils import to_utc_z
from .fields import AppliedDiscountField, MoneyField

SALE_STATUS_PENDING = "PENDING"
SALE_STATUS_PAID = "PAID"
SALE_STATUS_CANCELLED = "CANCELLED"

PAYMENT_METHOD_CASH = "CASH"
PAYMENT_METHOD_CARD = "CARD"
PAYMENT_METHOD_BANK_TRANSFER = "BANK_TRANSFER"

VALID_PAYMENT_METHODS = [
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_CARD,
    PAYMENT_METHOD_BANK_TRANSFER,
]

# Line items for gaming time use this SKU prefix followed by the session number
SESSION_SKU_PREFIX = "SESSION-"


class Sale(db.Model):
    """
    Invoice aggregating product lines and gaming-session lines.

    Derived totals (subtotal_before_discount, total_item_discounts, totals)
    are only written by sale_service.recompute().

    INVARIANT:
        totals = subtotal_before_discount - total_item_discounts - sale_discount.amount
               = sum(item.final_amount) - sale_discount.amount
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_sales_invoice_number"),
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    subtotal_before_discount_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    subtotal_before_discount_lbp = db.Column(db.Integer, nullable=False, default=0)
    subtotal_before_discount = MoneyField("subtotal_before_discount")

    total_item_discounts_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    total_item_discounts_lbp = db.Column(db.Integer, nullable=False, default=0)
    total_item_discounts = MoneyField("total_item_discounts")

    # Sale-level discount snapshot
    sale_discount_id = db.Column(db.Integer, nullable=True)
    sale_discount_name = db.Column(db.String(100), nullable=True)
    sale_discount_bps = db.Column(db.Integer, nullable=True)
    sale_discount_amount_usd_cents = db.Column(db.Integer, nullable=True)
    sale_discount_amount_lbp = db.Column(db.Integer, nullable=True)
    sale_discount = AppliedDiscountField("sale_discount")

    totals_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    totals_lbp = db.Column(db.Integer, nullable=False, default=0)
    totals = MoneyField("totals")

    payment_method = db.Column(db.String(32), nullable=True)
    payment_currency = db.Column(db.String(3), nullable=True)
    amount_paid_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_lbp = db.Column(db.Integer, nullable=False, default=0)
    amount_paid = MoneyField("amount_paid")

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_PENDING, index=True)
    cashier_user_id = db.Column(db.Integer, nullable=False, index=True)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def product_items(self) -> list["SaleItem"]:
        return [item for item in self.items if not item.is_session_item]

    def find_session_item(self, session_number: str) -> "SaleItem | None":
        sku = f"{SESSION_SKU_PREFIX}{session_number}"
        for item in self.items:
            if item.product_sku == sku:
                return item
        return None

    def append_item(self, item: "SaleItem") -> "SaleItem":
        item.position = max((i.position for i in self.items), default=0) + 1
        self.items.append(item)
        return item

    def remove_items_where(self, predicate: Callable[["SaleItem"], bool]) -> list["SaleItem"]:
        """Remove and return every item matching predicate (orphans are deleted on flush)."""
        removed = [item for item in self.items if predicate(item)]
        for item in removed:
            self.items.remove(item)
        return removed

    def to_dict(self, include_items: bool = True) -> dict:
        sale_discount = self.sale_discount
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "subtotal_before_discount": self.subtotal_before_discount.to_dict(),
            "total_item_discounts": self.total_item_discounts.to_dict(),
            "sale_discount": sale_discount.to_dict() if sale_discount else None,
            "totals": self.totals.to_dict(),
            "payment_method": self.payment_method,
            "payment_currency": self.payment_currency,
            "amount_paid": self.amount_paid.to_dict(),
            "status": self.status,
            "cashier_user_id": self.cashier_user_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "paid_at": to_utc_z(self.paid_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Line item on a sale.

    Product lines reference a product and reserve its stock. Session lines
    have no product; they link to a gaming session and carry the reserved
    SESSION- SKU. Their pricing is a copy of the session's cost fields.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=1)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("gaming_sessions.id"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    unit_price_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    unit_price_lbp = db.Column(db.Integer, nullable=False, default=0)
    unit_price = MoneyField("unit_price")

    discount_id = db.Column(db.Integer, nullable=True)
    discount_name = db.Column(db.String(100), nullable=True)
    discount_bps = db.Column(db.Integer, nullable=True)
    discount_amount_usd_cents = db.Column(db.Integer, nullable=True)
    discount_amount_lbp = db.Column(db.Integer, nullable=True)
    discount = AppliedDiscountField("discount")

    subtotal_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    subtotal_lbp = db.Column(db.Integer, nullable=False, default=0)
    subtotal = MoneyField("subtotal")

    final_amount_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    final_amount_lbp = db.Column(db.Integer, nullable=False, default=0)
    final_amount = MoneyField("final_amount")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")
    session = db.relationship("GamingSession", foreign_keys=[session_id])

    @property
    def is_session_item(self) -> bool:
        return (self.product_sku or "").startswith(SESSION_SKU_PREFIX)

    def to_dict(self) -> dict:
        discount = self.discount
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "session_id": self.session_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "unit_price": self.unit_price.to_dict(),
            "discount": discount.to_dict() if discount else None,
            "subtotal": self.subtotal.to_dict(),
            "final_amount": self.final_amount.to_dict(),
            "is_session_item": self.is_session_item,
        }
