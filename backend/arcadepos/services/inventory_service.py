# Overview: Product stock collaborator; reserves and restores quantity on hand.

from __future__ import annotations

from ..errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Product
from ..models.sales import SESSION_SKU_PREFIX
from ..money import convert_usd
from . import exchange_rate_service
from .concurrency import lock_for_update, run_atomic


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def create_product(
    sku: str,
    name: str,
    price_usd,
    quantity_on_hand: int = 0,
    category_id: int | None = None,
) -> Product:
    """Create a product, deriving its LBP price once from the USD price."""
    def _op():
        if db.session.query(Product.id).filter_by(sku=sku).first():
            raise ConflictError(f"Product SKU '{sku}' already exists")
        if sku.startswith(SESSION_SKU_PREFIX):
            raise ValidationError(f"SKU prefix '{SESSION_SKU_PREFIX}' is reserved for gaming sessions")

        product = Product(
            sku=sku,
            name=name,
            category_id=category_id,
            price=convert_usd(price_usd, exchange_rate_service.get_current_rate()),
            quantity_on_hand=quantity_on_hand,
            is_active=True,
        )
        db.session.add(product)
        db.session.flush()
        return product

    return run_atomic(_op)


def reserve_stock(product_id: int, quantity: int) -> Product:
    """
    Take `quantity` units out of stock for a pending sale line.

    Raises:
        InsufficientStockError: if fewer units are on hand than requested
    """
    if quantity <= 0:
        raise ValidationError("Quantity must be positive")

    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    if not product.is_active:
        raise ValidationError(f"Product {product.name} is not active")

    if product.quantity_on_hand < quantity:
        raise InsufficientStockError(
            f"Insufficient stock for {product.name}. Available: {product.quantity_on_hand}",
            details={
                "product_id": product.id,
                "requested_quantity": quantity,
                "on_hand": product.quantity_on_hand,
            },
        )

    product.quantity_on_hand -= quantity
    return product


def restock(product_id: int, quantity: int) -> Product:
    """Return `quantity` units to stock (line removed, reduced or sale cancelled)."""
    if quantity <= 0:
        raise ValidationError("Quantity must be positive")

    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise NotFoundError(f"Product {product_id} not found")

    product.quantity_on_hand += quantity
    return product


def create_category(name: str, description: str | None = None) -> Category:
    def _op():
        if db.session.query(Category.id).filter_by(name=name).first():
            raise ConflictError(f"Category '{name}' already exists")
        category = Category(name=name, description=description, is_active=True)
        db.session.add(category)
        db.session.flush()
        return category

    return run_atomic(_op)


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError(f"Category {category_id} not found")
    return category
