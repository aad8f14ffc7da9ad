# Overview: Customer collaborator; existence checks and purchase statistics.

from __future__ import annotations

from ..errors import NotFoundError
from ..extensions import db
from ..models import Customer
from ..money import Money
from ..time_utils import utcnow
from .concurrency import run_atomic


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def customer_exists(customer_id: int) -> bool:
    return db.session.query(Customer.id).filter_by(id=customer_id).first() is not None


def create_customer(name: str, phone: str | None = None, email: str | None = None) -> Customer:
    def _op():
        customer = Customer(name=name, phone=phone, email=email, is_active=True)
        db.session.add(customer)
        db.session.flush()
        return customer

    return run_atomic(_op)


def record_purchase(customer_id: int, amount: Money) -> Customer:
    """Add a paid amount (USD side) to the customer's lifetime stats."""
    customer = get_customer(customer_id)
    usd_cents, _ = amount.to_storage()
    customer.total_spent_usd_cents = (customer.total_spent_usd_cents or 0) + usd_cents
    customer.total_visits = (customer.total_visits or 0) + 1
    customer.last_visit_at = utcnow()
    return customer
