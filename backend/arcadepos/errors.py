# Overview: Typed billing errors shared by services, routes and the CLI.

from __future__ import annotations


class BillingError(Exception):
    """
    Base class for user-visible billing failures.

    Carries an HTTP status so routes can translate without a lookup table,
    and an optional details dict for structured client feedback.
    """
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(BillingError):
    """400-level input problem."""


class NotFoundError(BillingError):
    """Session, sale, PC, discount, product or customer is missing."""
    status_code = 404


class InvalidStateError(BillingError):
    """Operation is not legal for the record's current state."""


class DiscountNotApplicableError(InvalidStateError):
    """Discount is inactive, out of its window, or aimed at another target."""


class NegativeAmountError(InvalidStateError):
    """A money operation would have produced a negative amount."""


class InsufficientFundsError(BillingError):
    """Payment amount is below the total due."""


class InsufficientStockError(BillingError):
    """Product quantity on hand is below the requested quantity."""


class ConflictError(BillingError):
    """409-level uniqueness or concurrent-update conflict."""
    status_code = 409
