from .catalog import Category, Product
from .customers import Customer
from .pcs import PC
from .discounts import Discount
from .sales import Sale, SaleItem
from .sessions import GamingSession
from .documents import DocumentSequence
from .exchange_rates import ExchangeRate
from .fields import AppliedDiscount

__all__ = [
    'Category', 'Product',
    'Customer',
    'PC',
    'Discount',
    'Sale', 'SaleItem',
    'GamingSession',
    'DocumentSequence',
    'ExchangeRate',
    'AppliedDiscount',
]
