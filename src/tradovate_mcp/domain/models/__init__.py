"""Domain models"""

from .account import Account
from .contract import Contract
from .order import ORDER_ACTIONS, ORDER_TYPES, Order, validate_order_prices
from .position import Position

__all__ = [
    "Account",
    "Contract",
    "Order",
    "Position",
    "ORDER_ACTIONS",
    "ORDER_TYPES",
    "validate_order_prices",
]
