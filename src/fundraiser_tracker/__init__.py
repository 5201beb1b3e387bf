"""
Fundraiser order tracker.

Records customer orders, tracks payment and delivery status, derives sales
statistics, and can pre-fill the order form from free text through an
external language model.
"""

from .models import DeliveryStatus, Order, OrderInput, OrderStats, ParsedOrder, PaymentStatus
from .stats import aggregate
from .storage import MemoryStorage, SqliteStorage
from .store import OrderStore
from .view import filter_orders

__all__ = [
    "DeliveryStatus",
    "MemoryStorage",
    "Order",
    "OrderInput",
    "OrderStats",
    "OrderStore",
    "ParsedOrder",
    "PaymentStatus",
    "SqliteStorage",
    "aggregate",
    "filter_orders",
]
