"""Search filtering and recency ordering for order lists."""

from __future__ import annotations

from typing import Iterable, List

from .models import Order


def matches(order: Order, query: str) -> bool:
    needle = query.lower()
    return needle in order.customer_name.lower() or needle in order.order_number.lower()


def filter_orders(orders: Iterable[Order], query: str = "") -> List[Order]:
    """Return orders matching ``query``, newest first.

    An empty query keeps every order. ``sorted`` is stable, so orders with the
    same ``created_at`` keep their incoming relative order.
    """

    query = query or ""
    selected = [order for order in orders if matches(order, query)]
    return sorted(selected, key=lambda order: order.created_at, reverse=True)
