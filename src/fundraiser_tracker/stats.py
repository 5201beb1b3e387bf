"""Summary statistics derived from the order collection."""

from __future__ import annotations

import math
from typing import Dict, Iterable, List

from .models import DeliveryStatus, Order, OrderStats, PaymentStatus, coerce_price


def aggregate(orders: Iterable[Order]) -> OrderStats:
    """Produce an :class:`OrderStats` for the supplied orders.

    Prices are coerced again here, so an order carrying a non-numeric or
    missing ``total_price`` contributes 0 to ``total_sales``. The prices are
    summed with ``math.fsum`` so the total does not depend on iteration order.
    """

    prices: List[float] = []
    total_orders = 0
    paid_orders = 0
    delivered_orders = 0

    for order in orders:
        total_orders += 1
        prices.append(coerce_price(getattr(order, "total_price", None)))
        if order.payment_status == PaymentStatus.PAID:
            paid_orders += 1
        if order.delivery_status == DeliveryStatus.DELIVERED:
            delivered_orders += 1

    return OrderStats(
        total_sales=round(math.fsum(prices), 2),
        total_orders=total_orders,
        paid_orders=paid_orders,
        unpaid_orders=total_orders - paid_orders,
        delivered_orders=delivered_orders,
        pending_orders=total_orders - delivered_orders,
    )


def payment_breakdown(stats: OrderStats) -> List[Dict[str, object]]:
    """Two-segment chart data: paid vs unpaid."""

    return [
        {"name": PaymentStatus.PAID.value, "value": stats.paid_orders},
        {"name": PaymentStatus.UNPAID.value, "value": stats.unpaid_orders},
    ]


def delivery_breakdown(stats: OrderStats) -> List[Dict[str, object]]:
    """Two-segment chart data: delivered vs pending."""

    return [
        {"name": DeliveryStatus.DELIVERED.value, "value": stats.delivered_orders},
        {"name": DeliveryStatus.PENDING.value, "value": stats.pending_orders},
    ]
