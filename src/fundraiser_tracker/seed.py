"""Example orders used when no saved collection can be loaded."""

from __future__ import annotations

from typing import List

from .models import DeliveryStatus, Order, PaymentStatus


def load_seed_orders(now_ms: int) -> List[Order]:
    """Return the three example orders, timestamped relative to ``now_ms``."""

    return [
        Order(
            id="1",
            order_number="ORD-001",
            customer_name="John Doe",
            phone_number="555-1234",
            items="2x Cookies, 1x Brownies",
            total_price=18.00,
            payment_status=PaymentStatus.UNPAID,
            delivery_status=DeliveryStatus.DELIVERED,
            notes="Leave at front desk",
            created_at=now_ms - 100_000,
        ),
        Order(
            id="2",
            order_number="ORD-002",
            customer_name="Mary Kia",
            phone_number="555-8090",
            items="3x Cupcakes",
            total_price=9.00,
            payment_status=PaymentStatus.PAID,
            delivery_status=DeliveryStatus.PENDING,
            notes="Needs delivery after school",
            created_at=now_ms,
        ),
        Order(
            id="3",
            order_number="ORD-003",
            customer_name="Alex Smith",
            phone_number="555-0000",
            items="1x Soda",
            total_price=2.00,
            payment_status=PaymentStatus.UNPAID,
            delivery_status=DeliveryStatus.PENDING,
            notes="",
            created_at=now_ms - 50_000,
        ),
    ]
