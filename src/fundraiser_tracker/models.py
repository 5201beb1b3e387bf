"""Data models for fundraiser order tracking."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping


class PaymentStatus(str, Enum):
    PAID = "Paid"
    UNPAID = "Unpaid"

    def toggled(self) -> "PaymentStatus":
        return PaymentStatus.UNPAID if self is PaymentStatus.PAID else PaymentStatus.PAID

    @classmethod
    def coerce(cls, value: Any) -> "PaymentStatus":
        """Anything that is not "Paid" counts as unpaid."""
        if isinstance(value, cls):
            return value
        return cls.PAID if value == cls.PAID.value else cls.UNPAID


class DeliveryStatus(str, Enum):
    DELIVERED = "Delivered"
    PENDING = "Pending"

    def toggled(self) -> "DeliveryStatus":
        return DeliveryStatus.PENDING if self is DeliveryStatus.DELIVERED else DeliveryStatus.DELIVERED

    @classmethod
    def coerce(cls, value: Any) -> "DeliveryStatus":
        """Anything that is not "Delivered" counts as pending."""
        if isinstance(value, cls):
            return value
        return cls.DELIVERED if value == cls.DELIVERED.value else cls.PENDING


def coerce_price(value: Any) -> float:
    """Return a finite, non-negative price; anything else becomes 0.0."""

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass(slots=True)
class OrderInput:
    """Editable order fields, as submitted by a form or the CLI.

    ``total_price`` may still hold raw user input; the store coerces it.
    """

    customer_name: str = ""
    phone_number: str = ""
    items: str = ""
    total_price: Any = 0
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    delivery_status: DeliveryStatus = DeliveryStatus.PENDING
    notes: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OrderInput":
        """Build from a camelCase mapping (web API / storage shape)."""

        return cls(
            customer_name=_text(data.get("customerName")),
            phone_number=_text(data.get("phoneNumber")),
            items=_text(data.get("items")),
            total_price=data.get("totalPrice"),
            payment_status=PaymentStatus.coerce(data.get("paymentStatus")),
            delivery_status=DeliveryStatus.coerce(data.get("deliveryStatus")),
            notes=_text(data.get("notes")),
        )

    @classmethod
    def from_order(cls, order: "Order") -> "OrderInput":
        return cls(
            customer_name=order.customer_name,
            phone_number=order.phone_number,
            items=order.items,
            total_price=order.total_price,
            payment_status=order.payment_status,
            delivery_status=order.delivery_status,
            notes=order.notes,
        )


@dataclass(slots=True)
class Order:
    """One fundraiser transaction record."""

    id: str
    order_number: str
    customer_name: str
    phone_number: str
    items: str
    total_price: float
    payment_status: PaymentStatus
    delivery_status: DeliveryStatus
    notes: str
    created_at: int

    def as_dict(self) -> Dict[str, object]:
        """Serialize with the camelCase keys used in storage and the web API."""

        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "customerName": self.customer_name,
            "phoneNumber": self.phone_number,
            "items": self.items,
            "totalPrice": self.total_price,
            "paymentStatus": self.payment_status.value,
            "deliveryStatus": self.delivery_status.value,
            "notes": self.notes,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Order":
        """Rebuild an order from its stored form.

        Raises ``ValueError`` when the record has no usable id.
        """

        order_id = data.get("id")
        if order_id is None or _text(order_id).strip() == "":
            raise ValueError("order record has no id")
        created_at = data.get("createdAt")
        if isinstance(created_at, bool) or not isinstance(created_at, (int, float)):
            created_at = 0
        return cls(
            id=_text(order_id),
            order_number=_text(data.get("orderNumber")),
            customer_name=_text(data.get("customerName")),
            phone_number=_text(data.get("phoneNumber")),
            items=_text(data.get("items")),
            total_price=coerce_price(data.get("totalPrice")),
            payment_status=PaymentStatus.coerce(data.get("paymentStatus")),
            delivery_status=DeliveryStatus.coerce(data.get("deliveryStatus")),
            notes=_text(data.get("notes")),
            created_at=int(created_at),
        )

    def apply(self, data: OrderInput) -> None:
        """Merge editable fields in place; id, number and timestamp stay put."""

        self.customer_name = data.customer_name
        self.phone_number = data.phone_number
        self.items = data.items
        self.total_price = coerce_price(data.total_price)
        self.payment_status = PaymentStatus.coerce(data.payment_status)
        self.delivery_status = DeliveryStatus.coerce(data.delivery_status)
        self.notes = data.notes


@dataclass(slots=True, frozen=True)
class OrderStats:
    """Aggregated statistics about the order collection."""

    total_sales: float = 0.0
    total_orders: int = 0
    paid_orders: int = 0
    unpaid_orders: int = 0
    delivered_orders: int = 0
    pending_orders: int = 0

    def as_dict(self) -> Dict[str, object]:
        return {
            "totalSales": self.total_sales,
            "totalOrders": self.total_orders,
            "paidOrders": self.paid_orders,
            "unpaidOrders": self.unpaid_orders,
            "deliveredOrders": self.delivered_orders,
            "pendingOrders": self.pending_orders,
        }


@dataclass(slots=True, frozen=True)
class ParsedOrder:
    """Order fields recovered from free text by the extraction service."""

    customer_name: str = ""
    phone_number: str = ""
    items: str = ""
    total_price: float = 0.0
    notes: str = ""

    def as_dict(self) -> Dict[str, object]:
        return {
            "customerName": self.customer_name,
            "phoneNumber": self.phone_number,
            "items": self.items,
            "totalPrice": self.total_price,
            "notes": self.notes,
        }

