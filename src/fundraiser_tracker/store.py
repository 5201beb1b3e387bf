"""Authoritative in-memory order collection, mirrored to durable storage."""

from __future__ import annotations

import json
import random
import string
import time
import uuid
from dataclasses import replace
from typing import Callable, List, Optional, Tuple

from .logging import get_logger
from .models import DeliveryStatus, Order, OrderInput, PaymentStatus, coerce_price
from .seed import load_seed_orders
from .storage import STORAGE_KEY, OrderStorage


LOG = get_logger("store")

_ID_ALPHABET = string.digits + string.ascii_lowercase


def now_ms() -> int:
    return int(time.time() * 1000)


def new_order_id() -> str:
    """Return a random UUID, or a time-based id when the OS has no entropy source."""

    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
        return f"order-{now_ms()}-{suffix}"


def format_order_number(sequence: int) -> str:
    return f"ORD-{sequence:03d}"


class OrderStore:
    """Order collection with create/update/delete/toggle operations.

    Every successful mutation rewrites the whole collection to ``storage``
    under ``key``. Operations on an unknown id are silent no-ops.
    """

    def __init__(
        self,
        storage: OrderStorage,
        *,
        key: str = STORAGE_KEY,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = new_order_id,
    ) -> None:
        self.storage = storage
        self.key = key
        self.clock = clock
        self.id_factory = id_factory
        self._orders: List[Order] = []

    # ---------- loading ----------
    def load(self) -> Tuple[Order, ...]:
        """Replace the in-memory collection with the stored one (or the seed set)."""

        records = self._read_records()
        if records is None:
            self._orders = load_seed_orders(self.clock())
            LOG.info("Seeded order collection with %d example orders", len(self._orders))
            return self.orders

        orders: List[Order] = []
        seen: set = set()
        for idx, record in enumerate(records):
            if not isinstance(record, dict):
                LOG.warning("Skipping stored order #%d: not an object", idx)
                continue
            try:
                order = Order.from_dict(record)
            except ValueError as exc:
                LOG.warning("Skipping stored order #%d: %s", idx, exc)
                continue
            if order.id in seen:
                LOG.warning("Skipping stored order #%d: duplicate id %s", idx, order.id)
                continue
            seen.add(order.id)
            orders.append(order)
        self._orders = orders
        LOG.info("Loaded %d orders from storage", len(orders))
        return self.orders

    def _read_records(self) -> Optional[list]:
        raw = self.storage.read(self.key)
        if raw is None or not raw.strip():
            LOG.warning("No saved orders under %r; falling back to example data", self.key)
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            LOG.warning("Saved orders under %r are not valid JSON (%s); falling back to example data", self.key, exc)
            return None
        if not isinstance(data, list):
            LOG.warning("Saved orders under %r are not a list; falling back to example data", self.key)
            return None
        return data

    # ---------- reads ----------
    @property
    def orders(self) -> Tuple[Order, ...]:
        return tuple(self._orders)

    def get(self, order_id: str) -> Optional[Order]:
        for order in self._orders:
            if order.id == order_id:
                return order
        return None

    def __len__(self) -> int:
        return len(self._orders)

    # ---------- mutations ----------
    # Each mutation builds the next collection, writes it, and only then
    # swaps it in, so a failing write leaves memory matching storage.
    def create(self, data: OrderInput) -> Order:
        order = Order(
            id=self.id_factory(),
            order_number=format_order_number(len(self._orders) + 1),
            customer_name=data.customer_name,
            phone_number=data.phone_number,
            items=data.items,
            total_price=coerce_price(data.total_price),
            payment_status=PaymentStatus.coerce(data.payment_status),
            delivery_status=DeliveryStatus.coerce(data.delivery_status),
            notes=data.notes,
            created_at=self.clock(),
        )
        # Replaying an existing id would break uniqueness; draw again.
        while self.get(order.id) is not None:
            order.id = self.id_factory()
        self._commit([order] + self._orders)
        LOG.debug("Created order %s (%s)", order.order_number, order.id)
        return order

    def update(self, order_id: str, data: OrderInput) -> Optional[Order]:
        order = self.get(order_id)
        if order is None:
            LOG.debug("update: no order with id %s", order_id)
            return None
        changed = replace(order)
        changed.apply(data)
        self._commit(self._replaced(changed))
        LOG.debug("Updated order %s", changed.order_number)
        return changed

    def delete(self, order_id: str) -> bool:
        remaining = [o for o in self._orders if o.id != order_id]
        if len(remaining) == len(self._orders):
            LOG.debug("delete: no order with id %s", order_id)
            return False
        self._commit(remaining)
        LOG.debug("Deleted order %s", order_id)
        return True

    def toggle_payment(self, order_id: str) -> Optional[Order]:
        order = self.get(order_id)
        if order is None:
            return None
        changed = replace(order, payment_status=order.payment_status.toggled())
        self._commit(self._replaced(changed))
        LOG.debug("Order %s payment -> %s", changed.order_number, changed.payment_status.value)
        return changed

    def toggle_delivery(self, order_id: str) -> Optional[Order]:
        order = self.get(order_id)
        if order is None:
            return None
        changed = replace(order, delivery_status=order.delivery_status.toggled())
        self._commit(self._replaced(changed))
        LOG.debug("Order %s delivery -> %s", changed.order_number, changed.delivery_status.value)
        return changed

    def _replaced(self, changed: Order) -> List[Order]:
        return [changed if o.id == changed.id else o for o in self._orders]

    def _commit(self, orders: List[Order]) -> None:
        payload = json.dumps([o.as_dict() for o in orders], ensure_ascii=False)
        self.storage.write(self.key, payload)
        self._orders = orders
