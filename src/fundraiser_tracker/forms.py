"""New/Edit order form state and the AI quick-fill action."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .extraction import ExtractionError, OrderExtractionClient
from .logging import get_logger
from .models import DeliveryStatus, Order, OrderInput, ParsedOrder, PaymentStatus
from .store import OrderStore


LOG = get_logger("forms")

RETRY_MESSAGE = "Failed to parse. Please try again or enter manually."


def _format_price(value: float) -> str:
    """Show cents when that is exact; otherwise keep every digit so a save does not round."""
    cents = f"{value:.2f}"
    if float(cents) == value:
        return cents
    return repr(float(value))


@dataclass
class OrderForm:
    """Field values of the order form as the user sees them.

    ``editing_id`` is set when the form edits an existing order; saving then
    updates that order instead of creating a new one.
    """

    customer_name: str = ""
    phone_number: str = ""
    items: str = ""
    total_price: str = ""
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    delivery_status: DeliveryStatus = DeliveryStatus.PENDING
    notes: str = ""
    editing_id: Optional[str] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderForm":
        return cls(
            customer_name=order.customer_name,
            phone_number=order.phone_number,
            items=order.items,
            total_price=_format_price(order.total_price),
            payment_status=order.payment_status,
            delivery_status=order.delivery_status,
            notes=order.notes,
            editing_id=order.id,
        )

    @property
    def is_editing(self) -> bool:
        return self.editing_id is not None

    def apply_parsed(self, parsed: ParsedOrder) -> None:
        """Pre-fill the text fields from an extraction result; statuses stay as chosen."""

        self.customer_name = parsed.customer_name
        self.phone_number = parsed.phone_number
        self.items = parsed.items
        self.total_price = _format_price(parsed.total_price)
        self.notes = parsed.notes

    def to_input(self) -> OrderInput:
        return OrderInput(
            customer_name=self.customer_name,
            phone_number=self.phone_number,
            items=self.items,
            total_price=self.total_price,
            payment_status=self.payment_status,
            delivery_status=self.delivery_status,
            notes=self.notes,
        )

    def save(self, store: OrderStore) -> Optional[Order]:
        """Commit the form to the store (the only path from quick-fill to storage)."""

        if self.editing_id is not None:
            return store.update(self.editing_id, self.to_input())
        return store.create(self.to_input())


class QuickFillState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class QuickFillBusy(RuntimeError):
    """A quick-fill request is already in flight."""


class QuickFill:
    """Explicit async operation around one extraction round trip.

    States: IDLE -> PENDING -> RESOLVED | FAILED. While PENDING, ``run``
    refuses to start again. ``discard`` detaches an in-flight call so its
    answer is dropped when it arrives.
    """

    def __init__(self, client: OrderExtractionClient) -> None:
        self.client = client
        self.state = QuickFillState.IDLE
        self.result: Optional[ParsedOrder] = None
        self.error: Optional[str] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self.state is QuickFillState.PENDING

    async def run(self, text: str) -> QuickFillState:
        if self.pending:
            raise QuickFillBusy("quick-fill already running")
        if not text or not text.strip():
            return self.state

        self._generation += 1
        generation = self._generation
        self.state = QuickFillState.PENDING
        self.result = None
        self.error = None

        try:
            parsed = await asyncio.to_thread(self.client.extract, text)
        except ExtractionError as exc:
            if generation != self._generation:
                LOG.debug("Dropping stale quick-fill failure: %s", exc)
                return self.state
            LOG.warning("Quick-fill failed: %s", exc)
            self.state = QuickFillState.FAILED
            self.error = RETRY_MESSAGE
            return self.state
        except Exception:
            if generation == self._generation:
                self.state = QuickFillState.FAILED
                self.error = RETRY_MESSAGE
            raise

        if generation != self._generation:
            LOG.debug("Dropping stale quick-fill result")
            return self.state
        self.result = parsed
        self.state = QuickFillState.RESOLVED
        return self.state

    def discard(self) -> None:
        self._generation += 1
        self.state = QuickFillState.IDLE
        self.result = None
        self.error = None

    def apply_to(self, form: OrderForm) -> bool:
        """Copy a resolved, non-empty result into ``form``; otherwise leave it untouched."""

        if self.state is not QuickFillState.RESOLVED or self.result is None:
            return False
        form.apply_parsed(self.result)
        return True
