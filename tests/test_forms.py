import asyncio
import itertools
import threading

import pytest

from fundraiser_tracker.extraction import ExtractionError
from fundraiser_tracker.forms import RETRY_MESSAGE, OrderForm, QuickFill, QuickFillBusy, QuickFillState
from fundraiser_tracker.models import DeliveryStatus, OrderInput, ParsedOrder, PaymentStatus
from fundraiser_tracker.storage import MemoryStorage
from fundraiser_tracker.store import OrderStore


PARSED = ParsedOrder(
    customer_name="Sarah",
    phone_number="555-0199",
    items="2x Cookies",
    total_price=10.0,
    notes="leave at door",
)


class StubClient:
    def __init__(self, result=None, exc=None):
        self.result = result
        self.exc = exc
        self.calls = 0

    def extract(self, text):
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        return self.result


class BlockingClient:
    def __init__(self, result):
        self.result = result
        self.release = threading.Event()

    def extract(self, text):
        self.release.wait(timeout=5)
        return self.result


@pytest.fixture
def store():
    ids = (f"id-{n}" for n in itertools.count(1))
    s = OrderStore(MemoryStorage(), clock=lambda: 1_000, id_factory=lambda: next(ids))
    s.load()
    return s


def test_quick_fill_resolves_and_fills_form():
    quick_fill = QuickFill(StubClient(result=PARSED))
    form = OrderForm(payment_status=PaymentStatus.PAID)

    state = asyncio.run(quick_fill.run("Sarah wants 2 boxes of cookies"))

    assert state is QuickFillState.RESOLVED
    assert quick_fill.apply_to(form) is True
    assert form.customer_name == "Sarah"
    assert form.total_price == "10.00"
    assert form.notes == "leave at door"
    assert form.payment_status is PaymentStatus.PAID
    assert form.delivery_status is DeliveryStatus.PENDING


def test_quick_fill_failure_leaves_form_untouched():
    quick_fill = QuickFill(StubClient(exc=ExtractionError("offline")))
    form = OrderForm(customer_name="Typed by hand")

    state = asyncio.run(quick_fill.run("anything"))

    assert state is QuickFillState.FAILED
    assert quick_fill.error == RETRY_MESSAGE
    assert quick_fill.apply_to(form) is False
    assert form.customer_name == "Typed by hand"


def test_quick_fill_empty_result_changes_nothing():
    quick_fill = QuickFill(StubClient(result=None))
    form = OrderForm(customer_name="Kept")

    assert asyncio.run(quick_fill.run("anything")) is QuickFillState.RESOLVED
    assert quick_fill.apply_to(form) is False
    assert form.customer_name == "Kept"


def test_quick_fill_blank_text_is_ignored():
    client = StubClient(result=PARSED)
    quick_fill = QuickFill(client)

    assert asyncio.run(quick_fill.run("   ")) is QuickFillState.IDLE
    assert client.calls == 0


def test_quick_fill_unexpected_error_propagates():
    quick_fill = QuickFill(StubClient(exc=RuntimeError("bug")))

    with pytest.raises(RuntimeError):
        asyncio.run(quick_fill.run("anything"))
    assert quick_fill.state is QuickFillState.FAILED


def test_quick_fill_refuses_second_run_and_drops_discarded_result():
    client = BlockingClient(PARSED)
    quick_fill = QuickFill(client)

    async def scenario():
        task = asyncio.create_task(quick_fill.run("first"))
        await asyncio.sleep(0)
        assert quick_fill.pending
        with pytest.raises(QuickFillBusy):
            await quick_fill.run("second")
        quick_fill.discard()
        client.release.set()
        return await task

    state = asyncio.run(scenario())

    assert state is QuickFillState.IDLE
    assert quick_fill.result is None
    assert quick_fill.apply_to(OrderForm()) is False


def test_form_save_creates_new_order(store):
    form = OrderForm(customer_name="Dana", items="1x Pie", total_price="7.5")

    order = form.save(store)

    assert order.order_number == "ORD-004"
    assert order.total_price == 7.5
    assert store.orders[0] is order


def test_form_edit_round_trip(store):
    form = OrderForm.from_order(store.get("1"))
    assert form.is_editing
    assert form.total_price == "18.00"

    form.notes = "Ring twice"
    order = form.save(store)

    assert order.id == "1"
    assert order.order_number == "ORD-001"
    assert order.notes == "Ring twice"
    assert order.total_price == 18.0
    assert len(store) == 3


def test_form_edit_keeps_sub_cent_price(store):
    created = store.create(OrderInput(customer_name="Pat", items="3x Fudge", total_price="12.345"))

    form = OrderForm.from_order(created)
    form.notes = "Back door"
    saved = form.save(store)

    assert form.total_price == "12.345"
    assert saved.total_price == 12.345
    assert saved.notes == "Back door"
