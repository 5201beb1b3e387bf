import itertools

import pytest
from starlette.testclient import TestClient

from fundraiser_tracker.extraction import ExtractionError
from fundraiser_tracker.forms import RETRY_MESSAGE
from fundraiser_tracker.models import ParsedOrder
from fundraiser_tracker.storage import MemoryStorage
from fundraiser_tracker.store import OrderStore
from fundraiser_tracker.web import create_app


class StubExtractor:
    def __init__(self, result=None, exc=None):
        self.result = result
        self.exc = exc

    def extract(self, text):
        if self.exc is not None:
            raise self.exc
        return self.result


def _store():
    clock = itertools.count(1_700_000_000_000, 1000)
    ids = (f"id-{n}" for n in itertools.count(1))
    store = OrderStore(MemoryStorage(), clock=lambda: next(clock), id_factory=lambda: next(ids))
    store.load()
    return store


def _client(tmp_path, extractor=None):
    app = create_app(
        root_dir=str(tmp_path),
        store=_store(),
        extractor=extractor,
        configure_extraction=False,
        serve_static=False,
    )
    return TestClient(app)


@pytest.fixture
def client(tmp_path):
    return _client(tmp_path)


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "orders": 3}


def test_root_reports_api_only(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert "No static frontend" in resp.json()["detail"]


def test_stats_for_seed_orders(client):
    body = client.get("/api/stats").json()

    assert body["totalSales"] == 29.0
    assert body["totalOrders"] == 3
    assert body["paidOrders"] == 1
    assert body["unpaidOrders"] == 2
    assert body["deliveredOrders"] == 1
    assert body["pendingOrders"] == 2
    assert body["charts"]["payment"] == [{"name": "Paid", "value": 1}, {"name": "Unpaid", "value": 2}]
    assert body["charts"]["delivery"] == [{"name": "Delivered", "value": 1}, {"name": "Pending", "value": 2}]


def test_list_orders_newest_first_and_search(client):
    body = client.get("/api/orders").json()
    assert [o["orderNumber"] for o in body["items"]] == ["ORD-002", "ORD-003", "ORD-001"]
    assert body["total"] == 3

    body = client.get("/api/orders", params={"search": "mary"}).json()
    assert [o["customerName"] for o in body["items"]] == ["Mary Kia"]

    assert client.get("/api/orders", params={"search": "zzz"}).json() == {"items": [], "total": 0}


def test_create_update_delete_cycle(client):
    resp = client.post(
        "/api/orders",
        json={"customerName": "Dana", "items": "1x Pie", "totalPrice": "abc", "paymentStatus": "Paid"},
    )
    assert resp.status_code == 201
    created = resp.json()
    assert created["orderNumber"] == "ORD-004"
    assert created["totalPrice"] == 0
    assert created["paymentStatus"] == "Paid"
    assert created["deliveryStatus"] == "Pending"

    resp = client.put(
        f"/api/orders/{created['id']}",
        json={"customerName": "Dana R.", "items": "2x Pie", "totalPrice": 14, "paymentStatus": "Paid"},
    )
    assert resp.status_code == 200
    assert resp.json()["customerName"] == "Dana R."
    assert resp.json()["orderNumber"] == "ORD-004"

    assert client.get(f"/api/orders/{created['id']}").json()["totalPrice"] == 14

    assert client.delete(f"/api/orders/{created['id']}").json() == {"deleted": True}
    assert client.get(f"/api/orders/{created['id']}").status_code == 404
    assert client.delete(f"/api/orders/{created['id']}").json() == {"deleted": False}


def test_toggles(client):
    resp = client.post("/api/orders/1/toggle-payment")
    assert resp.status_code == 200
    assert resp.json()["paymentStatus"] == "Paid"

    resp = client.post("/api/orders/1/toggle-delivery")
    assert resp.json()["deliveryStatus"] == "Pending"

    assert client.post("/api/orders/missing/toggle-payment").status_code == 404


def test_put_replaces_every_editable_field(client):
    resp = client.put("/api/orders/1", json={"customerName": "John D.", "items": "1x Pie"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["customerName"] == "John D."
    assert body["orderNumber"] == "ORD-001"
    assert body["phoneNumber"] == ""
    assert body["notes"] == ""
    assert body["totalPrice"] == 0
    assert body["paymentStatus"] == "Unpaid"
    assert body["deliveryStatus"] == "Pending"


def test_unknown_order_update_is_404(client):
    assert client.put("/api/orders/missing", json={"customerName": "X"}).status_code == 404


@pytest.mark.parametrize("body", [b"not json", b"[1, 2]"])
def test_invalid_body_is_400(client, body):
    resp = client.post("/api/orders", content=body, headers={"Content-Type": "application/json"})
    assert resp.status_code == 400


def test_quick_fill_without_extractor_is_503(client):
    assert client.post("/api/quick-fill", json={"text": "anything"}).status_code == 503


def test_quick_fill_returns_parsed_fields(tmp_path):
    parsed = ParsedOrder(customer_name="Sarah", items="2x Cookies", total_price=10.0)
    client = _client(tmp_path, extractor=StubExtractor(result=parsed))

    resp = client.post("/api/quick-fill", json={"text": "Sarah wants 2 boxes of cookies, $10"})

    assert resp.status_code == 200
    assert resp.json()["result"]["customerName"] == "Sarah"
    assert resp.json()["result"]["totalPrice"] == 10.0
    # Quick-fill never writes an order on its own.
    assert client.get("/api/health").json()["orders"] == 3


def test_quick_fill_empty_result(tmp_path):
    client = _client(tmp_path, extractor=StubExtractor(result=None))
    assert client.post("/api/quick-fill", json={"text": "hmm"}).json() == {"result": None}


def test_quick_fill_failure_is_retryable(tmp_path):
    client = _client(tmp_path, extractor=StubExtractor(exc=ExtractionError("offline")))

    resp = client.post("/api/quick-fill", json={"text": "anything"})

    assert resp.status_code == 502
    assert resp.json() == {"detail": RETRY_MESSAGE, "retryable": True}


def test_quick_fill_requires_text(tmp_path):
    client = _client(tmp_path, extractor=StubExtractor(result=None))
    assert client.post("/api/quick-fill", json={"text": "  "}).status_code == 400
    assert client.post("/api/quick-fill", json={}).status_code == 400


def test_default_store_persists_to_sqlite(tmp_path, monkeypatch):
    monkeypatch.setenv("FUNDRAISER_DB_PATH", str(tmp_path / "db" / "orders.sqlite3"))
    app = create_app(root_dir=str(tmp_path), configure_extraction=False, serve_static=False)
    with TestClient(app) as client:
        client.post("/api/orders", json={"customerName": "Persisted", "items": "1x Soda", "totalPrice": 2})

    again = TestClient(create_app(root_dir=str(tmp_path), configure_extraction=False, serve_static=False))
    names = [o["customerName"] for o in again.get("/api/orders").json()["items"]]
    assert "Persisted" in names
    assert len(names) == 4
