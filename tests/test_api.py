import time
from datetime import datetime

import pytest

import main
from database import DatabaseUnavailable
from schemas import Deliveryfee, Order, Voucher


def ts(*args):
    return datetime(*args).timestamp() * 1000


def hours_from_now(hours):
    return (time.time() + hours * 3600) * 1000


@pytest.fixture
def created(monkeypatch):
    saved = []

    def fake_create(collection, order):
        saved.append((collection, order))
        return "665f1c2e9b1e8a0012345678"

    monkeypatch.setattr(main, "create_document", fake_create)
    return saved


def order_payload(**overrides):
    payload = {
        "customer_id": "cust1",
        "customer_name": "Ana Cruz",
        "customer_phone": "09171234567",
        "items": [{"menu_item_id": "m1", "name": "Adobo", "price": 100, "quantity": 2}],
        "order_type": "takeaway",
    }
    payload.update(overrides)
    return payload


def test_root(client):
    assert client.get("/").json() == {"message": "Restaurant Ordering API running"}


def test_status_report(client, monkeypatch):
    monkeypatch.setattr(main, "db", None)
    body = client.get("/test").json()
    assert body["backend"] == "✅ Running"
    assert body["connection_status"] == "Not Connected"


def test_status_filter_options(client):
    ids = [option["id"] for option in client.get("/orders/status-filters").json()]
    assert "active" in ids and "pre-order-pending" in ids


def test_read_schedule(client):
    body = client.get("/restaurant/preorder-schedule").json()
    assert body["restrictions_enabled"] is True
    assert body["dates"][0]["start_time"] == "11:00"


def test_replace_schedule_rejects_bad_window(client, monkeypatch):
    monkeypatch.setattr(main, "save_preorder_schedule", lambda s: s)
    bad = {"restrictions_enabled": True, "dates": [{"date": "2025-01-01", "start_time": "25:00"}]}
    assert client.put("/admin/restaurant/preorder-schedule", json=bad).status_code == 422

    good = {"restrictions_enabled": True, "dates": [{"date": "2025-01-01", "start_time": "22:00", "end_time": "02:00"}]}
    response = client.put("/admin/restaurant/preorder-schedule", json=good)
    assert response.status_code == 200
    assert response.json()["dates"][0]["end_time"] == "02:00"


def test_time_options_for_published_date(client):
    body = client.get("/preorder/time-options", params={"date": "2025-01-01", "hour": "02"}).json()
    assert body["window"] == "11:00 AM - 2:00 PM"
    assert body["allowed_hours"] == ["01", "02", "11", "12"]
    assert body["period"] == "PM"
    assert body["allowed_minutes"] == ["00"]


def test_time_options_without_window(client):
    body = client.get("/preorder/time-options", params={"date": "2025-03-03"}).json()
    assert body["window"] == ""
    assert len(body["allowed_hours"]) == 12
    assert len(body["allowed_minutes"]) == 60
    assert body["period"] == "PM"


def test_validate_preorder(client):
    body = client.post("/preorder/validate", json={"date": "2025-01-01", "time": "10:30"}).json()
    assert body["valid"] is False
    assert body["date_error"] == ""
    assert body["time_error"] == "Time must be between 11:00 AM and 2:00 PM"


def test_create_regular_order(client, created):
    response = client.post("/orders", json=order_payload())
    assert response.status_code == 200
    assert response.json()["total"] == 210
    collection, order = created[0]
    assert collection == "order"
    assert order.status == "pending"
    assert order.pre_order_scheduled_at is None


def test_create_delivery_preorder(client, created, monkeypatch):
    monkeypatch.setattr(main, "get_delivery_fees", lambda: [Deliveryfee(barangay="Puro-Batia", fee=50)])
    response = client.post("/orders", json=order_payload(
        order_type="pre-order",
        pre_order_fulfillment="delivery",
        customer_address="12 Puro Batia, Libmanan",
        pre_order_date="2025-01-01",
        pre_order_time="12:30",
    ))
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pre-order-pending"
    assert body["total"] == 260
    order = created[0][1]
    assert order.delivery_fee == 50
    assert order.pre_order_scheduled_at == ts(2025, 1, 1, 12, 30)


def test_create_preorder_outside_window(client, created):
    response = client.post("/orders", json=order_payload(
        order_type="pre-order",
        pre_order_fulfillment="pickup",
        pre_order_date="2025-01-01",
        pre_order_time="15:00",
    ))
    assert response.status_code == 400
    assert response.json()["detail"] == "Time must be between 11:00 AM and 2:00 PM"
    assert created == []


def test_create_preorder_on_unpublished_date(client, created):
    response = client.post("/orders", json=order_payload(
        order_type="pre-order",
        pre_order_fulfillment="pickup",
        pre_order_date="2025-01-09",
        pre_order_time="12:00",
    ))
    assert response.status_code == 400
    assert response.json()["detail"] == "Please choose one of the published pre-order dates."


def test_create_empty_cart(client, created):
    assert client.post("/orders", json=order_payload(items=[])).status_code == 400


class TestListOrders:
    @pytest.fixture
    def stored(self, monkeypatch):
        calls = []
        orders = [
            Order(_id="o1", customer_id="cust1", status="pending", creation_time=ts(2025, 1, 10)),
            Order(_id="o2", customer_id="cust1", status="completed", created_at=ts(2025, 1, 12)),
            Order(_id="o3", customer_id="cust2", status="ready", order_type="pre-order", creation_time=ts(2025, 1, 11)),
        ]

        def fake_find(customer_id=None, status=None):
            calls.append((customer_id, status))
            return orders

        monkeypatch.setattr(main, "find_orders", fake_find)
        return calls

    def test_owner_view_most_recent_first(self, client, stored):
        body = client.get("/orders").json()
        assert [o["_id"] for o in body] == ["o2", "o3", "o1"]
        assert stored == [(None, None)]

    def test_customer_active_orders(self, client, stored):
        body = client.get("/orders", params={"customer_id": "cust1", "status": "active"}).json()
        assert [o["_id"] for o in body] == ["o1"]
        assert stored == [("cust1", None)]

    def test_concrete_status_uses_index(self, client, stored):
        client.get("/orders", params={"status": "completed"})
        assert stored == [(None, "completed")]

    def test_pre_orders_in_range(self, client, stored):
        params = {"order_type": "pre-order", "from_date": "2025-01-11", "to_date": "2025-01-11"}
        assert [o["_id"] for o in client.get("/orders", params=params).json()] == ["o3"]


class TestStatusUpdate:
    def test_final_state_is_locked(self, client, monkeypatch):
        monkeypatch.setattr(main, "get_order", lambda _id: Order(_id=_id, customer_id="c", status="completed"))
        response = client.put("/admin/orders/abc/status", json={"status": "ready"})
        assert response.status_code == 409

    def test_denial_needs_reason(self, client, monkeypatch):
        monkeypatch.setattr(main, "get_order", lambda _id: Order(_id=_id, customer_id="c", status="pending"))
        response = client.put("/admin/orders/abc/status", json={"status": "denied"})
        assert response.status_code == 400

    def test_transition(self, client, monkeypatch):
        updates = []
        monkeypatch.setattr(main, "get_order", lambda _id: Order(_id=_id, customer_id="c", status="pending"))
        monkeypatch.setattr(main, "update_document", lambda coll, _id, data: updates.append((coll, _id, data)) or True)
        response = client.put("/admin/orders/abc/status", json={"status": "denied", "denial_reason": "Sold out"})
        assert response.json() == {"updated": True, "status": "denied"}
        assert updates == [("order", "abc", {"status": "denied", "denial_reason": "Sold out"})]

    def test_missing_order(self, client, monkeypatch):
        monkeypatch.setattr(main, "get_order", lambda _id: None)
        assert client.put("/admin/orders/abc/status", json={"status": "ready"}).status_code == 404


def test_database_unavailable_maps_to_503(client, monkeypatch):
    def unavailable():
        raise DatabaseUnavailable("Database not available.")

    monkeypatch.setattr(main, "get_preorder_schedule", unavailable)
    response = client.get("/restaurant/preorder-schedule")
    assert response.status_code == 503
    assert response.json() == {"detail": "Database not available."}


class TestCustomerCancel:
    @pytest.fixture
    def updates(self, monkeypatch):
        calls = []
        monkeypatch.setattr(main, "update_document", lambda coll, _id, data: calls.append((coll, _id, data)) or True)
        return calls

    def stub_order(self, monkeypatch, **fields):
        monkeypatch.setattr(main, "get_order", lambda _id: Order(_id=_id, customer_id="cust1", **fields))

    def test_pre_order_due_within_a_day_is_refused(self, client, monkeypatch, updates):
        self.stub_order(monkeypatch, order_type="pre-order", status="pre-order-pending", pre_order_scheduled_at=hours_from_now(1))
        response = client.put("/orders/abc/cancel", json={"customer_id": "cust1"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Pre-orders can only be cancelled at least 1 day before the scheduled order date"
        assert updates == []

    def test_pre_order_two_days_ahead_is_cancelled(self, client, monkeypatch, updates):
        self.stub_order(monkeypatch, order_type="pre-order", status="pre-order-pending", pre_order_scheduled_at=hours_from_now(48))
        response = client.put("/orders/abc/cancel", json={"customer_id": "cust1"})
        assert response.json() == {"updated": True, "status": "cancelled"}
        assert updates == [("order", "abc", {"status": "cancelled"})]

    def test_accepted_order_is_refused(self, client, monkeypatch, updates):
        self.stub_order(monkeypatch, status="accepted")
        assert client.put("/orders/abc/cancel", json={"customer_id": "cust1"}).status_code == 400
        assert updates == []

    def test_someone_elses_order(self, client, monkeypatch, updates):
        self.stub_order(monkeypatch, status="pending")
        assert client.put("/orders/abc/cancel", json={"customer_id": "cust2"}).status_code == 403

    def test_missing_order(self, client, monkeypatch, updates):
        monkeypatch.setattr(main, "get_order", lambda _id: None)
        assert client.put("/orders/abc/cancel", json={"customer_id": "cust1"}).status_code == 404


class TestVoucherCheckout:
    @pytest.fixture
    def voucher_store(self, monkeypatch):
        store = {
            "SAVE10": Voucher(code="SAVE10", type="percentage", value=10, max_discount=15, expires_at=hours_from_now(24), usage_limit=3),
            "LESS30": Voucher(code="LESS30", type="fixed", value=30, min_order_amount=100, expires_at=hours_from_now(24), usage_limit=3),
            "OLD": Voucher(code="OLD", type="fixed", value=30, expires_at=hours_from_now(-1), usage_limit=3),
        }
        used = []

        def fake_increment(voucher):
            used.append(voucher.code)
            return True

        monkeypatch.setattr(main, "get_voucher_by_code", lambda code: store.get(code.upper()))
        monkeypatch.setattr(main, "increment_voucher_usage", fake_increment)
        return used

    def test_percentage_voucher_is_capped(self, client, created, voucher_store):
        response = client.post("/orders", json=order_payload(voucher_code="save10"))
        assert response.status_code == 200
        assert response.json()["discount"] == 15
        assert response.json()["total"] == 195
        order = created[0][1]
        assert order.voucher_code == "SAVE10"
        assert voucher_store == ["SAVE10"]

    def test_fixed_voucher(self, client, created, voucher_store):
        response = client.post("/orders", json=order_payload(voucher_code="LESS30"))
        assert response.json()["total"] == 180

    def test_expired_voucher(self, client, created, voucher_store):
        response = client.post("/orders", json=order_payload(voucher_code="OLD"))
        assert response.status_code == 400
        assert response.json()["detail"] == "Voucher has expired"
        assert created == [] and voucher_store == []

    def test_unknown_voucher(self, client, created, voucher_store):
        response = client.post("/orders", json=order_payload(voucher_code="NOPE"))
        assert response.json()["detail"] == "Invalid voucher code"

    def test_limit_reached_while_ordering(self, client, created, monkeypatch, voucher_store):
        monkeypatch.setattr(main, "increment_voucher_usage", lambda voucher: False)
        response = client.post("/orders", json=order_payload(voucher_code="SAVE10"))
        assert response.status_code == 400
        assert response.json()["detail"] == "Voucher usage limit reached"
        assert created == []


class TestVoucherAdmin:
    def test_delete(self, client, monkeypatch):
        deleted = []
        monkeypatch.setattr(main, "delete_document", lambda coll, _id: deleted.append((coll, _id)) or True)
        assert client.delete("/admin/vouchers/665f1c2e9b1e8a0012345678").json() == {"deleted": True}
        assert deleted == [("voucher", "665f1c2e9b1e8a0012345678")]

    def test_delete_missing(self, client, monkeypatch):
        monkeypatch.setattr(main, "delete_document", lambda coll, _id: False)
        assert client.delete("/admin/vouchers/nope").status_code == 404

    def test_duplicate_code(self, client, monkeypatch):
        monkeypatch.setattr(main, "create_voucher", lambda voucher: None)
        body = {"code": "save10", "type": "percentage", "value": 10, "expires_at": hours_from_now(24), "usage_limit": 3}
        assert client.post("/admin/vouchers", json=body).status_code == 400

    def test_create(self, client, monkeypatch):
        monkeypatch.setattr(main, "create_voucher", lambda voucher: "665f1c2e9b1e8a0012345678")
        body = {"code": "save10", "type": "percentage", "value": 10, "expires_at": hours_from_now(24), "usage_limit": 3}
        assert client.post("/admin/vouchers", json=body).json() == {"_id": "665f1c2e9b1e8a0012345678", "code": "SAVE10"}
