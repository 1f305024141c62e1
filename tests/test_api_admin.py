"""
Tests for the admin order endpoints.
"""
import pytest

from conftest import CUSTOMER_PHONE, TEST_ADMIN_USERNAME


def _place(client, items=None, **overrides):
    payload = {
        "customer_name": "Jordan Rivera",
        "customer_phone": "512-555-1234",
        "notification_method": "sms",
        "store_location": "william-cannon",
        "items": items or [
            {"product_id": "prod-a", "quantity": 2},
            {"product_id": "prod-b", "quantity": 1},
        ],
    }
    payload.update(overrides)
    resp = client.post("/orders", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["order"]


def test_admin_orders_requires_auth(client):
    """Test that admin endpoints return 401 without auth."""
    resp = client.get("/admin/orders")
    assert resp.status_code == 401


def test_admin_orders_rejects_invalid_auth(client):
    """Test that admin endpoints return 401 with invalid credentials."""
    resp = client.get("/admin/orders", auth=("wrong", "credentials"))
    assert resp.status_code == 401


def test_admin_orders_not_configured(client, monkeypatch):
    import pickup_orders.config as config_mod
    monkeypatch.setattr(config_mod, "ADMIN_PASSWORD", "")

    resp = client.get("/admin/orders", auth=("anyone", "anything"))
    assert resp.status_code == 503


class TestList:

    def test_lists_newest_first(self, client, admin_auth):
        first = _place(client)
        second = _place(client, customer_name="Sam Lee", store_location="cameron-rd")

        resp = client.get("/admin/orders", auth=admin_auth)

        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 2
        assert [o["id"] for o in data["orders"]] == [second["id"], first["id"]]

    def test_filters(self, client, admin_auth):
        first = _place(client)
        second = _place(client, customer_name="Sam Lee", store_location="cameron-rd")
        client.post(
            f"/admin/orders/{first['id']}/update-status",
            json={"status": "ready"},
            auth=admin_auth,
        )

        by_status = client.get("/admin/orders?status=ready", auth=admin_auth).json()
        assert [o["id"] for o in by_status["orders"]] == [first["id"]]

        both = client.get("/admin/orders?status=ready,pending", auth=admin_auth).json()
        assert both["count"] == 2

        by_location = client.get("/admin/orders?location=cameron-rd", auth=admin_auth).json()
        assert [o["id"] for o in by_location["orders"]] == [second["id"]]

        by_search = client.get("/admin/orders?search=sam", auth=admin_auth).json()
        assert [o["id"] for o in by_search["orders"]] == [second["id"]]

    def test_invalid_status_filter(self, client, admin_auth):
        resp = client.get("/admin/orders?status=shipped", auth=admin_auth)
        assert resp.status_code == 400
        assert "shipped" in resp.json()["detail"]

    def test_summary(self, client, admin_auth):
        order = _place(client)
        client.post(
            f"/admin/orders/{order['id']}/update-status",
            json={"status": "ready"},
            auth=admin_auth,
        )

        data = client.get("/admin/orders?summary=true", auth=admin_auth).json()

        summary = data["summaries"][0]
        assert summary["order_number"] == order["order_number"]
        assert summary["item_count"] == 3
        assert summary["pickup_deadline"] is not None
        assert 58 <= summary["time_remaining_minutes"] <= 60
        assert summary["is_expiring_soon"] is False

    def test_stats(self, client, admin_auth):
        _place(client)
        _place(client, store_location="cameron-rd")

        resp = client.get("/admin/orders?stats=true", auth=admin_auth)

        assert resp.status_code == 200
        stats = resp.json()["stats"]
        assert stats["today"]["total"] == 2
        assert stats["today"]["pending"] == 2
        assert stats["by_location"] == {"william-cannon": 1, "cameron-rd": 1}


def test_get_order(client, admin_auth):
    order = _place(client)

    resp = client.get(f"/admin/orders/{order['id']}", auth=admin_auth)
    assert resp.status_code == 200
    assert resp.json()["order"]["id"] == order["id"]

    assert client.get("/admin/orders/missing", auth=admin_auth).status_code == 404


class TestUpdateStatus:

    def test_moves_through_lifecycle(self, client, admin_auth, sms_provider):
        order = _place(client)
        url = f"/admin/orders/{order['id']}/update-status"

        confirmed = client.post(url, json={"status": "confirmed"}, auth=admin_auth)
        assert confirmed.status_code == 200
        assert confirmed.json()["message"] == "Order status updated to confirmed"

        ready = client.post(url, json={"status": "ready", "store_notes": "Shelf B"}, auth=admin_auth)
        data = ready.json()["order"]
        assert data["status"] == "ready"
        assert data["timeline"]["pickup_deadline"] is not None
        assert data["store_notes"] == "Shelf B"
        assert "READY for pickup" in sms_provider.messages_to(CUSTOMER_PHONE)[-1]

        done = client.post(url, json={"status": "picked-up"}, auth=admin_auth)
        assert done.json()["order"]["status"] == "picked-up"

    def test_illegal_transition(self, client, admin_auth):
        order = _place(client)
        url = f"/admin/orders/{order['id']}/update-status"
        client.post(url, json={"status": "cancelled"}, auth=admin_auth)

        resp = client.post(url, json={"status": "ready"}, auth=admin_auth)
        assert resp.status_code == 400

    def test_invalid_status_value(self, client, admin_auth):
        order = _place(client)
        resp = client.post(
            f"/admin/orders/{order['id']}/update-status",
            json={"status": "shipped"},
            auth=admin_auth,
        )
        assert resp.status_code == 400

    def test_unknown_order(self, client, admin_auth):
        resp = client.post(
            "/admin/orders/missing/update-status",
            json={"status": "confirmed"},
            auth=admin_auth,
        )
        assert resp.status_code == 404


def test_suggest_replacement(client, admin_auth, sms_provider):
    order = _place(client)

    resp = client.post(
        f"/admin/orders/{order['id']}/suggest-replacement",
        json={
            "order_item_index": 1,
            "replacement_product_id": "prod-c",
            "replacement_note": "Same brand",
        },
        auth=admin_auth,
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["message"] == "Replacement suggestion sent to customer"
    item = data["order"]["items"][1]
    assert item["replacement"]["product_name"] == "Glass Spoon Pipe"
    assert item["replacement"]["suggested_by"] == TEST_ADMIN_USERNAME
    assert item["was_replaced"] is False
    assert data["order"]["total"] == order["total"]
    assert "Reply YES to approve" in sms_provider.messages_to(CUSTOMER_PHONE)[-1]


def test_suggest_replacement_bad_index(client, admin_auth):
    order = _place(client)
    resp = client.post(
        f"/admin/orders/{order['id']}/suggest-replacement",
        json={"order_item_index": 5, "replacement_product_id": "prod-c"},
        auth=admin_auth,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid item index"


class TestActions:

    def _action(self, client, admin_auth, order_id, **body):
        return client.post(f"/admin/orders/{order_id}/actions", json=body, auth=admin_auth)

    def test_accept(self, client, admin_auth):
        order = _place(client)
        resp = self._action(client, admin_auth, order["id"], action="accept")

        assert resp.status_code == 200
        assert resp.json()["message"] == "Order accepted"
        assert resp.json()["order"]["status"] == "confirmed"

    def test_reject(self, client, admin_auth, sms_provider):
        order = _place(client)
        resp = self._action(client, admin_auth, order["id"], action="reject", reason="Sold out")

        data = resp.json()
        assert data["message"] == "Order rejected"
        assert data["order"]["status"] == "cancelled"
        assert f"Rejected by {TEST_ADMIN_USERNAME}: Sold out" in data["order"]["store_notes"]
        assert "Reason: Sold out" in sms_provider.messages_to(CUSTOMER_PHONE)[-1]

    def test_apply_replacement(self, client, admin_auth):
        order = _place(client)
        resp = self._action(
            client, admin_auth, order["id"],
            action="suggest-replacement",
            product_index=0,
            replacement_product_id="prod-c",
        )

        data = resp.json()
        assert data["message"] == "Replacement applied"
        assert data["order"]["items"][0]["was_replaced"] is True
        assert (data["order"]["subtotal"], data["order"]["total"]) == (40.0, 43.3)

    @pytest.mark.parametrize("body", [
        {"product_index": 0},
        {"replacement_product_id": "prod-c"},
    ])
    def test_apply_replacement_needs_index_and_product(self, client, admin_auth, body):
        order = _place(client)
        resp = self._action(client, admin_auth, order["id"], action="suggest-replacement", **body)
        assert resp.status_code == 400
