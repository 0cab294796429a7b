"""
Tests for the JSON HTTP routes, through Flask's test client.
"""

import io
import json

import httpx
import pytest

from app import create_app
from config import TestingConfig
from services.terminal import PosTerminal


def testing_config():
    return {key: getattr(TestingConfig, key) for key in dir(TestingConfig) if key.isupper()}


def cloud_handler(uploads):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/2/users/get_current_account":
            return httpx.Response(200, json={"name": {"display_name": "Shinwari Till"}})
        if request.url.path == "/2/files/upload":
            uploads.append(request.read())
            return httpx.Response(200, json={})
        return httpx.Response(409, json={"error_summary": "path/not_found/"})

    return handler


# Fixtures

@pytest.fixture
def uploads():
    return []


@pytest.fixture
def terminal(uploads):
    terminal = PosTerminal.from_config(
        testing_config(),
        transport=httpx.MockTransport(cloud_handler(uploads)),
        is_online=lambda: True,
    )
    yield terminal
    terminal.shutdown()


@pytest.fixture
def app(terminal):
    return create_app(TestingConfig, terminal=terminal)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def order_body():
    return {
        "items": [{"id": "m1", "name": "Chicken Karahi", "price": 500, "quantity": 2}],
        "type": "DINE_IN",
        "paymentMethod": "CASH",
        "tableNumber": "4",
        "discount": {"type": "PERCENT", "value": 10},
    }


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "ok"
        assert data["checks"]["next_order_number"] == 1
        assert data["checks"]["sync"]["status"] == "idle"

    def test_app_builds_its_own_terminal(self):
        app = create_app(TestingConfig)
        try:
            assert app.test_client().get("/health").status_code == 200
        finally:
            app.config["POS_TERMINAL"].shutdown()


class TestOrderRoutes:

    def test_create_order(self, client, order_body):
        response = client.post("/api/orders", json=order_body)

        assert response.status_code == 201
        order = response.get_json()
        assert order["orderNumber"] == 1
        assert order["status"] == "PENDING"
        assert order["subtotal"] == pytest.approx(1000)
        assert order["tableNumber"] == "4"
        assert order["cashierName"] == "Admin"

    def test_next_number_advances(self, client, order_body):
        assert client.get("/api/orders/next-number").get_json() == {"orderNumber": 1}
        client.post("/api/orders", json=order_body)
        assert client.get("/api/orders/next-number").get_json() == {"orderNumber": 2}

    def test_empty_cart_is_400(self, client, order_body):
        order_body["items"] = []
        response = client.post("/api/orders", json=order_body)

        assert response.status_code == 400
        assert response.get_json()["type"] == "EmptyCartError"

    def test_non_json_body_is_400(self, client):
        response = client.post("/api/orders", data="nope", content_type="text/plain")
        assert response.status_code == 400

    def test_unknown_user_is_404(self, client, order_body):
        order_body["userId"] = "ghost"
        assert client.post("/api/orders", json=order_body).status_code == 404

    def test_cashier_resolved_from_users(self, client, order_body):
        client.put("/api/collections/users", json=[{"id": "u1", "name": "Bilal"}])
        order_body["userId"] = "u1"

        order = client.post("/api/orders", json=order_body).get_json()

        assert order["cashierName"] == "Bilal"

    def test_kitchen_note_is_sanitized(self, client, order_body):
        order_body["kitchenNote"] = "<script>alert(1)</script>No onions"

        order = client.post("/api/orders", json=order_body).get_json()

        assert "<script>" not in order["kitchenNote"]
        assert order["kitchenNote"].endswith("No onions")

    def test_get_unknown_order_is_404(self, client):
        response = client.get("/api/orders/missing")

        assert response.status_code == 404
        assert response.get_json()["type"] == "NotFoundError"

    def test_revise_order(self, client, order_body):
        order = client.post("/api/orders", json=order_body).get_json()
        order_body["items"][0]["quantity"] = 3

        response = client.put(f"/api/orders/{order['id']}", json=order_body)

        assert response.status_code == 200
        assert response.get_json()["subtotal"] == pytest.approx(1500)
        assert response.get_json()["orderNumber"] == order["orderNumber"]

    def test_status_hold_resume(self, client, order_body):
        order = client.post("/api/orders", json=order_body).get_json()
        order_id = order["id"]

        assert client.post(f"/api/orders/{order_id}/hold").get_json()["status"] == "HELD"
        assert [o["id"] for o in client.get("/api/orders?view=held").get_json()] == [order_id]
        assert client.post(f"/api/orders/{order_id}/resume").get_json()["status"] == "PENDING"

        response = client.post(f"/api/orders/{order_id}/status", json={"status": "READY"})
        assert response.get_json()["status"] == "READY"

    def test_resume_not_held_is_400(self, client, order_body):
        order = client.post("/api/orders", json=order_body).get_json()

        response = client.post(f"/api/orders/{order['id']}/resume")

        assert response.status_code == 400
        assert response.get_json()["type"] == "InvalidTransitionError"

    def test_unknown_status_is_400(self, client, order_body):
        order = client.post("/api/orders", json=order_body).get_json()

        response = client.post(f"/api/orders/{order['id']}/status", json={"status": "LOST"})

        assert response.status_code == 400


class TestCollectionRoutes:

    def test_put_and_get_collection(self, client):
        response = client.put("/api/collections/menu", json=[{"id": "m1", "name": "Naan"}])

        assert response.status_code == 200
        assert client.get("/api/collections/menu").get_json() == [{"id": "m1", "name": "Naan"}]

    def test_unknown_collection_is_404(self, client):
        assert client.get("/api/collections/recipes").status_code == 404

    def test_orders_collection_is_read_only(self, client):
        assert client.put("/api/collections/orders", json=[]).status_code == 400

    def test_collection_body_must_be_list(self, client):
        assert client.put("/api/collections/menu", json={"id": "m1"}).status_code == 400

    def test_settings_round_trip(self, client):
        response = client.put("/api/settings", json={
            "restaurantName": "<b>Shinwari</b>",
            "taxRate": 16,
            "serviceChargeRate": 5,
        })

        assert response.status_code == 200
        settings = client.get("/api/settings").get_json()
        assert settings["restaurantName"] == "Shinwari"
        assert settings["taxRate"] == 16

    def test_settings_mask_access_token(self, client, terminal):
        settings = terminal.get_settings()
        settings.sync.access_token = "sl.secret-dropbox-token-1234"
        terminal.store.put_settings(settings)

        body = client.get("/api/settings").get_json()

        assert body["sync"]["dropbox"]["accessToken"] == "****1234"
        assert "secret" not in json.dumps(body)

    def test_settings_put_keeps_stored_token(self, client, terminal):
        settings = terminal.get_settings()
        settings.sync.access_token = "sl.secret-dropbox-token-1234"
        terminal.store.put_settings(settings)

        client.put("/api/settings", json={"restaurantName": "Shinwari"})
        assert terminal.get_settings().sync.access_token == "sl.secret-dropbox-token-1234"

        masked = client.get("/api/settings").get_json()
        masked["taxRate"] = 5
        response = client.put("/api/settings", json=masked)

        assert response.get_json()["sync"]["dropbox"]["accessToken"] == "****1234"
        assert terminal.get_settings().sync.access_token == "sl.secret-dropbox-token-1234"

    def test_settings_put_replaces_or_clears_token(self, client, terminal):
        client.put("/api/settings", json={"sync": {"dropbox": {"accessToken": "Bearer new-token-9876"}}})
        assert terminal.get_settings().sync.access_token == "new-token-9876"

        client.put("/api/settings", json={"sync": {"dropbox": {"accessToken": ""}}})
        assert terminal.get_settings().sync.access_token == ""

    def test_negative_rate_is_400(self, client):
        assert client.put("/api/settings", json={"taxRate": -5}).status_code == 400

    def test_printer_config(self, client):
        response = client.put("/api/printer", json={"paperWidth": "58mm", "autoPrint": True})

        assert response.status_code == 200
        printer = client.get("/api/printer").get_json()
        assert printer["paperWidth"] == "58mm"
        assert printer["autoPrint"] is True

    def test_bad_paper_width_is_400(self, client):
        assert client.put("/api/printer", json={"paperWidth": "A4"}).status_code == 400


class TestSyncRoutes:

    def test_status(self, client):
        assert client.get("/api/sync/status").get_json()["status"] == "idle"

    def test_connect_enables_sync_and_pushes_changes(self, client, terminal, uploads):
        response = client.post("/api/sync/test", json={"accessToken": "Bearer good-token"})

        assert response.status_code == 200
        assert response.get_json()["displayName"] == "Shinwari Till"
        settings = client.get("/api/settings").get_json()
        assert settings["sync"]["enabled"] is True
        assert settings["sync"]["dropbox"]["hasAccessToken"] is True
        assert terminal.get_settings().sync.access_token == "good-token"

        client.put("/api/collections/menu", json=[{"id": "m1"}])
        terminal.sync.shutdown()

        assert any(json.loads(blob)["menu"] == [{"id": "m1"}] for blob in uploads)

    def test_connect_without_token_is_400(self, client):
        assert client.post("/api/sync/test", json={}).status_code == 400

    def test_manual_push_without_token_is_skipped(self, client):
        result = client.post("/api/sync/push").get_json()
        assert result["outcome"] == "skipped"

    def test_manual_pull_remote_missing(self, client):
        client.post("/api/sync/test", json={"accessToken": "good-token"})

        result = client.post("/api/sync/pull").get_json()

        assert result["outcome"] == "remote_missing"
        assert result["status"] == "idle"


class TestBackupRoutes:

    def test_download_and_restore(self, client, order_body):
        client.post("/api/orders", json=order_body)
        response = client.get("/api/backup")

        assert response.status_code == 200
        assert "attachment" in response.headers["Content-Disposition"]
        blob = response.data

        client.post("/api/backup/clear", json={"pin": "0000"})
        assert client.get("/api/orders").get_json() == []

        response = client.post(
            "/api/backup",
            data={"file": (io.BytesIO(blob), "backup.json")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        assert len(client.get("/api/orders").get_json()) == 1
        assert client.get("/api/orders/next-number").get_json() == {"orderNumber": 2}

    def test_invalid_backup_is_400_and_keeps_data(self, client, order_body):
        client.post("/api/orders", json=order_body)

        response = client.post("/api/backup", data=b'{"version": 1}', content_type="application/json")

        assert response.status_code == 400
        assert response.get_json()["type"] == "InvalidSnapshotError"
        assert len(client.get("/api/orders").get_json()) == 1

    def test_clear_requires_pin(self, client, order_body):
        client.post("/api/orders", json=order_body)

        assert client.post("/api/backup/clear", json={"pin": "1234"}).status_code == 400
        assert len(client.get("/api/orders").get_json()) == 1


class TestReportRoutes:

    def test_summary(self, client, order_body):
        client.post("/api/orders", json=order_body)

        data = client.get("/api/reports/summary?range=ALL").get_json()

        assert data["orderCount"] == 1
        assert data["totalSales"] == pytest.approx(900)

    def test_unknown_range_is_400(self, client):
        assert client.get("/api/reports/summary?range=DECADE").status_code == 400
