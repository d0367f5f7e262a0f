import logging

from fastapi.testclient import TestClient

from api import app
from log import CorrelationIdFilter, correlation_id, mask


def test_root_and_health(client):
    assert client.get("/").json() == {"status": "ok", "service": "food-delivery-api"}
    assert client.get("/auth/health").json()["status"] == "ok"


def test_stats_counts_tables(client):
    client.post("/deliveries", json={"orderId": "order-1"})

    stats = client.get("/stats").json()

    assert stats["deliveries"] == 1
    assert stats["users"] == 0
    assert stats["connected_users"] == 0


def test_correlation_id_is_echoed(client):
    response = client.get("/", headers={"X-Correlation-Id": "abc-123"})
    assert response.headers["X-Correlation-Id"] == "abc-123"


def test_correlation_id_is_generated(client):
    first = client.get("/").headers["X-Correlation-Id"]
    second = client.get("/").headers["X-Correlation-Id"]
    assert first and second and first != second


def test_unexpected_errors_are_masked(app_state):
    class ExplodingDeliveries:
        def get(self, delivery_id):
            raise RuntimeError("sqlite path /secret/db is locked")

    app_state.override(delivery_service=ExplodingDeliveries())
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/deliveries/anything", headers={"X-Correlation-Id": "cid-500"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert response.headers["X-Correlation-Id"] == "cid-500"
    assert "secret" not in response.text


def test_log_records_carry_correlation_id():
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)
    token = correlation_id.set("cid-42")
    try:
        CorrelationIdFilter().filter(record)
    finally:
        correlation_id.reset(token)

    assert record.correlation_id == "cid-42"


def test_mask_shortens_secrets():
    assert mask("ya29.a0AfH6SMBsecret") == "ya29...."
    assert mask(None) == ""


def test_packages_import_cleanly():
    import importlib

    for name in ("api", "api.main", "services", "services.deliveries", "services.orders", "generators"):
        importlib.import_module(name)

    from services import DeliveryService, OrderService
    assert callable(DeliveryService.find) and callable(OrderService.find)
    assert app.title == "Food Delivery API"
