"""Tests for the FastAPI proxy endpoint."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from tradeproxy.server.app import create_app


def _proxy(response: dict) -> MagicMock:
    proxy = MagicMock()
    proxy.handle = AsyncMock(return_value=response)
    return proxy


def test_health() -> None:
    client = TestClient(create_app())
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_post_dispatches_to_proxy() -> None:
    proxy = _proxy({"success": True, "symbols": ["BTC-USDT"], "price": Decimal("1.50")})
    client = TestClient(create_app(proxy=proxy))

    resp = client.post("/", json={"action": "get_market_data"})

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "symbols": ["BTC-USDT"], "price": "1.50"}
    proxy.handle.assert_awaited_once_with({"action": "get_market_data"})


def test_failures_are_still_http_200() -> None:
    proxy = _proxy({"success": False, "errorMessage": "Balance insufficient!"})
    client = TestClient(create_app(proxy=proxy))

    resp = client.post("/", json={"action": "place_order", "orderData": {}})

    assert resp.status_code == 200
    assert resp.json()["errorMessage"] == "Balance insufficient!"


def test_invalid_json_is_passed_as_none() -> None:
    proxy = _proxy({"success": False, "errorMessage": "Request body must be a JSON object"})
    client = TestClient(create_app(proxy=proxy))

    resp = client.post("/", content=b"{not json", headers={"Content-Type": "application/json"})

    assert resp.status_code == 200
    assert resp.json()["success"] is False
    proxy.handle.assert_awaited_once_with(None)


def test_proxy_not_ready() -> None:
    client = TestClient(create_app())
    resp = client.post("/", json={"action": "get_account"})
    assert resp.json() == {"success": False, "errorMessage": "Proxy not ready"}


def test_cors_preflight() -> None:
    client = TestClient(create_app(cors_origins=["http://localhost:5173"]))
    resp = client.options(
        "/",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_history_without_store_is_empty() -> None:
    client = TestClient(create_app())
    assert client.get("/orders").json() == []
    assert client.get("/signals").json() == []


def test_history_reads_store() -> None:
    store = MagicMock()
    store.get_orders = AsyncMock(
        return_value=[{"order_id": "kc-1", "size": Decimal("1"), "funds": None}]
    )
    store.get_signals = AsyncMock(
        return_value=[{"id": 1, "symbol": "BTC-USDT", "entry_price": Decimal("100.5")}]
    )
    client = TestClient(create_app(store=store))

    assert client.get("/orders?limit=10").json() == [
        {"order_id": "kc-1", "size": "1", "funds": None}
    ]
    store.get_orders.assert_awaited_once_with(10)

    signals = client.get("/signals", params={"symbol": "BTC-USDT"}).json()
    assert signals[0]["entry_price"] == "100.5"
    store.get_signals.assert_awaited_once_with(symbol="BTC-USDT", limit=50)
