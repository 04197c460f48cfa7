"""Tests for KucoinClient.

Public data uses mocked ccxt exchange objects; signed calls go through an
httpx.MockTransport so no real API calls are made.
"""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from ccxt.base.errors import ExchangeError, NetworkError

from tradeproxy.config import ExchangeSettings
from tradeproxy.exceptions import ConfigurationError, ExchangeRejected, TransportError
from tradeproxy.exchange.kucoin_client import KucoinClient, to_ccxt_timeframe
from tradeproxy.exchange.signer import sign
from tradeproxy.models import MarketType

SPOT_MARKETS = {
    "BTC/USDT": {
        "id": "BTC-USDT",
        "symbol": "BTC/USDT",
        "active": True,
        "limits": {"amount": {"min": 0.00001, "max": 10000}, "cost": {"min": 0.1}},
        "precision": {"amount": 0.00000001, "price": 0.1},
    },
    "ETH/USDT": {
        "id": "ETH-USDT",
        "symbol": "ETH/USDT",
        "active": True,
        "limits": {"amount": {"min": 0.0001, "max": 10000}, "cost": {"min": 0.1}},
        "precision": {"amount": 0.0000001, "price": 0.01},
    },
}

FUTURES_MARKETS = {
    "BTC/USDT:USDT": {
        "id": "XBTUSDTM",
        "symbol": "BTC/USDT:USDT",
        "active": True,
        "limits": {
            "amount": {"min": 1, "max": 1000000},
            "cost": {"min": None},
            "leverage": {"min": 1, "max": 125},
        },
        "precision": {"amount": 1, "price": 0.1},
    },
}


def _mock_exchange(markets: dict) -> MagicMock:
    exchange = MagicMock()
    exchange.load_markets = AsyncMock(return_value=markets)
    exchange.fetch_tickers = AsyncMock()
    exchange.fetch_ohlcv = AsyncMock()
    exchange.parse_timeframe = MagicMock(return_value=3600)
    exchange.close = AsyncMock()
    return exchange


@pytest.fixture
def exchange_settings() -> ExchangeSettings:
    return ExchangeSettings(
        api_key="test-key",  # type: ignore[arg-type]
        api_secret="test-secret",  # type: ignore[arg-type]
        api_passphrase="test-pass",  # type: ignore[arg-type]
        api_key_version="2",
    )


@pytest.fixture
def spot() -> MagicMock:
    return _mock_exchange(SPOT_MARKETS)


@pytest.fixture
def futures() -> MagicMock:
    return _mock_exchange(FUTURES_MARKETS)


def _client(
    settings: ExchangeSettings,
    spot: MagicMock,
    futures: MagicMock,
    handler=None,
) -> KucoinClient:
    transport = httpx.MockTransport(
        handler or (lambda request: httpx.Response(200, json={"code": "200000", "data": {}}))
    )
    return KucoinClient(
        settings,
        http_client=httpx.AsyncClient(transport=transport),
        spot_exchange=spot,
        futures_exchange=futures,
    )


# ---------------------------------------------------------------------------
# Public data
# ---------------------------------------------------------------------------


class TestSymbolConstraints:
    """Constraint extraction from ccxt market metadata."""

    @pytest.mark.asyncio
    async def test_spot_constraints_by_native_id(self, exchange_settings, spot, futures) -> None:
        client = _client(exchange_settings, spot, futures)
        constraints = await client.fetch_symbol_constraints("BTC-USDT")

        assert constraints.symbol == "BTC-USDT"
        assert constraints.min_base_size == Decimal("0.00001")
        assert constraints.min_funds == Decimal("0.1")
        assert constraints.price_increment == Decimal("0.1")
        assert constraints.base_increment == Decimal("1e-8")
        assert constraints.max_leverage is None

    @pytest.mark.asyncio
    async def test_reloads_markets_every_time(self, exchange_settings, spot, futures) -> None:
        """Constraints are never served from a stale cache."""
        client = _client(exchange_settings, spot, futures)
        await client.fetch_symbol_constraints("BTC-USDT")
        await client.fetch_symbol_constraints("BTC-USDT")

        assert spot.load_markets.await_count == 2
        spot.load_markets.assert_awaited_with(True)

    @pytest.mark.asyncio
    async def test_unified_symbol_also_matches(self, exchange_settings, spot, futures) -> None:
        client = _client(exchange_settings, spot, futures)
        constraints = await client.fetch_symbol_constraints("ETH/USDT")
        assert constraints.min_base_size == Decimal("0.0001")

    @pytest.mark.asyncio
    async def test_futures_constraints(self, exchange_settings, spot, futures) -> None:
        client = _client(exchange_settings, spot, futures)
        constraints = await client.fetch_symbol_constraints("XBTUSDTM", MarketType.FUTURES)

        assert constraints.min_base_size == Decimal("1")
        assert constraints.min_funds == Decimal("0")
        assert constraints.max_leverage == 125
        spot.load_markets.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_symbol_rejected(self, exchange_settings, spot, futures) -> None:
        client = _client(exchange_settings, spot, futures)
        with pytest.raises(ExchangeRejected) as exc_info:
            await client.fetch_symbol_constraints("NOPE-USDT")
        assert exc_info.value.code == "symbol_not_found"

    @pytest.mark.asyncio
    async def test_missing_amount_minimum_is_undetermined(
        self, exchange_settings, spot, futures
    ) -> None:
        """No reported minimum must not become a zero minimum."""
        market = {**SPOT_MARKETS["BTC/USDT"], "limits": {"amount": {"min": None}, "cost": {}}}
        spot.load_markets = AsyncMock(return_value={"BTC/USDT": market})
        client = _client(exchange_settings, spot, futures)

        with pytest.raises(ExchangeRejected) as exc_info:
            await client.fetch_symbol_constraints("BTC-USDT")
        assert exc_info.value.code == "min_size_unavailable"

    @pytest.mark.asyncio
    async def test_network_error_is_transport_error(self, exchange_settings, spot, futures) -> None:
        spot.load_markets = AsyncMock(side_effect=NetworkError("timed out"))
        client = _client(exchange_settings, spot, futures)
        with pytest.raises(TransportError):
            await client.fetch_symbol_constraints("BTC-USDT")

    @pytest.mark.asyncio
    async def test_exchange_error_is_rejection(self, exchange_settings, spot, futures) -> None:
        spot.load_markets = AsyncMock(side_effect=ExchangeError("maintenance"))
        client = _client(exchange_settings, spot, futures)
        with pytest.raises(ExchangeRejected):
            await client.fetch_symbol_constraints("BTC-USDT")


class TestCandlesAndSnapshot:
    """Candle conversion and market snapshot shaping."""

    @pytest.mark.asyncio
    async def test_fetch_candles_converts_and_sorts(self, exchange_settings, spot, futures) -> None:
        spot.fetch_ohlcv.return_value = [
            [7_200_000, 2, 3, 1, 2.5, 10],
            [3_600_000, 1, 2, 0.5, 1.5, 5],
        ]
        client = _client(exchange_settings, spot, futures)
        candles = await client.fetch_candles("BTC-USDT", "1hour", limit=2)

        spot.fetch_ohlcv.assert_awaited_once_with("BTC/USDT", timeframe="1h", limit=2)
        assert [c.open_time for c in candles] == [3_600_000, 7_200_000]
        assert candles[0].close == Decimal("1.5")
        assert candles[0].close_time == 3_600_000 + 3_600_000 - 1

    @pytest.mark.asyncio
    async def test_candle_network_error(self, exchange_settings, spot, futures) -> None:
        spot.fetch_ohlcv.side_effect = NetworkError("reset")
        client = _client(exchange_settings, spot, futures)
        with pytest.raises(TransportError):
            await client.fetch_candles("BTC-USDT", "1h")

    @pytest.mark.asyncio
    async def test_market_snapshot(self, exchange_settings, spot, futures) -> None:
        spot.fetch_tickers.return_value = {
            "BTC/USDT": {"last": 43250.5},
            "ETH/USDT": {"last": None},
        }
        client = _client(exchange_settings, spot, futures)
        snapshot = await client.fetch_market_snapshot()

        assert snapshot["symbols"] == ["BTC-USDT", "ETH-USDT"]
        assert snapshot["prices"] == {"BTC-USDT": "43250.5"}

    def test_interval_mapping(self) -> None:
        assert to_ccxt_timeframe("15min") == "15m"
        assert to_ccxt_timeframe("1day") == "1d"
        assert to_ccxt_timeframe("4h") == "4h"


# ---------------------------------------------------------------------------
# Signed calls
# ---------------------------------------------------------------------------


class TestSignedRequests:
    """Order submission and account queries over httpx."""

    @pytest.mark.asyncio
    async def test_submit_order_signs_exact_body(self, exchange_settings, spot, futures) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200, json={"code": "200000", "data": {"orderId": "abc123"}})

        client = _client(exchange_settings, spot, futures, handler)
        body = {"clientOid": "x1", "symbol": "BTC-USDT", "side": "buy", "type": "market", "size": "0.001"}
        data = await client.submit_order(body)

        assert data == {"orderId": "abc123"}
        request = captured["request"]
        assert str(request.url) == "https://api.kucoin.com/api/v1/orders"
        sent_body = request.content.decode()
        assert json.loads(sent_body) == body
        expected = sign(
            "test-secret",
            request.headers["KC-API-TIMESTAMP"],
            "POST",
            "/api/v1/orders",
            sent_body,
        )
        assert request.headers["KC-API-SIGN"] == expected
        assert request.headers["KC-API-KEY"] == "test-key"
        assert request.headers["KC-API-PASSPHRASE"] != "test-pass"

    @pytest.mark.asyncio
    async def test_futures_order_goes_to_futures_host(self, exchange_settings, spot, futures) -> None:
        urls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200, json={"code": "200000", "data": {"orderId": "f1"}})

        client = _client(exchange_settings, spot, futures, handler)
        await client.submit_order({"symbol": "XBTUSDTM"}, MarketType.FUTURES)

        assert urls == ["https://api-futures.kucoin.com/api/v1/orders"]

    @pytest.mark.asyncio
    async def test_non_success_code_keeps_message(self, exchange_settings, spot, futures) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"code": "400100", "msg": "Order size below the minimum requirement."}
            )

        client = _client(exchange_settings, spot, futures, handler)
        with pytest.raises(ExchangeRejected) as exc_info:
            await client.submit_order({"symbol": "BTC-USDT"})

        assert exc_info.value.code == "400100"
        assert exc_info.value.message == "Order size below the minimum requirement."

    @pytest.mark.asyncio
    async def test_non_json_response_is_transport_error(self, exchange_settings, spot, futures) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        client = _client(exchange_settings, spot, futures, handler)
        with pytest.raises(TransportError):
            await client.submit_order({"symbol": "BTC-USDT"})

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self, exchange_settings, spot, futures) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(exchange_settings, spot, futures, handler)
        with pytest.raises(TransportError):
            await client.submit_order({"symbol": "BTC-USDT"})

    @pytest.mark.asyncio
    async def test_missing_credentials_sends_nothing(self, spot, futures) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"code": "200000"})

        client = _client(ExchangeSettings(api_key="k"), spot, futures, handler)  # type: ignore[arg-type]
        with pytest.raises(ConfigurationError):
            await client.fetch_account()
        assert calls == []

    @pytest.mark.asyncio
    async def test_futures_account_signs_query_string(self, exchange_settings, spot, futures) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200, json={"code": "200000", "data": {"accountEquity": 100}})

        client = _client(exchange_settings, spot, futures, handler)
        payload = await client.fetch_account(MarketType.FUTURES)

        request = captured["request"]
        assert payload["data"] == {"accountEquity": 100}
        assert request.url.host == "api-futures.kucoin.com"
        expected = sign(
            "test-secret",
            request.headers["KC-API-TIMESTAMP"],
            "GET",
            "/api/v1/account-overview?currency=USDT",
        )
        assert request.headers["KC-API-SIGN"] == expected

    @pytest.mark.asyncio
    async def test_close_releases_everything(self, exchange_settings, spot, futures) -> None:
        client = _client(exchange_settings, spot, futures)
        await client.close()

        spot.close.assert_awaited_once()
        futures.close.assert_awaited_once()
