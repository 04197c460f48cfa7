"""KuCoin exchange client: ccxt async for public data, httpx for signed calls.

Public metadata, tickers and candles come from ccxt so any ccxt exchange id
(kucoin, mexc, ...) can feed the signal generator. Private endpoints
(accounts, orders) are signed with RequestSigner and sent through an httpx
AsyncClient, signing immediately before each send.
"""

import json
from decimal import Decimal

import ccxt.async_support as ccxt_async
import httpx
from ccxt.base.errors import BaseError as CcxtBaseError
from ccxt.base.errors import NetworkError as CcxtNetworkError

from tradeproxy.config import ExchangeSettings, MarketDataSettings
from tradeproxy.exceptions import ExchangeRejected, TransportError
from tradeproxy.exchange.client import ExchangeClient
from tradeproxy.exchange.signer import RequestSigner
from tradeproxy.logging import get_logger
from tradeproxy.models import Candle, MarketType, SymbolConstraints

logger = get_logger(__name__)

#: KuCoin success code in every REST response envelope.
SUCCESS_CODE = "200000"

ORDERS_PATH = "/api/v1/orders"
SPOT_ACCOUNTS_PATH = "/api/v1/accounts"
FUTURES_ACCOUNT_PATH = "/api/v1/account-overview?currency=USDT"

#: KuCoin-native candle type names mapped to ccxt timeframes.
KUCOIN_INTERVALS: dict[str, str] = {
    "1min": "1m",
    "3min": "3m",
    "5min": "5m",
    "15min": "15m",
    "30min": "30m",
    "1hour": "1h",
    "2hour": "2h",
    "4hour": "4h",
    "6hour": "6h",
    "8hour": "8h",
    "12hour": "12h",
    "1day": "1d",
    "1week": "1w",
}


def to_ccxt_timeframe(interval: str) -> str:
    """Accept either a KuCoin candle type ("1hour") or a ccxt timeframe ("1h")."""
    return KUCOIN_INTERVALS.get(interval, interval)


def _to_decimal(value: object, default: str = "0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    return Decimal(str(value))


class KucoinClient(ExchangeClient):
    """Concrete KuCoin client.

    Args:
        settings: Credentials, base URLs and request timeout.
        market_data: ccxt exchange ids for public spot/futures data.
        http_client: Optional pre-built httpx client (tests inject one).
        spot_exchange: Optional pre-built ccxt spot exchange.
        futures_exchange: Optional pre-built ccxt futures exchange.
    """

    def __init__(
        self,
        settings: ExchangeSettings,
        market_data: MarketDataSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        spot_exchange: ccxt_async.Exchange | None = None,
        futures_exchange: ccxt_async.Exchange | None = None,
    ) -> None:
        self._settings = settings
        self._market_data = market_data or MarketDataSettings()
        timeout_ms = int(settings.request_timeout * 1000)
        ccxt_config: dict = {"enableRateLimit": True, "timeout": timeout_ms}

        self._spot = spot_exchange or getattr(
            ccxt_async, self._market_data.exchange_id
        )(dict(ccxt_config))
        self._futures = futures_exchange or getattr(
            ccxt_async, self._market_data.futures_exchange_id
        )(dict(ccxt_config))
        self._http = http_client or httpx.AsyncClient(
            timeout=settings.request_timeout
        )
        self._signer: RequestSigner | None = None

    def _exchange_for(self, market: MarketType) -> ccxt_async.Exchange:
        return self._futures if market is MarketType.FUTURES else self._spot

    def _base_url_for(self, market: MarketType) -> str:
        if market is MarketType.FUTURES:
            return self._settings.futures_base_url
        return self._settings.spot_base_url

    def _get_signer(self) -> RequestSigner:
        """Build the signer on first private call.

        Raises:
            ConfigurationError: If key, secret or passphrase is missing.
        """
        if self._signer is None:
            self._settings.require_credentials()
            self._signer = RequestSigner(
                api_key=self._settings.api_key.get_secret_value(),
                api_secret=self._settings.api_secret.get_secret_value(),
                api_passphrase=self._settings.api_passphrase.get_secret_value(),
                key_version=self._settings.api_key_version,
            )
        return self._signer

    async def connect(self) -> None:
        """Load spot markets so symbol lookups work on the first request."""
        logger.info("connecting_to_exchange", exchange=self._market_data.exchange_id)
        try:
            markets = await self._spot.load_markets()
        except CcxtBaseError as exc:
            raise TransportError(f"could not load markets: {exc}") from exc
        logger.info("exchange_connected", market_count=len(markets))

    async def close(self) -> None:
        """Clean up ccxt and httpx resources."""
        logger.info("closing_exchange_connections")
        await self._spot.close()
        await self._futures.close()
        await self._http.aclose()
        logger.info("exchange_connections_closed")

    async def _load_markets(
        self, market: MarketType, reload: bool = False
    ) -> dict:
        exchange = self._exchange_for(market)
        try:
            return await exchange.load_markets(reload)
        except CcxtNetworkError as exc:
            raise TransportError(f"market metadata request failed: {exc}") from exc
        except CcxtBaseError as exc:
            raise ExchangeRejected("markets_unavailable", str(exc)) from exc

    @staticmethod
    def _find_market(markets: dict, symbol: str) -> dict | None:
        """Match by exchange-native id ("BTC-USDT") or unified symbol ("BTC/USDT")."""
        if symbol in markets:
            return markets[symbol]
        for market in markets.values():
            if market.get("id") == symbol:
                return market
        return None

    async def fetch_symbol_constraints(
        self, symbol: str, market: MarketType = MarketType.SPOT
    ) -> SymbolConstraints:
        """Reload market metadata and extract constraints for one symbol.

        All numeric values are converted to Decimal for precision. A missing
        or non-positive amount minimum is reported as ExchangeRejected so the
        caller falls back to conservative sizing.
        """
        markets = await self._load_markets(market, reload=True)
        info = self._find_market(markets, symbol)
        if info is None:
            raise ExchangeRejected("symbol_not_found", f"Symbol {symbol} not found")

        limits = info.get("limits", {})
        precision = info.get("precision", {})
        min_base_size = _to_decimal((limits.get("amount") or {}).get("min"))
        if min_base_size <= 0:
            raise ExchangeRejected(
                "min_size_unavailable", f"No minimum order size reported for {symbol}"
            )
        leverage_max = (limits.get("leverage") or {}).get("max")
        amount_step = precision.get("amount")

        constraints = SymbolConstraints(
            symbol=symbol,
            min_base_size=min_base_size,
            min_funds=_to_decimal((limits.get("cost") or {}).get("min")),
            price_increment=_to_decimal(precision.get("price")),
            base_increment=_to_decimal(amount_step) if amount_step else None,
            max_leverage=int(leverage_max) if leverage_max else None,
        )
        logger.debug(
            "fetched_symbol_constraints",
            symbol=symbol,
            market=market.value,
            min_base_size=str(constraints.min_base_size),
            min_funds=str(constraints.min_funds),
        )
        return constraints

    async def fetch_market_snapshot(self) -> dict:
        """Spot symbols plus last prices keyed by exchange-native id."""
        markets = await self._load_markets(MarketType.SPOT)
        try:
            tickers = await self._spot.fetch_tickers()
        except CcxtNetworkError as exc:
            raise TransportError(f"ticker request failed: {exc}") from exc
        except CcxtBaseError as exc:
            raise ExchangeRejected("tickers_unavailable", str(exc)) from exc

        symbols = sorted(m["id"] for m in markets.values() if m.get("active", True))
        prices: dict[str, str] = {}
        for unified, ticker in tickers.items():
            last = ticker.get("last")
            if last is None:
                continue
            market = markets.get(unified)
            native = market["id"] if market else unified
            prices[native] = str(Decimal(str(last)))
        return {"symbols": symbols, "prices": prices}

    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        market: MarketType = MarketType.SPOT,
        limit: int = 100,
    ) -> list[Candle]:
        """Fetch OHLCV via ccxt and convert to Candles ordered oldest-first."""
        exchange = self._exchange_for(market)
        markets = await self._load_markets(market)
        info = self._find_market(markets, symbol)
        unified = info["symbol"] if info else symbol
        timeframe = to_ccxt_timeframe(interval)

        try:
            rows = await exchange.fetch_ohlcv(unified, timeframe=timeframe, limit=limit)
        except CcxtNetworkError as exc:
            raise TransportError(f"candle request failed: {exc}") from exc
        except CcxtBaseError as exc:
            raise ExchangeRejected("candles_unavailable", str(exc)) from exc

        interval_ms = int(exchange.parse_timeframe(timeframe) * 1000)
        candles = [Candle.from_ccxt(row, interval_ms) for row in rows]
        candles.sort(key=lambda c: c.open_time)
        logger.debug(
            "fetched_candles", symbol=symbol, timeframe=timeframe, count=len(candles)
        )
        return candles

    async def _signed_request(
        self,
        method: str,
        market: MarketType,
        path: str,
        body: dict | None = None,
    ) -> dict:
        """Serialize, sign and send in one step; return the full JSON envelope.

        The exact body string that was signed is the one transmitted.
        """
        signer = self._get_signer()
        body_str = json.dumps(body, separators=(",", ":")) if body is not None else ""
        url = f"{self._base_url_for(market)}{path}"

        signed = signer.sign_request(method, path, body_str)
        try:
            response = await self._http.request(
                signed.method,
                url,
                headers=signer.headers(signed),
                content=signed.body or None,
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(
                f"{method} {path} returned non-JSON (HTTP {response.status_code})"
            ) from exc
        if not isinstance(payload, dict):
            raise TransportError(f"{method} {path} returned an unexpected payload")

        code = str(payload.get("code", ""))
        if code != SUCCESS_CODE:
            message = payload.get("msg") or f"exchange returned code {code}"
            raise ExchangeRejected(code, str(message))
        return payload

    async def fetch_account(self, market: MarketType = MarketType.SPOT) -> dict:
        """Raw account payload: spot balances or the futures account overview."""
        path = FUTURES_ACCOUNT_PATH if market is MarketType.FUTURES else SPOT_ACCOUNTS_PATH
        return await self._signed_request("GET", market, path)

    async def submit_order(
        self, body: dict, market: MarketType = MarketType.SPOT
    ) -> dict:
        """POST /api/v1/orders on the spot or futures host."""
        logger.info(
            "submitting_order",
            market=market.value,
            symbol=body.get("symbol"),
            side=body.get("side"),
            type=body.get("type"),
            size=body.get("size"),
            funds=body.get("funds"),
        )
        payload = await self._signed_request("POST", market, ORDERS_PATH, body)
        return payload.get("data") or {}
