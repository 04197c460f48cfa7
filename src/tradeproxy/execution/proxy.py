"""Order execution proxy: action dispatch and the per-order state machine.

Every order placement walks RECEIVED -> SIZING -> SIGNING -> SUBMITTED ->
{ACCEPTED | REJECTED} exactly once. Nothing is retried: a caller that
wants another attempt re-invokes the whole flow, which produces a fresh
timestamp and signature.

Error contract: handle() never raises. Every failure becomes
``{"success": False, "errorMessage": ...}`` so the UI can always render
the response. Exchange-side messages are forwarded verbatim.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Sequence
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

import aiosqlite

from tradeproxy.account import AccountContext
from tradeproxy.config import AppSettings
from tradeproxy.exceptions import (
    ConfigurationError,
    ExchangeRejected,
    InsufficientData,
    InvalidRequest,
    ProxyError,
    SizingRejected,
    TransportError,
)
from tradeproxy.exchange.client import ExchangeClient
from tradeproxy.logging import get_logger
from tradeproxy.models import (
    MarketType,
    OrderKind,
    OrderRequest,
    OrderResult,
    OrderSide,
    OrderState,
    SignalDirection,
    SizingDecision,
    TradingSignal,
    plain_decimal,
)
from tradeproxy.signals.generator import generate_signal
from tradeproxy.sizing.policy import SizingPolicy, build_policy, fallback_constraints

if TYPE_CHECKING:
    from tradeproxy.storage.store import TradeStore

logger = get_logger(__name__)

TRANSPORT_ERROR_MESSAGE = "Transport error: could not reach the exchange"
KLINE_RESPONSE_TAIL = 20


def _error(message: str) -> dict[str, Any]:
    return {"success": False, "errorMessage": message}


def _quote_balance(data: Any, market: MarketType, currency: str = "USDT") -> Decimal | None:
    """Available quote balance from a spot accounts list or futures overview."""
    if market is MarketType.FUTURES:
        raw = data.get("availableBalance") if isinstance(data, dict) else None
    elif isinstance(data, list):
        raw = next(
            (
                account.get("available")
                for account in data
                if isinstance(account, dict)
                and account.get("currency") == currency
                and account.get("type") == "trade"
            ),
            None,
        )
    else:
        raw = None
    if raw is None:
        return None
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        return None


class OrderExecutionProxy:
    """Single entry point behind the HTTP endpoint.

    Args:
        exchange_client: Exchange access (constraints, candles, signed calls).
        settings: Application settings.
        store: Optional append-only record store.
        policy: Sizing policy; defaults to the one named in settings.
        account: Session state for the daily trade limit.
        sleep: Awaitable delay used between batch orders.
    """

    def __init__(
        self,
        exchange_client: ExchangeClient,
        settings: AppSettings,
        store: TradeStore | None = None,
        policy: SizingPolicy | None = None,
        account: AccountContext | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._exchange = exchange_client
        self._settings = settings
        self._store = store
        self._policy = policy or build_policy(settings.sizing)
        self._account = account or AccountContext(
            max_daily_trades=settings.account.max_daily_trades
        )
        self._sleep = sleep

    @property
    def account(self) -> AccountContext:
        return self._account

    # ──────────────────────────────────────────────
    # Action dispatch
    # ──────────────────────────────────────────────

    async def handle(self, payload: Any) -> dict[str, Any]:
        """Dispatch one JSON request body. Always returns a response dict."""
        if not isinstance(payload, dict):
            return _error("Request body must be a JSON object")
        action = payload.get("action")

        try:
            if action == "get_account":
                return await self.get_account(payload.get("tradingType"))
            if action == "get_market_data":
                return await self.get_market_data()
            if action == "get_kline_data":
                return await self.get_kline_data(
                    payload.get("symbol"),
                    payload.get("interval"),
                    payload.get("tradingType"),
                )
            if action == "place_order":
                request = OrderRequest.from_payload(
                    payload.get("orderData"), payload.get("tradingType")
                )
                result = await self.place_order(request)
                return result.to_response()
            if action == "generate_signal":
                return await self.generate_signal(
                    payload.get("symbol"),
                    payload.get("interval"),
                    payload.get("tradingType"),
                )
            if action == "execute_signals":
                return await self._execute_signals_payload(payload)
        except ConfigurationError as exc:
            logger.error("configuration_error", action=action, error=str(exc))
            return _error(str(exc))
        except InvalidRequest as exc:
            logger.info("invalid_request", action=action, error=str(exc))
            return _error(str(exc))
        except ExchangeRejected as exc:
            logger.warning("exchange_rejected", action=action, code=exc.code, msg=exc.message)
            return {**_error(exc.message), "code": exc.code}
        except TransportError as exc:
            logger.warning("transport_error", action=action, error=str(exc))
            return _error(TRANSPORT_ERROR_MESSAGE)
        except ProxyError as exc:
            logger.warning("proxy_error", action=action, error=str(exc))
            return _error(str(exc))
        except Exception:
            logger.exception("unhandled_proxy_error", action=action)
            return _error("Internal error")

        return _error("Invalid action")

    @staticmethod
    def _market(raw: Any) -> MarketType:
        if raw in (None, ""):
            return MarketType.SPOT
        try:
            return MarketType(str(raw).lower())
        except ValueError:
            raise InvalidRequest("tradingType must be spot or futures") from None

    async def get_account(self, trading_type: Any = None) -> dict[str, Any]:
        """Raw signed account payload; also refreshes the account balance."""
        market = self._market(trading_type)
        self._settings.exchange.require_credentials()
        payload = await self._exchange.fetch_account(market)
        balance = _quote_balance(payload.get("data"), market)
        if balance is not None:
            self._account.balance = balance
        return {"success": True, **payload}

    async def get_market_data(self) -> dict[str, Any]:
        snapshot = await self._exchange.fetch_market_snapshot()
        return {"success": True, **snapshot}

    async def get_kline_data(
        self, symbol: Any, interval: Any, trading_type: Any = None
    ) -> dict[str, Any]:
        if not isinstance(symbol, str) or not symbol:
            raise InvalidRequest("symbol is required")
        if not isinstance(interval, str) or not interval:
            raise InvalidRequest("interval is required")
        candles = await self._exchange.fetch_candles(
            symbol,
            interval,
            self._market(trading_type),
            limit=self._settings.market_data.kline_limit,
        )
        return {"success": True, "klineData": [c.to_dict() for c in candles]}

    async def generate_signal(
        self, symbol: Any, interval: Any = None, trading_type: Any = None
    ) -> dict[str, Any]:
        """Fetch candles, derive a signal and append it to the signal log."""
        if not isinstance(symbol, str) or not symbol:
            raise InvalidRequest("symbol is required")
        interval = interval or self._settings.market_data.default_interval
        market = self._market(trading_type)

        candles = await self._exchange.fetch_candles(
            symbol, interval, market, limit=self._settings.market_data.kline_limit
        )
        try:
            signal = generate_signal(candles, symbol, self._settings.signal)
        except InsufficientData as exc:
            return _error(str(exc))

        if self._store is not None:
            await self._store.insert_signal(signal, interval, market.value)

        return {
            "success": True,
            "signal": signal.to_dict(),
            "klineData": [c.to_dict() for c in candles[-KLINE_RESPONSE_TAIL:]],
        }

    # ──────────────────────────────────────────────
    # Order placement
    # ──────────────────────────────────────────────

    def _build_order_body(
        self, request: OrderRequest, decision: SizingDecision
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "clientOid": uuid.uuid4().hex,
            "symbol": request.symbol,
            "side": request.side.value,
            "type": request.kind.value,
        }
        if decision.final_funds is not None:
            body["funds"] = plain_decimal(decision.final_funds)
        elif decision.final_size is not None:
            body["size"] = plain_decimal(decision.final_size)
        if request.kind is OrderKind.LIMIT and request.price is not None:
            body["price"] = plain_decimal(request.price)
        if request.stop_price is not None:
            body["stop"] = "loss"
            body["stopPrice"] = plain_decimal(request.stop_price)
        if request.market is MarketType.FUTURES and request.leverage is not None:
            body["leverage"] = plain_decimal(request.leverage)
        return body

    def _reject(self, result: OrderResult, reason: str) -> OrderResult:
        result.state = OrderState.REJECTED
        result.accepted = False
        result.rejection_reason = reason
        logger.info(
            "order_rejected",
            symbol=result.symbol,
            reason=reason,
            final_size=str(result.final_size) if result.final_size is not None else None,
        )
        return result

    async def place_order(
        self,
        request: OrderRequest,
        account_risk_budget: Decimal | None = None,
    ) -> OrderResult:
        """Run one order through sizing, signing and submission.

        Constraint lookup failure does not block the order: the conservative
        fallback is used and the result is flagged sizing_verified=False.
        Only accepted orders are persisted.

        Raises:
            ConfigurationError: Exchange secrets are missing. Nothing is sent.
        """
        self._settings.exchange.require_credentials()
        result = OrderResult(
            accepted=False,
            symbol=request.symbol,
            side=request.side,
            state=OrderState.RECEIVED,
        )

        result.state = OrderState.SIZING
        verified = True
        try:
            constraints = await self._exchange.fetch_symbol_constraints(
                request.symbol, request.market
            )
        except (ExchangeRejected, TransportError) as exc:
            logger.warning(
                "constraints_fallback",
                symbol=request.symbol,
                market=request.market.value,
                error=str(exc),
            )
            constraints = fallback_constraints(request.symbol, self._settings.sizing)
            verified = False

        try:
            decision = self._policy.compute(
                request, constraints, account_risk_budget, verified
            )
        except (SizingRejected, InvalidRequest) as exc:
            return self._reject(result, str(exc))

        result.final_size = decision.final_size
        result.final_funds = decision.final_funds
        result.sizing_verified = decision.verified

        result.state = OrderState.SIGNING
        body = self._build_order_body(request, decision)

        result.state = OrderState.SUBMITTED
        try:
            data = await self._exchange.submit_order(body, request.market)
        except ExchangeRejected as exc:
            return self._reject(result, exc.message)
        except TransportError as exc:
            logger.warning("order_transport_error", symbol=request.symbol, error=str(exc))
            return self._reject(result, TRANSPORT_ERROR_MESSAGE)

        result.state = OrderState.ACCEPTED
        result.accepted = True
        result.exchange_order_id = str(data.get("orderId") or body["clientOid"])
        logger.info(
            "order_accepted",
            order_id=result.exchange_order_id,
            symbol=request.symbol,
            side=request.side.value,
            size=body.get("size"),
            funds=body.get("funds"),
            sizing_verified=result.sizing_verified,
            notes=decision.notes,
        )

        if self._store is not None:
            try:
                await self._store.insert_order(result, request)
            except aiosqlite.Error:
                logger.error(
                    "order_record_failed",
                    order_id=result.exchange_order_id,
                    exc_info=True,
                )
        return result

    # ──────────────────────────────────────────────
    # Batch execution of signals
    # ──────────────────────────────────────────────

    async def execute_signals(
        self,
        signals: Sequence[TradingSignal],
        top_n: int | None = None,
        market: MarketType = MarketType.SPOT,
        size: Decimal | None = None,
    ) -> list[OrderResult]:
        """Place market orders for the highest-confidence actionable signals.

        HOLD signals are skipped. At most ``top_n`` orders are placed, one at
        a time, with a fixed delay between them. Each order reserves a slot
        of the daily limit before it is sent and rejected orders give it
        back. Each order's stop price is the signal's stop-loss.
        """
        top_n = top_n if top_n is not None else self._settings.account.default_top_n
        size = size if size is not None else self._settings.account.default_order_size
        actionable = sorted(
            (s for s in signals if s.direction is not SignalDirection.HOLD),
            key=lambda s: s.confidence,
            reverse=True,
        )
        results: list[OrderResult] = []
        for index, signal in enumerate(actionable[:top_n]):
            if not self._account.reserve_trade():
                logger.info("daily_trade_limit_reached", symbol=signal.symbol)
                break
            if index > 0:
                await self._sleep(self._settings.account.order_delay_seconds)
            request = OrderRequest(
                symbol=signal.symbol,
                side=OrderSide.BUY
                if signal.direction is SignalDirection.BUY
                else OrderSide.SELL,
                kind=OrderKind.MARKET,
                requested_size=size,
                stop_price=signal.stop_loss,
                market=market,
            )
            try:
                result = await self.place_order(request)
            except BaseException:
                self._account.release_trade()
                raise
            if not result.accepted:
                self._account.release_trade()
            results.append(result)

        logger.info(
            "signals_executed",
            requested=len(signals),
            placed=len(results),
            accepted=sum(1 for r in results if r.accepted),
            trades_today=self._account.trades_today,
        )
        return results

    @staticmethod
    def _signal_from_payload(raw: Any) -> TradingSignal:
        if not isinstance(raw, dict):
            raise InvalidRequest("each signal must be an object")
        symbol = raw.get("symbol")
        if not isinstance(symbol, str) or not symbol:
            raise InvalidRequest("signal symbol is required")
        try:
            direction = SignalDirection(str(raw.get("signal", "")).upper())
            return TradingSignal(
                symbol=symbol,
                direction=direction,
                confidence=int(raw.get("confidence", 0)),
                strategy_name=str(raw.get("strategy", "")),
                entry_price=Decimal(str(raw["entry_price"])),
                stop_loss=Decimal(str(raw["stop_loss"])),
                take_profit=Decimal(str(raw["take_profit"])),
                rationale=str(raw.get("analysis", "")),
            )
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise InvalidRequest(f"invalid signal for {symbol}: {exc}") from None

    async def _execute_signals_payload(self, payload: dict) -> dict[str, Any]:
        raw_signals = payload.get("signals")
        if not isinstance(raw_signals, list):
            raise InvalidRequest("signals must be a list")
        signals = [self._signal_from_payload(raw) for raw in raw_signals]

        if self._account.remaining_trades == 0:
            return _error(
                f"Daily trade limit reached "
                f"({self._account.trades_today}/{self._account.max_daily_trades})"
            )

        top_n = payload.get("topN")
        if top_n is not None and (not isinstance(top_n, int) or top_n < 1):
            raise InvalidRequest("topN must be a positive integer")
        results = await self.execute_signals(
            signals,
            top_n=top_n,
            market=self._market(payload.get("tradingType")),
        )
        if not results:
            return _error("No actionable signals to execute")
        return {
            "success": any(r.accepted for r in results),
            "results": [r.to_response() | {"symbol": r.symbol} for r in results],
            "tradesToday": self._account.trades_today,
        }
