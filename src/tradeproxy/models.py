"""Shared data models for the trading proxy.

CRITICAL: All monetary values use Decimal. Never use float for prices, sizes, or funds.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from tradeproxy.exceptions import InvalidRequest


class SignalDirection(str, Enum):
    """Signal recommendation."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class OrderSide(str, Enum):
    """Order direction."""

    BUY = "buy"
    SELL = "sell"


class OrderKind(str, Enum):
    """Order type."""

    MARKET = "market"
    LIMIT = "limit"


class MarketType(str, Enum):
    """Which KuCoin venue an order or query targets."""

    SPOT = "spot"
    FUTURES = "futures"


class OrderState(str, Enum):
    """Lifecycle of a single order placement. No transition is ever retried."""

    RECEIVED = "received"
    SIZING = "sizing"
    SIGNING = "signing"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar. Times are Unix milliseconds."""

    open_time: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    close_time: int

    @classmethod
    def from_ccxt(cls, row: list, interval_ms: int) -> "Candle":
        """Build from a ccxt OHLCV row: [timestamp_ms, open, high, low, close, volume]."""
        open_time = int(row[0])
        return cls(
            open_time=open_time,
            open=Decimal(str(row[1])),
            high=Decimal(str(row[2])),
            low=Decimal(str(row[3])),
            close=Decimal(str(row[4])),
            volume=Decimal(str(row[5] or 0)),
            close_time=open_time + interval_ms - 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "openTime": self.open_time,
            "open": str(self.open),
            "high": str(self.high),
            "low": str(self.low),
            "close": str(self.close),
            "volume": str(self.volume),
            "closeTime": self.close_time,
        }


@dataclass(frozen=True)
class TradingSignal:
    """Directional recommendation derived from a candle series.

    stop_loss and take_profit always sit on the correct side of entry_price
    for the direction. Never mutated after creation.
    """

    symbol: str
    direction: SignalDirection
    confidence: int  # 0-100, fixed table value
    strategy_name: str
    entry_price: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    rationale: str
    created_at: float = field(default_factory=time.time)

    @property
    def risk_reward(self) -> Decimal:
        """Ratio of target distance to stop distance."""
        risk = abs(self.entry_price - self.stop_loss)
        if risk == 0:
            return Decimal("0")
        return abs(self.take_profit - self.entry_price) / risk

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "signal": self.direction.value,
            "confidence": self.confidence,
            "strategy": self.strategy_name,
            "entry_price": str(self.entry_price),
            "stop_loss": str(self.stop_loss),
            "take_profit": str(self.take_profit),
            "analysis": self.rationale,
            "created_at": self.created_at,
        }


def plain_decimal(value: Decimal) -> str:
    """Plain decimal string without trailing zeros or scientific notation."""
    return format(value.normalize(), "f")


def _parse_decimal(payload: dict, *keys: str) -> Decimal | None:
    """Read the first present key as a Decimal; empty values mean "not given"."""
    for key in keys:
        raw = payload.get(key)
        if raw is None or raw == "":
            continue
        if isinstance(raw, bool):
            raise InvalidRequest(f"{key} must be numeric, got {raw!r}")
        try:
            value = Decimal(str(raw))
        except InvalidOperation:
            raise InvalidRequest(f"{key} must be numeric, got {raw!r}") from None
        if not value.is_finite():
            raise InvalidRequest(f"{key} must be finite, got {raw!r}")
        return value
    return None


def _parse_enum(enum_cls: type[Enum], raw: Any, name: str) -> Any:
    if raw is None or raw == "":
        raise InvalidRequest(f"{name} is required")
    try:
        return enum_cls(str(raw).lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)  # type: ignore[attr-defined]
        raise InvalidRequest(f"{name} must be one of: {allowed}") from None


@dataclass
class OrderRequest:
    """Caller-supplied order. Validated by from_payload before any exchange call."""

    symbol: str
    side: OrderSide
    kind: OrderKind
    requested_size: Decimal | None = None
    requested_funds: Decimal | None = None
    price: Decimal | None = None
    stop_price: Decimal | None = None
    leverage: Decimal | None = None
    market: MarketType = MarketType.SPOT

    @classmethod
    def from_payload(
        cls, payload: Any, default_market: str | None = None
    ) -> "OrderRequest":
        """Validate and convert the JSON ``orderData`` object.

        Raises:
            InvalidRequest: symbol, side or type missing/invalid, or a
                numeric field that does not parse.
        """
        if not isinstance(payload, dict):
            raise InvalidRequest("orderData must be an object")

        symbol = payload.get("symbol")
        if not isinstance(symbol, str) or not symbol.strip():
            raise InvalidRequest("symbol is required")

        side = _parse_enum(OrderSide, payload.get("side"), "side")
        kind = _parse_enum(
            OrderKind, payload.get("type") or payload.get("orderKind"), "type"
        )
        market_raw = (
            payload.get("tradingType") or payload.get("market") or default_market
        )
        market = (
            _parse_enum(MarketType, market_raw, "tradingType")
            if market_raw
            else MarketType.SPOT
        )

        request = cls(
            symbol=symbol.strip(),
            side=side,
            kind=kind,
            requested_size=_parse_decimal(payload, "size", "requestedSize"),
            requested_funds=_parse_decimal(payload, "funds", "requestedFunds"),
            price=_parse_decimal(payload, "price"),
            stop_price=_parse_decimal(payload, "stopPrice"),
            leverage=_parse_decimal(payload, "leverage"),
            market=market,
        )
        if request.kind is OrderKind.LIMIT and (
            request.price is None or request.price <= 0
        ):
            raise InvalidRequest("limit orders require a positive price")
        if request.leverage is not None and request.leverage < 1:
            raise InvalidRequest("leverage must be at least 1")
        return request

    @property
    def funds_based(self) -> bool:
        """Market orders sized by quote funds rather than base size."""
        return self.requested_size is None and self.requested_funds is not None


@dataclass(frozen=True)
class SymbolConstraints:
    """Exchange trading limits for one symbol, valid for one placement only."""

    symbol: str
    min_base_size: Decimal
    min_funds: Decimal = Decimal("0")
    price_increment: Decimal = Decimal("0")
    base_increment: Decimal | None = None
    max_leverage: int | None = None


@dataclass(frozen=True)
class SignedRequest:
    """A request ready to send. Single use: any mutation invalidates the signature."""

    method: str
    path: str
    body: str
    timestamp: str
    signature: str = field(repr=False)
    passphrase_digest: str = field(repr=False)


@dataclass
class SizingDecision:
    """Output of a sizing policy.

    verified=False means the exchange minimum could not be determined and a
    conservative default was used instead.
    """

    final_size: Decimal | None = None
    final_funds: Decimal | None = None
    verified: bool = True
    notes: list[str] = field(default_factory=list)


@dataclass
class OrderResult:
    """Outcome of one order placement, persisted for audit when accepted."""

    accepted: bool
    symbol: str
    side: OrderSide | None = None
    state: OrderState = OrderState.RECEIVED
    exchange_order_id: str | None = None
    final_size: Decimal | None = None
    final_funds: Decimal | None = None
    rejection_reason: str | None = None
    sizing_verified: bool = True
    created_at: float = field(default_factory=time.time)

    def to_response(self) -> dict[str, Any]:
        """JSON shape returned to the UI."""
        response: dict[str, Any] = {
            "success": self.accepted,
            "state": self.state.value,
            "sizingVerified": self.sizing_verified,
        }
        if self.exchange_order_id is not None:
            response["orderId"] = self.exchange_order_id
        if self.rejection_reason is not None:
            response["errorMessage"] = self.rejection_reason
        if self.final_size is not None:
            response["finalSize"] = plain_decimal(self.final_size)
        if self.final_funds is not None:
            response["finalFunds"] = plain_decimal(self.final_funds)
        return response
