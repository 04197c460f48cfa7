"""Signal generation from a candle series.

Evaluates a fixed decision table over SMA(20), SMA(50), RSI(14) and the
break-of-structure classification. Confidence values are table constants
(85/70/50), a heuristic stub rather than a statistical model.

Stop-loss and take-profit are fixed percentages of the entry price
(2% / 6% by default), giving a 1:3 risk/reward by construction.
"""

from collections.abc import Sequence
from decimal import Decimal

from tradeproxy.config import SignalSettings
from tradeproxy.exceptions import InsufficientData
from tradeproxy.logging import get_logger
from tradeproxy.models import Candle, SignalDirection, TradingSignal
from tradeproxy.signals.indicators import (
    StructureBreak,
    detect_structure_break,
    find_liquidity_level,
    relative_strength_index,
    simple_moving_average,
)

logger = get_logger(__name__)


def _protective_levels(
    entry: Decimal, direction: SignalDirection, settings: SignalSettings
) -> tuple[Decimal, Decimal]:
    """Return (stop_loss, take_profit) for the direction.

    BUY: stop below, target above. Everything else mirrors it.
    """
    stop_distance = entry * settings.stop_loss_pct
    target_distance = entry * settings.take_profit_pct
    if direction is SignalDirection.BUY:
        stop, target = entry - stop_distance, entry + target_distance
    else:
        stop, target = entry + stop_distance, entry - target_distance
    return stop, target


def generate_signal(
    candles: Sequence[Candle],
    symbol: str,
    settings: SignalSettings | None = None,
) -> TradingSignal:
    """Derive a BUY/SELL/HOLD signal from candles ordered oldest-first.

    Decision table, first match wins:
        1. price > SMA20 > SMA50, RSI < 70, bullish structure -> BUY 85
        2. price < SMA20 < SMA50, RSI > 30, bearish structure -> SELL 85
        3. price > SMA50 and RSI < 50                         -> BUY 70
        4. price < SMA50 and RSI > 50                         -> SELL 70
        5. otherwise                                          -> HOLD 50

    Args:
        candles: OHLCV bars, oldest first.
        symbol: Symbol the candles belong to.
        settings: Indicator periods and protective-level percentages.

    Returns:
        A new TradingSignal. The caller is responsible for persisting it.

    Raises:
        InsufficientData: Fewer candles than the slow SMA period.
    """
    settings = settings or SignalSettings()
    if len(candles) < settings.sma_slow_period:
        raise InsufficientData(
            f"need {settings.sma_slow_period} candles for {symbol}, got {len(candles)}"
        )

    closes = [c.close for c in candles]
    price = closes[-1]
    sma_fast = simple_moving_average(closes, settings.sma_fast_period)
    sma_slow = simple_moving_average(closes, settings.sma_slow_period)
    rsi = relative_strength_index(closes, settings.rsi_period)
    structure = detect_structure_break(closes)
    liquidity = find_liquidity_level(candles)

    if (
        price > sma_fast > sma_slow
        and rsi < settings.rsi_overbought
        and structure is StructureBreak.BULLISH
    ):
        direction, confidence = SignalDirection.BUY, 85
        reason = (
            "Bullish break of structure; price above SMA20 above SMA50; "
            "RSI not overbought."
        )
    elif (
        price < sma_fast < sma_slow
        and rsi > settings.rsi_oversold
        and structure is StructureBreak.BEARISH
    ):
        direction, confidence = SignalDirection.SELL, 85
        reason = (
            "Bearish break of structure; price below SMA20 below SMA50; "
            "RSI not oversold."
        )
    elif price > sma_slow and rsi < settings.rsi_midline:
        direction, confidence = SignalDirection.BUY, 70
        reason = "Price above SMA50 with RSI below 50; pullback in an uptrend."
    elif price < sma_slow and rsi > settings.rsi_midline:
        direction, confidence = SignalDirection.SELL, 70
        reason = "Price below SMA50 with RSI above 50; bounce in a downtrend."
    else:
        direction, confidence = SignalDirection.HOLD, 50
        reason = "No rule matched; indicators are mixed."

    rationale = (
        f"{reason} SMA20={sma_fast:.4f} SMA50={sma_slow:.4f} RSI={rsi:.2f} "
        f"structure={structure.value} liquidity={liquidity}"
    )
    stop_loss, take_profit = _protective_levels(price, direction, settings)

    signal = TradingSignal(
        symbol=symbol,
        direction=direction,
        confidence=confidence,
        strategy_name=settings.strategy_name,
        entry_price=price,
        stop_loss=stop_loss,
        take_profit=take_profit,
        rationale=rationale,
    )
    logger.info(
        "signal_generated",
        symbol=symbol,
        direction=direction.value,
        confidence=confidence,
        entry=str(price),
        rsi=str(rsi.quantize(Decimal("0.01"))),
        structure=structure.value,
    )
    return signal
