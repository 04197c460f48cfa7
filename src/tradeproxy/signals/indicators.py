"""Technical indicators over closing-price series.

Pure functions: no state, no I/O. Series are ordered oldest-first.

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Sequence
from decimal import Decimal
from enum import Enum

from tradeproxy.exceptions import InsufficientData
from tradeproxy.models import Candle

#: Bars in the "recent" structure window and in the window preceding it.
RECENT_WINDOW = 5
PREVIOUS_WINDOW = 10

_NEUTRAL_RSI = Decimal("50")
_HUNDRED = Decimal("100")


class StructureBreak(str, Enum):
    """Break-of-structure classification."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NONE = "none"


def simple_moving_average(series: Sequence[Decimal], period: int) -> Decimal:
    """Average of the last ``period`` values.

    Never averages a shorter window: a short series raises instead, so the
    caller decides the fallback.

    Raises:
        InsufficientData: If ``len(series) < period`` or ``period < 1``.
    """
    if period < 1:
        raise InsufficientData(f"SMA period must be positive, got {period}")
    if len(series) < period:
        raise InsufficientData(
            f"SMA({period}) needs {period} values, got {len(series)}"
        )
    window = series[-period:]
    return sum(window, Decimal("0")) / Decimal(period)


def relative_strength_index(series: Sequence[Decimal], period: int = 14) -> Decimal:
    """RSI over the last ``period`` price changes.

    Average gain and average loss are taken over the last ``period`` deltas.
    Returns 50 (neutral) when fewer than ``period + 1`` values are available,
    and 100 when there were no losses. The result is always in [0, 100].
    """
    if period < 1 or len(series) < period + 1:
        return _NEUTRAL_RSI

    gains = Decimal("0")
    losses = Decimal("0")
    for i in range(len(series) - period, len(series)):
        change = series[i] - series[i - 1]
        if change > 0:
            gains += change
        else:
            losses -= change

    if losses == 0:
        return _HUNDRED

    rs = (gains / period) / (losses / period)
    rsi = _HUNDRED - _HUNDRED / (1 + rs)
    return max(Decimal("0"), min(_HUNDRED, rsi))


def detect_structure_break(series: Sequence[Decimal]) -> StructureBreak:
    """Compare the last 5 values with the 10 values before them.

    BULLISH when both the recent high and recent low exceed the previous
    window's high and low; BEARISH when both are lower; otherwise NONE.
    Returns NONE until both windows are complete (15 values).
    """
    if len(series) < RECENT_WINDOW + PREVIOUS_WINDOW:
        return StructureBreak.NONE

    recent = series[-RECENT_WINDOW:]
    previous = series[-(RECENT_WINDOW + PREVIOUS_WINDOW) : -RECENT_WINDOW]

    recent_high, recent_low = max(recent), min(recent)
    previous_high, previous_low = max(previous), min(previous)

    if recent_high > previous_high and recent_low > previous_low:
        return StructureBreak.BULLISH
    if recent_high < previous_high and recent_low < previous_low:
        return StructureBreak.BEARISH
    return StructureBreak.NONE


def find_liquidity_level(candles: Sequence[Candle]) -> Decimal:
    """Highest high across the candles, where resting buy-side liquidity sits."""
    if not candles:
        raise InsufficientData("liquidity level needs at least one candle")
    return max(c.high for c in candles)
