"""Indicator library and signal generator.

Pure indicator functions (SMA, RSI, structure break, liquidity level) and
the decision-table generator that turns a candle series into a TradingSignal.
"""

from tradeproxy.signals.generator import generate_signal
from tradeproxy.signals.indicators import (
    StructureBreak,
    detect_structure_break,
    find_liquidity_level,
    relative_strength_index,
    simple_moving_average,
)

__all__ = [
    "StructureBreak",
    "detect_structure_break",
    "find_liquidity_level",
    "generate_signal",
    "relative_strength_index",
    "simple_moving_average",
]
