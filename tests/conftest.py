"""Shared test fixtures for the trading proxy."""

from collections.abc import Callable, Sequence
from decimal import Decimal

import pytest

from tradeproxy.config import AppSettings, ExchangeSettings, SizingSettings
from tradeproxy.models import Candle

HOUR_MS = 3_600_000


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with dummy KuCoin credentials and the clamp policy."""
    return AppSettings(
        log_level="DEBUG",
        exchange=ExchangeSettings(
            api_key="test-api-key",  # type: ignore[arg-type]
            api_secret="test-api-secret",  # type: ignore[arg-type]
            api_passphrase="test-passphrase",  # type: ignore[arg-type]
            api_key_version="2",
        ),
        sizing=SizingSettings(policy="clamp"),
    )


@pytest.fixture
def make_candles() -> Callable[[Sequence], list[Candle]]:
    """Factory turning a close series into hourly candles (high/low +-1)."""

    def _make(closes: Sequence) -> list[Candle]:
        candles = []
        for i, close in enumerate(closes):
            c = Decimal(str(close))
            candles.append(
                Candle(
                    open_time=i * HOUR_MS,
                    open=c,
                    high=c + 1,
                    low=c - 1,
                    close=c,
                    volume=Decimal("10"),
                    close_time=(i + 1) * HOUR_MS - 1,
                )
            )
        return candles

    return _make


def zigzag_uptrend(n: int = 50) -> list[Decimal]:
    """Rising closes with pullbacks: +3 on odd bars, -2 on even bars.

    Over the last 14 deltas RSI is 60, price > SMA20 > SMA50 and the last
    five bars break above the previous ten.
    """
    closes = [Decimal("100")]
    for i in range(1, n):
        closes.append(closes[-1] + (Decimal("3") if i % 2 else Decimal("-2")))
    return closes


@pytest.fixture
def uptrend_closes() -> list[Decimal]:
    return zigzag_uptrend(50)


@pytest.fixture
def downtrend_closes() -> list[Decimal]:
    """Mirror image of the uptrend: -3 on odd bars, +2 on even bars."""
    return [Decimal("300") - (c - Decimal("100")) for c in zigzag_uptrend(50)]
