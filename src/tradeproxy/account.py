"""Per-account session state passed into the execution proxy.

Holds the balance snapshot and the daily trade counter. The counter resets
when the caller-supplied clock reports a new UTC day; there are no timers.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass
class AccountContext:
    """Explicit account state for one caller session.

    Args:
        balance: Quote-currency balance snapshot (informational).
        max_daily_trades: Orders allowed per day.
        clock: Returns today's date; injected so tests control day rollover.
    """

    balance: Decimal = Decimal("0")
    max_daily_trades: int = 5
    clock: Callable[[], date] = _utc_today
    trades_today: int = 0
    _day: date | None = field(default=None, repr=False)

    def _roll_day(self) -> None:
        today = self.clock()
        if self._day != today:
            self._day = today
            self.trades_today = 0

    @property
    def remaining_trades(self) -> int:
        self._roll_day()
        return max(self.max_daily_trades - self.trades_today, 0)

    def record_trade(self) -> None:
        """Count one accepted order against today's limit."""
        self._roll_day()
        self.trades_today += 1

    def reserve_trade(self) -> bool:
        """Claim one slot of today's limit before an order is submitted.

        Check and claim happen with no await in between.
        """
        if self.remaining_trades == 0:
            return False
        self.trades_today += 1
        return True

    def release_trade(self) -> None:
        """Return a reserved slot whose order was not accepted."""
        self._roll_day()
        self.trades_today = max(self.trades_today - 1, 0)
