"""Abstract exchange client interface.

Defines the contract the execution proxy depends on. KuCoin-specific
details (URLs, header names, response envelopes) stay in the concrete
implementation.
"""

from abc import ABC, abstractmethod

from tradeproxy.models import Candle, MarketType, SymbolConstraints


class ExchangeClient(ABC):
    """Abstract base class for exchange API clients.

    Implementations raise ExchangeRejected for a non-success exchange
    answer and TransportError for network or parse failures.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open HTTP resources and load public market metadata."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release HTTP resources (CRITICAL for ccxt async and httpx)."""
        ...

    @abstractmethod
    async def fetch_symbol_constraints(
        self, symbol: str, market: MarketType = MarketType.SPOT
    ) -> SymbolConstraints:
        """Fetch live minimum size/funds and increments for a symbol.

        Always hits the exchange; constraints are never reused across
        order placements.
        """
        ...

    @abstractmethod
    async def fetch_market_snapshot(self) -> dict:
        """Return ``{"symbols": [...], "prices": {symbol: price}}`` for spot."""
        ...

    @abstractmethod
    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        market: MarketType = MarketType.SPOT,
        limit: int = 100,
    ) -> list[Candle]:
        """Fetch candles ordered oldest-first."""
        ...

    @abstractmethod
    async def fetch_account(self, market: MarketType = MarketType.SPOT) -> dict:
        """Fetch the raw signed account-balance payload."""
        ...

    @abstractmethod
    async def submit_order(
        self, body: dict, market: MarketType = MarketType.SPOT
    ) -> dict:
        """Sign and submit an order body; return the exchange ``data`` object."""
        ...
