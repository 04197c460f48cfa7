"""SQLite persistence for accepted orders and generated signals."""

from tradeproxy.storage.database import ProxyDatabase
from tradeproxy.storage.store import TradeStore

__all__ = ["ProxyDatabase", "TradeStore"]
