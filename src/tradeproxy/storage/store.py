"""Append-only record store for accepted orders and generated signals.

All SQL is isolated behind TradeStore. Orders are keyed by exchange order
id (INSERT OR IGNORE); signals get an autoincrement id plus their
generation timestamp. Rows are never updated in place.

CRITICAL: All monetary values stored as TEXT in SQLite, restored as Decimal on read.
"""

from decimal import Decimal

from tradeproxy.logging import get_logger
from tradeproxy.models import OrderRequest, OrderResult, TradingSignal
from tradeproxy.storage.database import ProxyDatabase

logger = get_logger(__name__)


def _dec_or_none(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


class TradeStore:
    """Typed read/write access to trading_orders and trading_signals."""

    def __init__(self, database: ProxyDatabase) -> None:
        self._database = database

    async def insert_order(self, result: OrderResult, request: OrderRequest) -> bool:
        """Record an accepted order. Returns False if the id was already stored."""
        if not result.exchange_order_id:
            raise ValueError("only orders with an exchange order id are stored")

        cursor = await self._database.db.execute(
            "INSERT OR IGNORE INTO trading_orders "
            "(order_id, symbol, side, type, market, size, funds, status, "
            "sizing_verified, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                result.exchange_order_id,
                request.symbol,
                request.side.value,
                request.kind.value,
                request.market.value,
                str(result.final_size) if result.final_size is not None else None,
                str(result.final_funds) if result.final_funds is not None else None,
                "placed",
                int(result.sizing_verified),
                result.created_at,
            ),
        )
        await self._database.db.commit()
        inserted = cursor.rowcount > 0
        logger.debug("order_recorded", order_id=result.exchange_order_id, inserted=inserted)
        return inserted

    async def insert_signal(
        self, signal: TradingSignal, interval: str, trading_type: str = "spot"
    ) -> int:
        """Append a generated signal. Returns the new row id."""
        cursor = await self._database.db.execute(
            "INSERT INTO trading_signals "
            "(symbol, signal, confidence, strategy, entry_price, stop_loss, "
            "take_profit, analysis, trading_type, interval, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                signal.symbol,
                signal.direction.value,
                signal.confidence,
                signal.strategy_name,
                str(signal.entry_price),
                str(signal.stop_loss),
                str(signal.take_profit),
                signal.rationale,
                trading_type,
                interval,
                signal.created_at,
            ),
        )
        await self._database.db.commit()
        return cursor.lastrowid or 0

    async def get_orders(self, limit: int = 50) -> list[dict]:
        """Most recent orders first."""
        cursor = await self._database.db.execute(
            "SELECT order_id, symbol, side, type, market, size, funds, status, "
            "sizing_verified, created_at FROM trading_orders "
            "ORDER BY created_at DESC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [
            {
                "order_id": row[0],
                "symbol": row[1],
                "side": row[2],
                "type": row[3],
                "market": row[4],
                "size": _dec_or_none(row[5]),
                "funds": _dec_or_none(row[6]),
                "status": row[7],
                "sizing_verified": bool(row[8]),
                "created_at": row[9],
            }
            for row in rows
        ]

    async def get_signals(self, symbol: str | None = None, limit: int = 50) -> list[dict]:
        """Most recent signals first, optionally for a single symbol."""
        query = (
            "SELECT id, symbol, signal, confidence, strategy, entry_price, stop_loss, "
            "take_profit, analysis, trading_type, interval, created_at "
            "FROM trading_signals"
        )
        params: tuple = ()
        if symbol is not None:
            query += " WHERE symbol = ?"
            params = (symbol,)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params = (*params, limit)

        cursor = await self._database.db.execute(query, params)
        rows = await cursor.fetchall()
        return [
            {
                "id": row[0],
                "symbol": row[1],
                "signal": row[2],
                "confidence": row[3],
                "strategy": row[4],
                "entry_price": Decimal(row[5]),
                "stop_loss": Decimal(row[6]),
                "take_profit": Decimal(row[7]),
                "analysis": row[8],
                "trading_type": row[9],
                "interval": row[10],
                "created_at": row[11],
            }
            for row in rows
        ]
