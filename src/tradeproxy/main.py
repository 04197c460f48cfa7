"""Entry point for the trading signal proxy.

Wires all components together and serves the FastAPI app with uvicorn.
Exchange and database resources are opened and closed in the FastAPI
lifespan so they share the server's event loop.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. KucoinClient (ccxt public data + signed httpx calls)
4. ProxyDatabase + TradeStore (append-only records)
5. Sizing policy (clamp or reject)
6. OrderExecutionProxy
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from tradeproxy.config import AppSettings
from tradeproxy.exchange.kucoin_client import KucoinClient
from tradeproxy.execution.proxy import OrderExecutionProxy
from tradeproxy.logging import get_logger, setup_logging
from tradeproxy.server.app import create_app
from tradeproxy.sizing.policy import build_policy
from tradeproxy.storage.database import ProxyDatabase
from tradeproxy.storage.store import TradeStore


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Create the dependency graph. Nothing is connected yet."""
    logger = get_logger("tradeproxy.main")

    exchange_client = KucoinClient(settings.exchange, settings.market_data)
    if not settings.exchange.api_key.get_secret_value():
        logger.warning(
            "no_api_keys_configured",
            note="Public endpoints (market data, signals) will work. "
            "Account and order actions will return a configuration error.",
        )

    database = ProxyDatabase(settings.storage.db_path)
    store = TradeStore(database)
    policy = build_policy(settings.sizing)

    proxy = OrderExecutionProxy(
        exchange_client=exchange_client,
        settings=settings,
        store=store,
        policy=policy,
    )
    logger.info("components_built", sizing_policy=policy.name)
    return {
        "exchange_client": exchange_client,
        "database": database,
        "store": store,
        "proxy": proxy,
    }


def build_app(settings: AppSettings | None = None) -> FastAPI:
    """Build the fully wired application."""
    settings = settings or AppSettings()
    setup_logging(settings.log_level)
    components = _build_components(settings)
    logger = get_logger("tradeproxy.main")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await components["database"].connect()
            await components["exchange_client"].connect()
            logger.info("proxy_started")
            yield
        finally:
            await components["exchange_client"].close()
            await components["database"].close()
            logger.info("proxy_stopped")

    return create_app(
        proxy=components["proxy"],
        store=components["store"],
        lifespan=lifespan,
        cors_origins=settings.server.cors_origins,
    )


async def run() -> None:
    """Serve the proxy until interrupted."""
    settings = AppSettings()
    app = build_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Sync wrapper for the console script."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
