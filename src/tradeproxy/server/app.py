"""FastAPI application factory for the trading proxy endpoint."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

log = structlog.get_logger(__name__)


def _decimal_to_str(obj: Any) -> Any:
    """Recursively convert Decimal values to strings for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _decimal_to_str(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_str(item) for item in obj]
    return obj


def create_app(
    proxy: Any = None,
    store: Any = None,
    lifespan: Any = None,
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create and configure the proxy application.

    Args:
        proxy: OrderExecutionProxy; main.py may wire it later via the lifespan.
        store: Optional TradeStore backing the read-only history endpoints.
        lifespan: Optional async context manager for startup/shutdown.
        cors_origins: Allowed browser origins (default: any).

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(title="Trading Signal Proxy", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.proxy = proxy
    app.state.store = store

    @app.post("/")
    async def dispatch(request: Request) -> JSONResponse:
        """Action endpoint. Always HTTP 200; failures carry success=false."""
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        proxy = request.app.state.proxy
        if proxy is None:
            return JSONResponse(
                content={"success": False, "errorMessage": "Proxy not ready"}
            )
        action = payload.get("action") if isinstance(payload, dict) else None
        response = await proxy.handle(payload)
        log.debug("action_handled", action=action, success=response.get("success"))
        return JSONResponse(content=_decimal_to_str(response))

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/orders")
    async def orders(request: Request, limit: int = 50) -> JSONResponse:
        store = request.app.state.store
        if store is None:
            return JSONResponse(content=[])
        return JSONResponse(content=_decimal_to_str(await store.get_orders(limit)))

    @app.get("/signals")
    async def signals(
        request: Request, symbol: str | None = None, limit: int = 50
    ) -> JSONResponse:
        store = request.app.state.store
        if store is None:
            return JSONResponse(content=[])
        rows = await store.get_signals(symbol=symbol, limit=limit)
        return JSONResponse(content=_decimal_to_str(rows))

    return app
