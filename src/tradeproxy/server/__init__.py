"""HTTP surface of the proxy."""

from tradeproxy.server.app import create_app

__all__ = ["create_app"]
