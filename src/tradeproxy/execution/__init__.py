"""Order execution proxy."""

from tradeproxy.execution.proxy import OrderExecutionProxy

__all__ = ["OrderExecutionProxy"]
