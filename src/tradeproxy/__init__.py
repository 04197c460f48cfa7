"""Trading signal generation and signed order-execution proxy."""

__version__ = "0.1.0"
