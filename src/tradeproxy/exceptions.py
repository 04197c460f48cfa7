"""Custom exceptions for the trading proxy.

All signal, sizing, signing and execution exceptions live here
to avoid circular imports between modules. None of them escape the
OrderExecutionProxy boundary: the proxy turns each into a structured
``{"success": False, "errorMessage": ...}`` response.
"""


class ProxyError(Exception):
    """Base exception for all proxy errors."""


class ConfigurationError(ProxyError):
    """Raised when a required exchange secret is missing from the environment."""


class InvalidRequest(ProxyError):
    """Raised when caller input is malformed. No external call is made."""


class InsufficientData(ProxyError):
    """Raised when a series is too short for the requested indicator window."""


class SizingRejected(ProxyError):
    """Raised by the reject-below-minimum sizing policy."""


class ExchangeRejected(ProxyError):
    """Raised when the exchange answers with a non-success code.

    The exchange message is kept verbatim so it can be surfaced to the caller.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class TransportError(ProxyError):
    """Raised on network failure, timeout, or an unparseable exchange response."""
