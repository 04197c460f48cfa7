"""Exchange client layer -- KuCoin REST integration via ccxt and signed httpx calls."""

from tradeproxy.exchange.client import ExchangeClient
from tradeproxy.exchange.kucoin_client import KucoinClient, to_ccxt_timeframe
from tradeproxy.exchange.signer import RequestSigner, sign, sign_passphrase

__all__ = [
    "ExchangeClient",
    "KucoinClient",
    "RequestSigner",
    "sign",
    "sign_passphrase",
    "to_ccxt_timeframe",
]
