"""HMAC-SHA256 request signing for the KuCoin REST API family.

The signed message is ``timestamp + METHOD + path + body``, where ``path``
includes the query string. The timestamp is part of the message and the
exchange rejects requests that drift more than a few seconds, so a
SignedRequest must be built immediately before it is sent and never reused.
"""

import base64
import hashlib
import hmac
import time
from collections.abc import Callable

from tradeproxy.models import SignedRequest


def sign(secret: str, timestamp: str, method: str, path: str, body: str = "") -> str:
    """Return the base64 HMAC-SHA256 digest of ``timestamp + METHOD + path + body``.

    Args:
        secret: API secret used as the HMAC key.
        timestamp: Unix milliseconds as a string.
        method: HTTP method; upper-cased before signing.
        path: Request path including any query string.
        body: Exact JSON body that will be transmitted ("" for GET).

    Returns:
        Base64-encoded signature.
    """
    message = timestamp + method.upper() + path + body
    digest = hmac.new(
        secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def sign_passphrase(secret: str, passphrase: str, key_version: str = "2") -> str:
    """Return the passphrase header value for the given API key version.

    Key version 1 sends the passphrase as-is; version 2 and later send the
    base64 HMAC-SHA256 of the passphrase under the API secret.
    """
    try:
        version = int(key_version)
    except ValueError:
        version = 2
    if version < 2:
        return passphrase
    digest = hmac.new(
        secret.encode("utf-8"), passphrase.encode("utf-8"), hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def _now_ms() -> int:
    return int(time.time() * 1000)


class RequestSigner:
    """Builds SignedRequests and the matching KC-API-* headers.

    Args:
        api_key: Public API key.
        api_secret: HMAC key. Never logged.
        api_passphrase: Key passphrase. Never logged.
        key_version: KuCoin API key version ("1", "2" or "3").
        clock: Returns the current Unix time in milliseconds.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        api_passphrase: str,
        key_version: str = "2",
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._api_passphrase = api_passphrase
        self._key_version = key_version
        self._clock = clock

    def sign_request(self, method: str, path: str, body: str = "") -> SignedRequest:
        """Stamp and sign one request. Send the result without delay."""
        timestamp = str(self._clock())
        method = method.upper()
        return SignedRequest(
            method=method,
            path=path,
            body=body,
            timestamp=timestamp,
            signature=sign(self._api_secret, timestamp, method, path, body),
            passphrase_digest=sign_passphrase(
                self._api_secret, self._api_passphrase, self._key_version
            ),
        )

    def headers(self, signed: SignedRequest) -> dict[str, str]:
        """Authentication headers for a signed request."""
        return {
            "KC-API-KEY": self._api_key,
            "KC-API-SIGN": signed.signature,
            "KC-API-TIMESTAMP": signed.timestamp,
            "KC-API-PASSPHRASE": signed.passphrase_digest,
            "KC-API-KEY-VERSION": self._key_version,
            "Content-Type": "application/json",
        }
