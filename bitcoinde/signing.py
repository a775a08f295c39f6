"""
Nonce generation and request signing for the bitcoin.de API.

Every authenticated request carries three headers derived here:

  - ``X-API-KEY``       : the account's API key
  - ``X-API-NONCE``     : a strictly increasing value (see ``NonceGenerator``)
  - ``X-API-SIGNATURE`` : HMAC-SHA256 over the canonical signing string

The signing string is ``METHOD#url#key#nonce#md5`` where *md5* is the hex
digest of the form body (POST) or of the empty string (no body).
"""

from __future__ import annotations

import hashlib
import hmac
import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

EMPTY_MD5 = "d41d8cd98f00b204e9800998ecf8427e"  # md5("")

SIGNATURE_DELIMITER = "#"

# Sub-millisecond counter range; the nonce carries it as 4 digits.
_COUNTER_LIMIT = 1000
_COUNTER_WIDTH = 4


def _now_ms() -> int:
    return int(time.time() * 1000)


class NonceGenerator:
    """
    Produce strictly increasing nonces for a single API key.

    A nonce is the current Unix time in milliseconds followed by a 4-digit
    zero-padded counter, e.g. ``16970000000000003`` for the fourth call
    within millisecond ``1697000000000``.  Up to 1000 nonces can be issued
    per millisecond; past that the generator waits for the clock to advance.

    Parameters
    ----------
    clock : callable, optional
        Returns the current time in milliseconds.  Injected by tests.
    """

    def __init__(self, clock: Callable[[], int] = _now_ms):
        self._clock = clock
        self._lock = threading.Lock()
        self._last_ms = -1
        self._counter = 0

    def generate(self) -> str:
        """Return the next nonce as a decimal string."""
        with self._lock:
            now = self._clock()
            if now < self._last_ms:
                # Clock stepped backwards; stay on the last issued millisecond.
                now = self._last_ms

            if now == self._last_ms:
                counter = self._counter + 1
                while counter >= _COUNTER_LIMIT:
                    time.sleep(0.0001)
                    now = self._clock()
                    if now > self._last_ms:
                        counter = 0
            else:
                counter = 0

            self._last_ms = now
            self._counter = counter
            return f"{now}{counter:0{_COUNTER_WIDTH}d}"


def _format_value(value: Any) -> str:
    """Render a scalar the way the exchange expects amounts: never in exponent form."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, float):
        text = format(Decimal(repr(value)), "f")
        if "." in text:
            # 20000.0 -> 20000
            text = text.rstrip("0").rstrip(".")
        return text
    return str(value)


def encode_params(params: Optional[Dict[str, Any]]) -> str:
    """
    URL-encode *params* with keys sorted ascending.

    ``None`` values are dropped, floats and ``Decimal`` amounts are written
    in plain notation (``0.00005``, never ``5e-05``) and booleans as ``true`` /
    ``false``, so the same logical parameter set always encodes to the
    same string.
    """
    if not params:
        return ""
    items = [
        (key, _format_value(value))
        for key, value in sorted(params.items())
        if value is not None
    ]
    return urlencode(items)


def md5_hex(payload: str) -> str:
    """Hex MD5 of *payload*; ``EMPTY_MD5`` for an empty body."""
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def build_signing_string(method: str, url: str, api_key: str, nonce: str, body_md5: str) -> str:
    """Join the signed request attributes in their canonical order."""
    return SIGNATURE_DELIMITER.join([method.upper(), url, api_key, nonce, body_md5])


def sign(secret: str, message: str) -> str:
    """Hex HMAC-SHA256 of *message* keyed by *secret*."""
    return hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


@dataclass(frozen=True)
class SignedRequest:
    """A fully prepared request, ready to be handed to the transport."""

    method: str
    url: str
    body: Optional[str]
    nonce: str
    body_md5: str
    signature: str

    def headers(self, api_key: str, user_agent: str) -> Dict[str, str]:
        headers = {
            "User-Agent": user_agent,
            "X-API-KEY": api_key,
            "X-API-NONCE": self.nonce,
            "X-API-SIGNATURE": self.signature,
        }
        if self.body is not None:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        return headers


def prepare_request(
    method: str,
    url: str,
    params: Optional[Dict[str, Any]],
    api_key: str,
    api_secret: str,
    nonce: str,
) -> SignedRequest:
    """
    Serialize *params* for *method* and sign the result.

    POST parameters become the form body and are hashed; GET and DELETE
    parameters are appended to *url* as a query string and the empty
    body hash is signed.  *method* must already be validated.
    """
    method = method.upper()
    encoded = encode_params(params)
    body: Optional[str] = None
    body_md5 = EMPTY_MD5

    if encoded:
        if method == "POST":
            body = encoded
            body_md5 = md5_hex(encoded)
        else:
            url = f"{url}?{encoded}"

    message = build_signing_string(method, url, api_key, nonce, body_md5)
    return SignedRequest(
        method=method,
        url=url,
        body=body,
        nonce=nonce,
        body_md5=body_md5,
        signature=sign(api_secret, message),
    )
