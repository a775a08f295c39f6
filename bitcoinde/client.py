"""
Low-level bitcoin.de REST client.

Handles authentication (nonce + HMAC-SHA256 signing), request dispatch on
a small worker pool, and response parsing.  ``get``, ``post`` and
``delete`` return ``concurrent.futures.Future`` objects whose result is
the parsed JSON payload, or which raise a ``BitcoindeError`` subclass.

Every failure is also passed to the registered error listeners and logged.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

import requests

from .config import (
    API_VERSION,
    BASE_URL,
    DEFAULT_TIMEOUT,
    DEFAULT_WORKERS,
    USER_AGENT,
    ClientConfig,
)
from .exceptions import (
    APIError,
    BitcoindeError,
    ConfigurationError,
    DecodeError,
    TransportError,
    UnsupportedMethodError,
)
from .signing import NonceGenerator, SignedRequest, prepare_request
from .validators import validate_action, validate_method, validate_params

logger = logging.getLogger("bitcoinde")

ErrorListener = Callable[[Exception], None]

_BODY_EXCERPT = 200

__all__ = [
    "BitcoindeClient",
    "ErrorListener",
    "APIError",
    "BitcoindeError",
    "ConfigurationError",
    "DecodeError",
    "TransportError",
    "UnsupportedMethodError",
]


# ── Client ─────────────────────────────────────────────────────────────────


class BitcoindeClient:
    """Thin asynchronous wrapper around the bitcoin.de trading API."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = BASE_URL,
        version: str = API_VERSION,
        user_agent: str = USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT,
        max_workers: int = DEFAULT_WORKERS,
    ):
        self.config = ClientConfig(
            api_key=api_key,
            api_secret=api_secret,
            base_url=base_url,
            version=version,
            user_agent=user_agent,
            timeout=timeout,
            max_workers=max_workers,
        )
        self._nonces = NonceGenerator()
        self._listeners: List[ErrorListener] = []
        self._listeners_lock = threading.Lock()
        self._session = requests.Session()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="bitcoinde",
        )

    @classmethod
    def from_config(cls, config: ClientConfig) -> "BitcoindeClient":
        return cls(
            api_key=config.api_key,
            api_secret=config.api_secret,
            base_url=config.base_url,
            version=config.version,
            user_agent=config.user_agent,
            timeout=config.timeout,
            max_workers=config.max_workers,
        )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "BitcoindeClient":
        """Build a client from ``BITCOINDE_*`` environment variables."""
        return cls.from_config(ClientConfig.from_env(env_file))

    # ── context-manager support ────────────────────────────────────────

    def __enter__(self) -> "BitcoindeClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        """Wait for pending requests, then close the worker pool and HTTP session."""
        self._executor.shutdown(wait=True)
        self._session.close()

    # ── error listeners ────────────────────────────────────────────────

    def add_error_listener(self, listener: ErrorListener) -> None:
        """Call *listener* with every error this client reports."""
        with self._listeners_lock:
            self._listeners.append(listener)

    def remove_error_listener(self, listener: ErrorListener) -> None:
        with self._listeners_lock:
            self._listeners.remove(listener)

    def _report(self, error: Exception) -> None:
        logger.error("bitcoin.de request failed: %s", error)
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(error)
            except Exception:
                logger.exception("Error listener %r raised", listener)

    # ── internal helpers ───────────────────────────────────────────────

    def _prepare(self, method: str, action: str, params: Optional[Dict[str, Any]]) -> SignedRequest:
        verb = validate_method(method)
        validate_action(action)
        validate_params(params)
        return prepare_request(
            verb,
            self.config.endpoint(action),
            params,
            self.config.api_key,
            self.config.api_secret,
            self._nonces.generate(),
        )

    def _send(self, prepared: SignedRequest) -> Any:
        """
        Dispatch a signed request and parse the response.

        Returns
        -------
        dict or list
            Decoded JSON payload.

        Raises
        ------
        APIError
            If the payload carries a non-empty ``errors`` list.
        TransportError
            On network failures, timeouts, or a non-2xx status without ``errors``.
        DecodeError
            If a 2xx response body is not valid JSON.
        """
        logger.debug(
            "API request  -> %s %s nonce=%s body=%s",
            prepared.method,
            prepared.url,
            prepared.nonce,
            prepared.body,
        )

        try:
            response = self._session.request(
                prepared.method,
                prepared.url,
                data=prepared.body,
                headers=prepared.headers(self.config.api_key, self.config.user_agent),
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Error in server response: {exc}") from exc

        logger.debug(
            "API response <- %s (%.1f KB)",
            response.status_code,
            len(response.content) / 1024,
        )

        try:
            payload = response.json()
        except ValueError as exc:
            excerpt = response.text[:_BODY_EXCERPT]
            if not response.ok:
                raise TransportError(
                    f"Error in server response: HTTP {response.status_code} {excerpt}",
                    status_code=response.status_code,
                ) from exc
            raise DecodeError(
                f"Malformed JSON in server response: {exc}",
                status_code=response.status_code,
                body=excerpt,
            ) from exc

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            if not isinstance(errors, list):
                errors = [errors]
            raise APIError(errors, status_code=response.status_code)

        if not response.ok:
            raise TransportError(
                f"Error in server response: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        return payload

    def _run(self, prepared: SignedRequest) -> Any:
        try:
            return self._send(prepared)
        except BitcoindeError as exc:
            self._report(exc)
            raise

    # ── public API methods ─────────────────────────────────────────────

    def request(self, method: str, action: str, params: Optional[Dict[str, Any]] = None) -> "Future[Any]":
        """
        Sign and dispatch ``method /{version}/{action}``.

        The nonce is drawn immediately, so nonces follow call order even
        though the HTTP exchange runs on a worker thread.  Invalid input
        (unsupported verb, bad action or parameters) yields an already
        failed future and nothing is sent.

        Parameters
        ----------
        method : str
            ``GET``, ``POST`` or ``DELETE`` (case-insensitive).
        action : str
            API action path, e.g. ``account`` or ``trades/btceur``.
        params : dict, optional
            Form body (POST) or query string (GET / DELETE).

        Returns
        -------
        concurrent.futures.Future
            Resolves to the decoded JSON payload.
        """
        try:
            prepared = self._prepare(method, action, params)
        except (UnsupportedMethodError, ValueError) as exc:
            self._report(exc)
            return _failed(exc)

        return self._executor.submit(self._run, prepared)

    def get(self, action: str, params: Optional[Dict[str, Any]] = None) -> "Future[Any]":
        """Perform a signed GET request; *params* become the query string."""
        return self.request("GET", action, params)

    def post(self, action: str, params: Optional[Dict[str, Any]] = None) -> "Future[Any]":
        """Perform a signed POST request; *params* become the sorted form body."""
        return self.request("POST", action, params)

    def delete(self, action: str, params: Optional[Dict[str, Any]] = None) -> "Future[Any]":
        """Perform a signed DELETE request; *params* become the query string."""
        return self.request("DELETE", action, params)


def _failed(exc: BaseException) -> "Future[Any]":
    future: "Future[Any]" = Future()
    future.set_exception(exc)
    return future
