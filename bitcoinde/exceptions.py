"""Exceptions raised by the bitcoin.de client."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class BitcoindeError(Exception):
    """Base class for every error the client reports."""


class ConfigurationError(BitcoindeError):
    """Raised when the client is constructed with missing or invalid settings."""


class UnsupportedMethodError(BitcoindeError):
    """Raised for an HTTP verb other than GET, POST or DELETE."""

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Method {method!r} not supported (use GET, POST or DELETE)")


class TransportError(BitcoindeError):
    """Raised on network failures, timeouts and non-2xx responses without ``errors``."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class DecodeError(BitcoindeError):
    """Raised when the response body is not valid JSON."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class APIError(BitcoindeError):
    """Raised when the decoded response carries a non-empty ``errors`` list."""

    def __init__(self, errors: List[Dict[str, Any]], status_code: Optional[int] = None):
        first = errors[0] if isinstance(errors[0], dict) else {"message": str(errors[0])}
        self.errors = errors
        self.status_code = status_code
        self.message = str(first.get("message", ""))
        self.code = first.get("code")
        super().__init__(f"bitcoin.de API returned error: {self.message}")
