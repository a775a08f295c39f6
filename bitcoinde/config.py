"""
Client configuration.

``ClientConfig`` is immutable once built.  It can be created directly or
from environment variables (optionally loaded from a ``.env`` file)::

    BITCOINDE_API_KEY       required
    BITCOINDE_API_SECRET    required
    BITCOINDE_API_URL       default https://api.bitcoin.de
    BITCOINDE_API_VERSION   default v2
    BITCOINDE_USER_AGENT    default "Bitcoin.de Python API Client"
    BITCOINDE_TIMEOUT       seconds, default 20
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import NoReturn, Optional
from urllib.parse import urlsplit, urlunsplit

from dotenv import find_dotenv, load_dotenv

from .exceptions import ConfigurationError

BASE_URL = "https://api.bitcoin.de"
API_VERSION = "v2"
USER_AGENT = "Bitcoin.de Python API Client"
DEFAULT_TIMEOUT = 20.0
DEFAULT_WORKERS = 4

logger = logging.getLogger("bitcoinde")


def _fail(message: str) -> NoReturn:
    logger.error("Invalid client configuration: %s", message)
    raise ConfigurationError(message)


def _normalise_url(url: str) -> str:
    """Lowercase scheme and host and drop trailing slashes.

    ``requests`` lowercases the host before sending, and the signed URL
    must be byte-identical to the one on the wire.
    """
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, "", ""))


@dataclass(frozen=True)
class ClientConfig:
    api_key: str
    api_secret: str
    base_url: str = BASE_URL
    version: str = API_VERSION
    user_agent: str = USER_AGENT
    timeout: float = DEFAULT_TIMEOUT
    max_workers: int = DEFAULT_WORKERS

    def __post_init__(self) -> None:
        if not self.api_key or not str(self.api_key).strip():
            _fail('required setting "api_key" is missing')
        if not self.api_secret or not str(self.api_secret).strip():
            _fail('required setting "api_secret" is missing')
        if not self.base_url:
            _fail('setting "base_url" must not be empty')
        if not self.version:
            _fail('setting "version" must not be empty')
        if self.timeout is None or self.timeout <= 0:
            _fail(f'setting "timeout" must be positive, got {self.timeout}')
        if self.max_workers < 1:
            _fail(f'setting "max_workers" must be at least 1, got {self.max_workers}')
        # Frozen dataclass: normalise through object.__setattr__.
        object.__setattr__(self, "base_url", _normalise_url(self.base_url))
        object.__setattr__(self, "version", self.version.strip("/"))

    def endpoint(self, action: str) -> str:
        """Full URL for *action*, e.g. ``https://api.bitcoin.de/v2/account``."""
        return f"{self.base_url}/{self.version}/{action}"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ClientConfig":
        """
        Build a config from ``BITCOINDE_*`` environment variables.

        Parameters
        ----------
        env_file : str, optional
            Path of a ``.env`` file to load first.  When omitted,
            ``python-dotenv`` searches for one from the working directory.
            Variables already set in the environment take precedence.

        Raises
        ------
        ConfigurationError
            If credentials are missing or a numeric setting is invalid.
        """
        load_dotenv(env_file or find_dotenv(usecwd=True))

        raw_timeout = os.getenv("BITCOINDE_TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
        except ValueError:
            _fail(f"BITCOINDE_TIMEOUT must be a number, got {raw_timeout!r}")

        return cls(
            api_key=os.getenv("BITCOINDE_API_KEY", ""),
            api_secret=os.getenv("BITCOINDE_API_SECRET", ""),
            base_url=os.getenv("BITCOINDE_API_URL") or BASE_URL,
            version=os.getenv("BITCOINDE_API_VERSION") or API_VERSION,
            user_agent=os.getenv("BITCOINDE_USER_AGENT") or USER_AGENT,
            timeout=timeout,
        )
