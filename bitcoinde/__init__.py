"""
bitcoinde — Signed REST client for the bitcoin.de trading API.

Submodules
----------
client          Asynchronous client: request dispatch, response parsing, error listeners.
signing         Nonce generation, parameter encoding and HMAC-SHA256 signing.
config          Immutable client configuration, loadable from ``.env``.
exceptions      Error hierarchy rooted at ``BitcoindeError``.
validators      Input validation run before any network I/O.
logging_config  Dual-output logging (console + rotating file).
"""

from bitcoinde.client import BitcoindeClient
from bitcoinde.config import ClientConfig
from bitcoinde.exceptions import (
    APIError,
    BitcoindeError,
    ConfigurationError,
    DecodeError,
    TransportError,
    UnsupportedMethodError,
)
from bitcoinde.signing import NonceGenerator

__all__ = [
    "BitcoindeClient",
    "ClientConfig",
    "NonceGenerator",
    "APIError",
    "BitcoindeError",
    "ConfigurationError",
    "DecodeError",
    "TransportError",
    "UnsupportedMethodError",
]
