"""
Input validators for bitcoin.de API calls.

``validate_method`` raises ``UnsupportedMethodError``; every other public
function raises ``ValueError`` with a human-readable message when
validation fails.  All checks run before any network I/O.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from .exceptions import UnsupportedMethodError

VALID_METHODS = ("GET", "POST", "DELETE")

# Action paths are relative, e.g. ``account`` or ``trades/btceur``.
_ACTION_RE = re.compile(r"^[A-Za-z0-9_\-]+(/[A-Za-z0-9_\-.]+)*$")

_SCALAR_TYPES = (str, int, float, Decimal, bool)


def validate_method(method: str) -> str:
    """Return the uppercased HTTP verb or raise if it is not supported."""
    verb = str(method).strip().upper()
    if verb not in VALID_METHODS:
        raise UnsupportedMethodError(method)
    return verb


def validate_action(action: str) -> str:
    """Return *action* unchanged or raise if it is not a relative API path."""
    if not isinstance(action, str) or not _ACTION_RE.match(action):
        raise ValueError(
            f"Invalid action {action!r}. "
            "Expected a relative path such as 'account' or 'trades/btceur'."
        )
    return action


def validate_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Check that *params* maps string keys to scalar values.

    ``None`` values are allowed (they are dropped during encoding).

    Raises
    ------
    ValueError
        If *params* is not a mapping, a key is not a non-empty string, or
        a value is a container or other non-scalar.
    """
    if params is None:
        return None
    if not isinstance(params, dict):
        raise ValueError(f"Parameters must be a dict, got {type(params).__name__}.")
    for key, value in params.items():
        if not isinstance(key, str) or not key:
            raise ValueError(f"Invalid parameter name {key!r}.")
        if value is not None and not isinstance(value, _SCALAR_TYPES):
            raise ValueError(
                f"Invalid value for parameter '{key}': "
                f"{type(value).__name__} is not a scalar."
            )
    return params


def parse_param_pairs(pairs: Iterable[str]) -> Dict[str, str]:
    """
    Turn ``KEY=VALUE`` strings (as given on the command line) into a dict.

    Raises
    ------
    ValueError
        If an item has no ``=`` or an empty key.
    """
    params: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Invalid parameter '{pair}'. Expected KEY=VALUE.")
        params[key] = value
    return params


def validate_timeout(timeout: Any) -> float:
    """Return *timeout* as a positive float (seconds) or raise."""
    try:
        value = float(timeout)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid timeout '{timeout}'. Must be a positive number of seconds.")
    if value <= 0:
        raise ValueError(f"Timeout must be positive, got {value}.")
    return value
