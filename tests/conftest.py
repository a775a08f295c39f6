"""Shared fixtures for the bitcoin.de client tests."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import patch

import pytest
import requests

from bitcoinde.client import BitcoindeClient

ENV_KEYS = (
    "BITCOINDE_API_KEY",
    "BITCOINDE_API_SECRET",
    "BITCOINDE_API_URL",
    "BITCOINDE_API_VERSION",
    "BITCOINDE_USER_AGENT",
    "BITCOINDE_TIMEOUT",
)


def make_response(body: Any = None, status: int = 200, raw: str = None) -> requests.Response:
    """Build a real ``requests.Response`` carrying *body* as JSON (or *raw* text)."""
    response = requests.Response()
    response.status_code = status
    response.encoding = "utf-8"
    text = raw if raw is not None else json.dumps(body if body is not None else {})
    response._content = text.encode("utf-8")
    return response


@pytest.fixture
def client():
    c = BitcoindeClient("K", "S")
    yield c
    c.close()


@pytest.fixture
def transport(client):
    """Patch the client's HTTP session; the mock returns ``{}`` by default."""
    with patch.object(client._session, "request", return_value=make_response({})) as mock:
        yield mock


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every BITCOINDE_* variable for the duration of a test."""
    for key in ENV_KEYS:
        # setenv first so monkeypatch restores the prior (possibly unset) state
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch
