"""Tests for the asynchronous bitcoin.de client (HTTP layer mocked)."""

from __future__ import annotations

import re
from unittest.mock import patch

import pytest
import requests

from bitcoinde.client import BitcoindeClient
from bitcoinde.exceptions import (
    APIError,
    ConfigurationError,
    DecodeError,
    TransportError,
    UnsupportedMethodError,
)
from bitcoinde.signing import EMPTY_MD5, sign

from conftest import make_response

WAIT = 5


def sent(transport, index=0):
    """Return (method, url, kwargs) of the *index*-th transport call."""
    args, kwargs = transport.call_args_list[index]
    return args[0], args[1], kwargs


# ── construction ───────────────────────────────────────────────────────────


@pytest.mark.parametrize("key, secret", [("", "S"), ("K", ""), (None, "S"), ("K", None), ("  ", "S")])
def test_missing_credentials_raise(key, secret):
    with pytest.raises(ConfigurationError):
        BitcoindeClient(key, secret)


def test_invalid_timeout_raises():
    with pytest.raises(ConfigurationError):
        BitcoindeClient("K", "S", timeout=0)


# ── request building ───────────────────────────────────────────────────────


def test_get_without_params_is_signed(client, transport):
    transport.return_value = make_response({"data": {"balances": {}}})

    payload = client.get("account").result(WAIT)

    assert payload == {"data": {"balances": {}}}
    method, url, kwargs = sent(transport)
    assert method == "GET"
    assert url == "https://api.bitcoin.de/v2/account"
    assert kwargs["data"] is None
    assert kwargs["timeout"] == 20.0

    headers = kwargs["headers"]
    nonce = headers["X-API-NONCE"]
    assert re.fullmatch(r"\d{17}", nonce)
    assert headers["X-API-KEY"] == "K"
    assert headers["User-Agent"] == "Bitcoin.de Python API Client"
    assert headers["X-API-SIGNATURE"] == sign("S", f"GET#{url}#K#{nonce}#{EMPTY_MD5}")


def test_get_params_go_to_query_string(client, transport):
    client.get("orders/btceur", {"type": "buy", "amount": 1}).result(WAIT)

    method, url, kwargs = sent(transport)
    assert url == "https://api.bitcoin.de/v2/orders/btceur?amount=1&type=buy"
    assert kwargs["data"] is None
    nonce = kwargs["headers"]["X-API-NONCE"]
    assert kwargs["headers"]["X-API-SIGNATURE"] == sign("S", f"GET#{url}#K#{nonce}#{EMPTY_MD5}")


def test_post_sends_sorted_form_body(client, transport):
    client.post("trades", {"b": "2", "a": "1"}).result(WAIT)
    client.post("trades", {"a": "1", "b": "2"}).result(WAIT)

    _, url, first = sent(transport, 0)
    _, _, second = sent(transport, 1)
    assert url == "https://api.bitcoin.de/v2/trades"
    assert first["data"] == second["data"] == "a=1&b=2"
    assert first["headers"]["Content-Type"] == "application/x-www-form-urlencoded"

    nonce = first["headers"]["X-API-NONCE"]
    expected = sign("S", f"POST#{url}#K#{nonce}#ed04c91cf6f6ab5a01a31c0295c5da34")
    assert first["headers"]["X-API-SIGNATURE"] == expected


def test_delete_is_uppercased_and_signed(client, transport):
    client.delete("orders/A1/btceur").result(WAIT)

    method, url, kwargs = sent(transport)
    assert method == "DELETE"
    nonce = kwargs["headers"]["X-API-NONCE"]
    assert kwargs["headers"]["X-API-SIGNATURE"] == sign("S", f"DELETE#{url}#K#{nonce}#{EMPTY_MD5}")


def test_custom_endpoint_and_agent():
    with BitcoindeClient("K", "S", base_url="https://example.test/", version="v4",
                         user_agent="tester", timeout=3) as c:
        with patch.object(c._session, "request", return_value=make_response({})) as mock:
            c.get("account").result(WAIT)
    _, url, kwargs = sent(mock)
    assert url == "https://example.test/v4/account"
    assert kwargs["headers"]["User-Agent"] == "tester"
    assert kwargs["timeout"] == 3


def test_signed_url_matches_url_on_the_wire():
    with BitcoindeClient("K", "S", base_url="https://API.Bitcoin.de") as c:
        with patch.object(c._session, "request", return_value=make_response({})) as mock:
            c.get("account").result(WAIT)
    _, url, kwargs = sent(mock)
    assert url == requests.Request("GET", url).prepare().url
    assert url == "https://api.bitcoin.de/v2/account"
    nonce = kwargs["headers"]["X-API-NONCE"]
    assert kwargs["headers"]["X-API-SIGNATURE"] == sign("S", f"GET#{url}#K#{nonce}#{EMPTY_MD5}")


def test_nonces_follow_call_order(client, transport):
    issued = []
    generate = client._nonces.generate

    def recording_generate():
        nonce = generate()
        issued.append(nonce)
        return nonce

    with patch.object(client._nonces, "generate", side_effect=recording_generate):
        futures = [client.get("account") for _ in range(20)]
        for f in futures:
            f.result(WAIT)

    in_call_order = [int(n) for n in issued]
    assert len(in_call_order) == 20
    assert all(a < b for a, b in zip(in_call_order, in_call_order[1:]))

    sent_nonces = {kw["headers"]["X-API-NONCE"] for _, kw in transport.call_args_list}
    assert sent_nonces == set(issued)


def test_method_is_case_insensitive(client, transport):
    client.request("post", "trades", {"a": 1}).result(WAIT)
    assert sent(transport)[0] == "POST"


# ── failures ───────────────────────────────────────────────────────────────


def test_unsupported_method_fails_before_network(client, transport):
    seen = []
    client.add_error_listener(seen.append)

    future = client.request("PATCH", "account", {"a": "1"})

    with pytest.raises(UnsupportedMethodError):
        future.result(WAIT)
    assert transport.call_count == 0
    assert len(seen) == 1 and isinstance(seen[0], UnsupportedMethodError)


def test_unsupported_method_without_params_fails_too(client, transport):
    with pytest.raises(UnsupportedMethodError):
        client.request("PUT", "account").result(WAIT)
    assert transport.call_count == 0


@pytest.mark.parametrize("action", ["", "/account", "account/", "a b"])
def test_invalid_action_fails_before_network(client, transport, action):
    with pytest.raises(ValueError):
        client.get(action).result(WAIT)
    assert transport.call_count == 0


def test_non_scalar_param_fails_before_network(client, transport):
    with pytest.raises(ValueError):
        client.post("trades", {"ids": [1, 2]}).result(WAIT)
    assert transport.call_count == 0


@pytest.mark.parametrize("status", [200, 400, 401, 422])
def test_errors_list_becomes_api_error(client, transport, status):
    transport.return_value = make_response(
        {"errors": [{"message": "invalid nonce", "code": 4}], "credits": 20}, status=status,
    )

    with pytest.raises(APIError) as info:
        client.get("account").result(WAIT)

    assert info.value.message == "invalid nonce"
    assert info.value.code == 4
    assert info.value.status_code == status
    assert "invalid nonce" in str(info.value)


def test_empty_errors_list_is_success(client, transport):
    transport.return_value = make_response({"errors": [], "data": 1})
    assert client.get("account").result(WAIT) == {"errors": [], "data": 1}


def test_connection_failure_becomes_transport_error(client, transport):
    transport.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(TransportError) as info:
        client.get("account").result(WAIT)

    assert isinstance(info.value.__cause__, requests.ConnectionError)
    assert info.value.status_code is None


def test_timeout_becomes_transport_error(client, transport):
    transport.side_effect = requests.Timeout("read timed out")
    with pytest.raises(TransportError):
        client.get("account").result(WAIT)


def test_malformed_json_becomes_decode_error(client, transport):
    transport.return_value = make_response(raw="<html>oops</html>")

    with pytest.raises(DecodeError) as info:
        client.get("account").result(WAIT)

    assert info.value.status_code == 200
    assert "oops" in info.value.body


def test_http_error_without_errors_list(client, transport):
    transport.return_value = make_response(raw="Bad Gateway", status=502)
    with pytest.raises(TransportError) as info:
        client.get("account").result(WAIT)
    assert info.value.status_code == 502

    transport.return_value = make_response({"message": "down"}, status=503)
    with pytest.raises(TransportError) as info:
        client.get("account").result(WAIT)
    assert info.value.status_code == 503


# ── error listeners ────────────────────────────────────────────────────────


def test_each_failure_reaches_listeners_once(client, transport):
    transport.return_value = make_response({"errors": [{"message": "invalid nonce"}]})
    first, second = [], []
    client.add_error_listener(first.append)
    client.add_error_listener(second.append)

    future = client.get("account")
    with pytest.raises(APIError) as info:
        future.result(WAIT)

    assert first == [info.value]
    assert second == [info.value]


def test_removed_listener_is_not_called(client, transport):
    transport.side_effect = requests.ConnectionError("down")
    seen = []
    client.add_error_listener(seen.append)
    client.remove_error_listener(seen.append)

    with pytest.raises(TransportError):
        client.get("account").result(WAIT)
    assert seen == []


def test_failing_listener_does_not_hide_error(client, transport, caplog):
    transport.side_effect = requests.ConnectionError("down")
    seen = []

    def broken(error):
        raise RuntimeError("listener bug")

    client.add_error_listener(broken)
    client.add_error_listener(seen.append)

    with pytest.raises(TransportError):
        client.get("account").result(WAIT)

    assert len(seen) == 1
    assert "listener" in caplog.text


def test_success_does_not_notify(client, transport):
    seen = []
    client.add_error_listener(seen.append)
    client.get("account").result(WAIT)
    assert seen == []


def test_failure_is_logged(client, transport, caplog):
    transport.return_value = make_response({"errors": [{"message": "invalid nonce"}]})
    with caplog.at_level("ERROR", logger="bitcoinde"):
        with pytest.raises(APIError):
            client.get("account").result(WAIT)
    assert "invalid nonce" in caplog.text
