"""Tests for productive.sync.transport module."""

from unittest.mock import MagicMock

import pytest
import requests

from productive.store.local import LocalStore
from productive.sync.errors import ApiError, NetworkError, Timeout, Unauthenticated
from productive.sync.transport import Transport


def make_response(status=200, body=None, raw=None):
    response = MagicMock(spec=requests.Response)
    response.status_code = status
    if raw is not None:
        response.json.side_effect = ValueError(raw)
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def credentials():
    store = LocalStore()
    store.set_token("abc")
    return store


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def transport(credentials, session):
    return Transport("http://localhost:5000/api/", credentials, timeout=10, session=session)


class TestRequest:

    def test_sends_bearer_and_json(self, transport, session):
        session.request.return_value = make_response(body={"action": "synced"})
        result = transport.request("/data/sync", {"dataType": "crm"})

        assert result == {"action": "synced"}
        session.request.assert_called_once_with(
            "POST",
            "http://localhost:5000/api/data/sync",
            headers={"Content-Type": "application/json", "Authorization": "Bearer abc"},
            timeout=10.0,
            json={"dataType": "crm"},
        )

    def test_get_without_body(self, transport, session):
        session.request.return_value = make_response(body={"data": {}})
        transport.request("/data", method="GET")
        args, kwargs = session.request.call_args
        assert args == ("GET", "http://localhost:5000/api/data")
        assert "json" not in kwargs

    def test_no_token_makes_no_call(self, transport, credentials, session):
        credentials.clear_token()
        with pytest.raises(Unauthenticated):
            transport.request("/data/sync", {})
        session.request.assert_not_called()

    def test_timeout(self, transport, session):
        session.request.side_effect = requests.Timeout("slow")
        with pytest.raises(Timeout) as exc:
            transport.request("/data/sync", {})
        assert exc.value.seconds == 10

    def test_connection_error(self, transport, session):
        session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(NetworkError):
            transport.request("/data/sync", {})

    def test_api_error_uses_server_message(self, transport, session):
        session.request.return_value = make_response(403, {"error": "Invalid token"})
        with pytest.raises(ApiError) as exc:
            transport.request("/data/sync", {})
        assert exc.value.status == 403
        assert "Invalid token" in str(exc.value)

    def test_api_error_falls_back_to_status(self, transport, session):
        session.request.return_value = make_response(502, raw="<html>")
        with pytest.raises(ApiError) as exc:
            transport.request("/data/sync", {})
        assert "HTTP 502" in str(exc.value)

    def test_invalid_json_body(self, transport, session):
        session.request.return_value = make_response(200, raw="nope")
        with pytest.raises(NetworkError):
            transport.request("/data", method="GET")


class TestHealthAndLogin:

    def test_health(self, transport, session):
        session.get.return_value = make_response(200, {"status": "OK"})
        assert transport.health() is True
        session.get.assert_called_once_with("http://localhost:5000/api/health", timeout=10.0)

    def test_health_unreachable(self, transport, session):
        session.get.side_effect = requests.ConnectionError("down")
        assert transport.health() is False

    def test_login_stores_token(self, transport, credentials, session):
        credentials.clear_token()
        session.post.return_value = make_response(200, {"token": "new", "user": {"username": "ada"}})
        user = transport.login("ada@example.com", "secret1")
        assert user == {"username": "ada"}
        assert credentials.get_token() == "new"

    def test_login_rejected(self, transport, session):
        session.post.return_value = make_response(401, {"error": "Invalid credentials"})
        with pytest.raises(ApiError):
            transport.login("ada@example.com", "wrong")

    def test_login_invalid_json(self, transport, credentials, session):
        session.post.return_value = make_response(200, raw="<html>")
        with pytest.raises(NetworkError):
            transport.login("ada@example.com", "secret1")
        assert credentials.get_token() == "abc"

    def test_login_without_token(self, transport, credentials, session):
        session.post.return_value = make_response(200, {"user": {"username": "ada"}})
        with pytest.raises(ApiError, match="no token"):
            transport.login("ada@example.com", "secret1")
        assert credentials.get_token() == "abc"
