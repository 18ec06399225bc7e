"""
Unit Tests: Swift Token Client

Tests:
    - Token exchange request and session extraction
    - Rejected, incomplete and unreachable auth endpoints
    - Agents bound to the storage URL carry the token
    - Temp URL signatures
"""

import httpx
import pytest

from osapi.auth.swift import SwiftTokenClient, auth_url, temp_url_signature
from osapi.core.config import TransportSettings
from osapi.core.errors import AuthenticationError, ConfigurationError, ErrorCode
from osapi.core.types import AuthSession
from osapi.protocol.request import OperationOptions
from osapi.transport.agent import RequestDescriptor
from osapi.tests.conftest import STORAGE_URL, SWIFT_ENDPOINT, swift_auth_route

SESSION = AuthSession(auth_token="AUTH_tk123", storage_url=STORAGE_URL, storage_token="AUTH_tk123")


def make_client(temp_url_key="tk") -> SwiftTokenClient:
    return SwiftTokenClient(
        endpoint=SWIFT_ENDPOINT,
        subuser="account:swift",
        key="secret",
        settings=TransportSettings(),
        temp_url_key=temp_url_key,
    )


class TestAuthUrl:
    """Tests for the v1.0 auth URL."""

    def test_path_replaced(self):
        assert auth_url("http://swift.test:8080/some/path") == "http://swift.test:8080/auth/1.0"


class TestAuthenticate:
    """Tests for the token exchange."""

    async def test_success(self, swift_api):
        route = swift_auth_route(swift_api)
        client = make_client()

        result = await client.authenticate()

        assert result.is_ok()
        session = result.unwrap()
        assert session.storage_url == STORAGE_URL
        assert session.storage_token == "AUTH_tk123"
        sent = route.calls.last.request
        assert sent.headers["X-Auth-User"] == "account:swift"
        assert sent.headers["X-Auth-Key"] == "secret"
        await client.aclose()

    async def test_token_falls_back_to_auth_token(self, swift_api):
        swift_auth_route(swift_api, headers={"X-Storage-Url": STORAGE_URL, "X-Auth-Token": "AUTH_only"})
        client = make_client()

        session = (await client.authenticate()).unwrap()

        assert session.storage_token == "AUTH_only"
        await client.aclose()

    async def test_rejected(self, swift_api):
        swift_auth_route(swift_api, status=401, headers={})
        client = make_client()

        result = await client.authenticate()

        assert result.is_err()
        error = result.error
        assert isinstance(error, AuthenticationError)
        assert error.code is ErrorCode.AUTH_REJECTED
        assert error.status_code == 401
        await client.aclose()

    async def test_missing_storage_url(self, swift_api):
        swift_auth_route(swift_api, headers={"X-Auth-Token": "AUTH_tk123"})
        client = make_client()

        result = await client.authenticate()

        assert result.error.code is ErrorCode.AUTH_INCOMPLETE_RESPONSE
        assert "X-Storage-Url" in result.error.message
        await client.aclose()

    async def test_unreachable(self, swift_api):
        swift_api.get(f"{SWIFT_ENDPOINT}/auth/1.0").mock(side_effect=httpx.ConnectError("refused"))
        client = make_client()

        result = await client.authenticate()

        assert result.error.code is ErrorCode.AUTH_TRANSPORT_FAILED
        assert isinstance(result.error.cause, httpx.ConnectError)
        await client.aclose()


class TestBind:
    """Tests for session-bound agents."""

    async def test_token_header(self, swift_api):
        route = swift_api.head(f"{STORAGE_URL}/photos/").mock(return_value=httpx.Response(204))
        agent, piping_agent = make_client().bind(SESSION)

        result = await agent.perform(RequestDescriptor("HEAD", "/photos/"))

        assert result.unwrap().status_code == 204
        assert route.calls.last.request.headers["X-Auth-Token"] == "AUTH_tk123"
        assert agent is not piping_agent
        await agent.aclose()
        await piping_agent.aclose()

    def test_bind_needs_session(self):
        with pytest.raises(ValueError):
            make_client().bind(None)


class TestTempUrl:
    """Golden temp URL signatures (HMAC-SHA1 hex, key 'tk')."""

    def test_signature(self):
        assert temp_url_signature("tk", "GET", 1700086400, "/v1/photos/cat.jpg") == (
            "c3ba1a2319991712a83e37a391663c3dc2c49490"
        )

    def test_signed_url(self):
        url = make_client().signed_url(SESSION, OperationOptions(bucket="photos", name="cat.jpg"), 1700086400)
        assert url == (
            f"{STORAGE_URL}/photos/cat.jpg"
            "?temp_url_sig=c3ba1a2319991712a83e37a391663c3dc2c49490&temp_url_expires=1700086400"
        )

    def test_segments_encoded_before_signing(self):
        url = make_client().signed_url(SESSION, OperationOptions(bucket="photos", name="my cat.jpg"), 1700086400)
        assert url.startswith(f"{STORAGE_URL}/photos/my%20cat.jpg?")
        assert "temp_url_sig=4c2792e01011a8f0256325dde7ebac0ce5b5880a" in url

    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            make_client(temp_url_key=None).signed_url(SESSION, OperationOptions(bucket="b", name="o"), 1)
