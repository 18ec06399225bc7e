"""
Swift Token Client (TempAuth / radosgw /auth/1.0)

    GET {scheme}://{host}/auth/1.0
    X-Auth-User: {subuser}          e.g. "account:swift"
    X-Auth-Key:  {key}

    204 No Content
    X-Auth-Token:    ...            optional
    X-Storage-Url:   https://host/swift/v1
    X-Storage-Token: ...

Every later request goes to X-Storage-Url with X-Auth-Token set to the
storage token. Tokens are never refreshed; see DESIGN.md.

Temp URLs are signed with the account's Temp-URL key:

    temp_url_sig = hex(HMAC-SHA1(key, "GET\\n{expires}\\n/v1/{container}/{object}"))

References:
    https://docs.ceph.com/en/latest/radosgw/swift/auth/
    https://docs.openstack.org/swift/latest/api/temporary_url_middleware.html
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import ClassVar, Optional
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from osapi.auth.base import AuthStrategy
from osapi.core import constants as C
from osapi.core.config import TransportSettings
from osapi.core.errors import AuthenticationError, ConfigurationError
from osapi.core.types import AuthSession, ConnectionStyle, Err, Ok, Result
from osapi.protocol.classifier import summarize
from osapi.protocol.request import OperationOptions, encode_path
from osapi.transport.agent import HttpxAgent, RequestDescriptor, TransportAgent

logger = logging.getLogger(__name__)


def auth_url(endpoint: str) -> str:
    """Endpoint with its path replaced by /auth/1.0."""
    parts = urlsplit(endpoint)
    return urlunsplit((parts.scheme, parts.netloc, C.SWIFT_AUTH_PATH, "", ""))


def temp_url_signature(key: str, method: str, expires: int, path: str) -> str:
    body = f"{method}\n{expires}\n{path}"
    return hmac.new(key.encode("utf-8"), body.encode("utf-8"), hashlib.sha1).hexdigest()


class SwiftTokenClient(AuthStrategy):
    """
    Exchanges subuser/key for a storage URL and token.

    The auth agent is kept for the lifetime of the client so repeated
    connect() calls reuse one pool; aclose() releases it.
    """

    style: ClassVar[ConnectionStyle] = ConnectionStyle.SWIFT

    __slots__ = ("_endpoint", "_subuser", "_key", "_temp_url_key", "_settings", "_auth_agent")

    def __init__(
        self,
        endpoint: str,
        subuser: str,
        key: str,
        settings: TransportSettings,
        temp_url_key: Optional[str] = None,
    ) -> None:
        self._endpoint = endpoint
        self._subuser = subuser
        self._key = key
        self._temp_url_key = temp_url_key
        self._settings = settings
        self._auth_agent: Optional[HttpxAgent] = None

    @property
    def subuser(self) -> str:
        return self._subuser

    def _agent(self) -> HttpxAgent:
        if self._auth_agent is None:
            self._auth_agent = HttpxAgent(self._endpoint, self._settings)
        return self._auth_agent

    async def authenticate(self) -> Result[AuthSession, AuthenticationError]:
        url = auth_url(self._endpoint)
        request = RequestDescriptor(
            method="GET",
            url=url,
            headers={"X-Auth-User": self._subuser, "X-Auth-Key": self._key},
        )
        logger.debug(f"Requesting token for {self._subuser} at {url}")

        result = await self._agent().perform(request)
        if result.is_err():
            return Err(AuthenticationError.transport_failed(url, result.error))

        response = result.unwrap()
        if response.status_code not in C.SWIFT_AUTH_EXPECTED:
            return Err(AuthenticationError.rejected(summarize(response)))

        storage_url = response.headers.get("x-storage-url")
        storage_token = response.headers.get("x-storage-token") or response.headers.get("x-auth-token")
        if not storage_url:
            return Err(AuthenticationError.incomplete("X-Storage-Url", summarize(response)))
        if not storage_token:
            return Err(AuthenticationError.incomplete("X-Storage-Token", summarize(response)))

        return Ok(AuthSession(
            auth_token=response.headers.get("x-auth-token"),
            storage_url=storage_url.rstrip("/"),
            storage_token=storage_token,
        ))

    def bind(self, session: Optional[AuthSession]) -> tuple[TransportAgent, TransportAgent]:
        if session is None:
            raise ValueError("Swift agents need an authenticated session")
        headers = {
            "X-Auth-Token": session.storage_token,
            "Accept": "application/json",
        }
        agent = HttpxAgent(session.storage_url, self._settings, headers=headers)
        piping_agent = HttpxAgent(session.storage_url, self._settings, headers=headers)
        return agent, piping_agent

    def signed_url(
        self,
        session: Optional[AuthSession],
        options: OperationOptions,
        expires: int,
    ) -> str:
        """
        Raises:
            ConfigurationError: No temp URL key was configured
        """
        if not self._temp_url_key:
            raise ConfigurationError.option_absent("tempurlkey")
        if session is None:
            raise ValueError("Swift temp URLs need an authenticated session")

        path = encode_path([options.bucket, options.name])
        signature = temp_url_signature(
            self._temp_url_key,
            options.method,
            expires,
            f"/{C.SWIFT_API_VERSION}{path}",
        )
        query = urlencode(
            {"temp_url_sig": signature, "temp_url_expires": expires},
            quote_via=quote,
        )
        return f"{session.storage_url}{path}?{query}"

    async def aclose(self) -> None:
        if self._auth_agent is not None:
            await self._auth_agent.aclose()
            self._auth_agent = None

    def __repr__(self) -> str:
        return f"SwiftTokenClient(subuser={self._subuser!r}, key=***)"
