"""
Transport Agent: the HTTP collaborator behind every connection.

A connection never talks to httpx directly. It hands an immutable
RequestDescriptor to a TransportAgent and gets back a Result holding a
TransportResponse (status, lowercase headers, decoded body, raw bytes).

HttpxAgent is the default implementation:
- Binds an endpoint and a set of static headers (the Swift bearer token)
- Runs an optional before_request hook on every request (the S3 signer)
- Sends header values as latin-1 bytes, so the whole 0x00-0xFF range
  that the metadata codec relies on is legal on the wire
- Reads response headers from the raw latin-1 bytes for the same reason
- Decodes JSON bodies when the response says it is JSON
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import (
    Any,
    AsyncIterable,
    Callable,
    Iterable,
    Mapping,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

import httpx

from osapi.core.config import TransportSettings
from osapi.core.types import Err, Ok, Result

logger = logging.getLogger(__name__)

Body = Union[bytes, str, Iterable[bytes], AsyncIterable[bytes], None]


# =============================================================================
# REQUEST / RESPONSE VALUES
# =============================================================================
@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """
    One outgoing request.

    url is relative to the agent endpoint ('/bucket/key?prefix=a') until
    the agent resolves it; hooks always see the absolute form.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Body = None

    def with_headers(self, headers: Mapping[str, str]) -> RequestDescriptor:
        return replace(self, headers=dict(headers))


@dataclass(frozen=True, slots=True)
class TransportResponse:
    """
    What the transport hands back.

    headers: lowercase names, latin-1 decoded values, repeats joined by ', '
    body: decoded JSON for JSON responses, otherwise text
    body_buffer: the raw bytes as received
    """

    status_code: int
    status_message: str
    headers: Mapping[str, str]
    body: Any = None
    body_buffer: bytes = b""

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


BeforeRequest = Callable[[RequestDescriptor], RequestDescriptor]


@runtime_checkable
class StreamSink(Protocol):
    """
    Receiver side of a streaming request.

    accept() sees the response head first. Returning False means the body
    is not wanted; the agent then buffers it into the returned response
    (an error body, typically).
    """

    def accept(self, response: TransportResponse) -> bool:
        ...

    async def write(self, chunk: bytes) -> None:
        ...


@runtime_checkable
class TransportAgent(Protocol):
    """Contract every transport implementation satisfies."""

    async def perform(self, request: RequestDescriptor) -> Result[TransportResponse, Exception]:
        ...

    async def stream(
        self,
        request: RequestDescriptor,
        sink: StreamSink,
    ) -> Result[TransportResponse, Exception]:
        ...

    async def aclose(self) -> None:
        ...


# =============================================================================
# HTTPX IMPLEMENTATION
# =============================================================================
def _decode_headers(raw: Iterable[tuple[bytes, bytes]]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for name_bytes, value_bytes in raw:
        name = name_bytes.decode("latin-1").lower()
        value = value_bytes.decode("latin-1")
        headers[name] = f"{headers[name]}, {value}" if name in headers else value
    return headers


def _decode_body(content: bytes, content_type: str) -> Any:
    if not content:
        return None
    content_type = content_type.lower()
    if "json" in content_type:
        try:
            return json.loads(content)
        except ValueError:
            logger.debug("Response declared JSON but did not parse; keeping text")
    elif content_type and not any(t in content_type for t in ("xml", "text")):
        # binary payload, available as body_buffer
        return None
    return content.decode("utf-8", errors="replace")


class HttpxAgent:
    """
    TransportAgent on top of httpx.AsyncClient.

    One agent owns one client. close() must be awaited to release pooled
    connections.

    Usage:
        agent = HttpxAgent("https://s3.example.com", TransportSettings())
        result = await agent.perform(RequestDescriptor("GET", "/"))
    """

    __slots__ = ("_endpoint", "_headers", "_before_request", "_client", "_closed")

    def __init__(
        self,
        endpoint: str,
        settings: TransportSettings,
        headers: Optional[Mapping[str, str]] = None,
        before_request: Optional[BeforeRequest] = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._headers = dict(headers or {})
        self._before_request = before_request
        self._client = httpx.AsyncClient(**self._client_kwargs(settings))
        self._closed = False

    @staticmethod
    def _client_kwargs(settings: TransportSettings) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"verify": settings.reject_unauthorized}
        if settings.proxy:
            kwargs["proxy"] = settings.proxy
        if settings.timeout is not None:
            kwargs["timeout"] = settings.timeout
        if not settings.keep_alive:
            kwargs["limits"] = httpx.Limits(max_keepalive_connections=0)
        if settings.transport is not None:
            kwargs["transport"] = settings.transport
        return kwargs

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def is_closed(self) -> bool:
        return self._closed

    def prepare(self, request: RequestDescriptor) -> RequestDescriptor:
        """Resolve the URL, merge static headers, run the before_request hook."""
        url = request.url
        if not url.startswith(("http://", "https://")):
            url = self._endpoint + (url if url.startswith("/") else "/" + url)
        headers = {**self._headers}
        for name, value in request.headers.items():
            if value is not None:
                headers[name] = value
        prepared = replace(request, url=url, headers=headers)
        if self._before_request is not None:
            prepared = self._before_request(prepared)
        return prepared

    def _build(self, prepared: RequestDescriptor) -> httpx.Request:
        headers = [
            (name.encode("latin-1"), str(value).encode("latin-1"))
            for name, value in prepared.headers.items()
        ]
        return self._client.build_request(
            prepared.method,
            prepared.url,
            headers=headers,
            content=prepared.body,
        )

    @staticmethod
    def _head(response: httpx.Response) -> TransportResponse:
        return TransportResponse(
            status_code=response.status_code,
            status_message=response.reason_phrase,
            headers=_decode_headers(response.headers.raw),
        )

    async def perform(self, request: RequestDescriptor) -> Result[TransportResponse, Exception]:
        """Send a request and buffer the whole response body."""
        prepared = self.prepare(request)
        try:
            response = await self._client.send(self._build(prepared))
        except httpx.HTTPError as e:
            logger.debug(f"{prepared.method} {prepared.url} transport error: {e}")
            return Err(e)

        head = self._head(response)
        logger.debug(f"{prepared.method} {prepared.url} -> {head.status_code}")
        return Ok(replace(
            head,
            body=_decode_body(response.content, head.content_type),
            body_buffer=response.content,
        ))

    async def stream(
        self,
        request: RequestDescriptor,
        sink: StreamSink,
    ) -> Result[TransportResponse, Exception]:
        """Send a request and drain an accepted body into sink chunk by chunk."""
        prepared = self.prepare(request)
        try:
            response = await self._client.send(self._build(prepared), stream=True)
        except httpx.HTTPError as e:
            logger.debug(f"{prepared.method} {prepared.url} transport error: {e}")
            return Err(e)

        try:
            head = self._head(response)
            logger.debug(f"{prepared.method} {prepared.url} -> {head.status_code} (stream)")
            if not sink.accept(head):
                content = await response.aread()
                return Ok(replace(
                    head,
                    body=_decode_body(content, head.content_type),
                    body_buffer=content,
                ))
            async for chunk in response.aiter_bytes():
                if chunk:
                    await sink.write(chunk)
            return Ok(head)
        except httpx.HTTPError as e:
            return Err(e)
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            await self._client.aclose()

    def __repr__(self) -> str:
        return f"HttpxAgent(endpoint={self._endpoint!r})"


__all__ = [
    "Body",
    "RequestDescriptor",
    "TransportResponse",
    "BeforeRequest",
    "StreamSink",
    "TransportAgent",
    "HttpxAgent",
]
