"""
Connection Façade: bucket/object verbs shared by both styles.

Every public operation:
- parses its arguments synchronously (malformed arguments raise)
- returns an asyncio.Future that resolves to a Result and never raises
- hands the identical (error, data) pair to the optional callback
- goes through the ReadinessGate, so on a Swift connection it waits for
  the token exchange and on a failed connection it is rejected at once

Usage:
    conn = SwiftConnection({"endpoint": url, "subuser": "acc:swift", "key": k})
    result = await conn.read_object({"container": "photos", "name": "cat.jpg"})
    if result.is_ok():
        data = result.unwrap().buffer

    conn.delete_object("cat.jpg", callback=lambda err, meta: ...)
"""

from __future__ import annotations

import asyncio
import mimetypes
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    ClassVar,
    Collection,
    Mapping,
    Optional,
    TypeVar,
    Union,
)

from osapi.auth.base import AuthStrategy
from osapi.core import constants as C
from osapi.core.config import ConnectionConfig
from osapi.core.errors import (
    AuthenticationError,
    ConfigurationError,
    ErrorCode,
    OsapiError,
    StorageRequestError,
    is_bad_request,
    is_not_found,
)
from osapi.core.types import (
    AuthSession,
    BucketInfo,
    ConnectionStyle,
    Err,
    Ok,
    ResponseMetadata,
    Result,
    StoredObject,
)
from osapi.connection.state_machine import (
    ConnectionState,
    PendingOperation,
    ReadinessGate,
    StateTransitionEvent,
)
from osapi.observability.logging import StructuredLogger
from osapi.protocol.classifier import find_error, summarize
from osapi.protocol.headers import parse_bucket_headers, parse_headers
from osapi.protocol.request import META_FLAGS, OperationOptions, build_url, parse_options
from osapi.transport.agent import Body, RequestDescriptor, TransportAgent, TransportResponse
from osapi.transport.receiver import StreamReceiver

T = TypeVar("T")

Callback = Callable[[Optional[OsapiError], Any], None]
Options = Union[str, Mapping[str, Any], OperationOptions, None]
OperationFuture = asyncio.Future  # resolves to Result[T, OsapiError]


# =============================================================================
# STATISTICS
# =============================================================================
@dataclass
class ConnectionStats:
    """
    Counters for one connection.

    Requests count wire round trips, including the token exchange.
    """
    requests: int = 0
    failures: int = 0
    queued: int = 0
    rejected: int = 0
    bytes_uploaded: int = 0
    bytes_downloaded: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "requests": self.requests,
            "failures": self.failures,
            "queued": self.queued,
            "rejected": self.rejected,
            "bytes_uploaded": self.bytes_uploaded,
            "bytes_downloaded": self.bytes_downloaded,
        }


def guess_content_type(name: Optional[str]) -> str:
    """MIME type from the object name's extension."""
    if name:
        guessed, _ = mimetypes.guess_type(name)
        if guessed:
            return guessed
    return C.DEFAULT_CONTENT_TYPE


def _body_size(body: Body) -> int:
    if isinstance(body, (bytes, bytearray)):
        return len(body)
    if isinstance(body, str):
        return len(body.encode("utf-8"))
    return 0


# =============================================================================
# STREAMING SINK
# =============================================================================
class _PullSink:
    """Classifies the response head, then forwards chunks to the receiver."""

    __slots__ = ("_conn", "_receiver", "meta")

    def __init__(self, conn: Connection, receiver: StreamReceiver) -> None:
        self._conn = conn
        self._receiver = receiver
        self.meta: Optional[ResponseMetadata] = None

    def accept(self, response: TransportResponse) -> bool:
        if response.status_code not in C.STATUS_PULL:
            # error body is buffered by the agent and classified afterwards
            return False
        self.meta = self._conn._parse_meta(response)
        self._receiver.set_meta(self.meta)
        return True

    async def write(self, chunk: bytes) -> None:
        self._conn._stats.bytes_downloaded += len(chunk)
        await self._receiver.write(chunk)


# =============================================================================
# CONNECTION
# =============================================================================
class Connection(ABC):
    """
    Base class of S3Connection and SwiftConnection.

    Subclasses supply the style-specific wire details (bucket creation,
    listings, uploads, copies); everything else lives here.
    """

    style: ClassVar[ConnectionStyle]

    def __init__(
        self,
        config: ConnectionConfig,
        strategy: AuthStrategy,
        initial_state: ConnectionState,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._strategy = strategy
        self._clock = clock
        self._session: Optional[AuthSession] = None
        self._agent: Optional[TransportAgent] = None
        self._piping_agent: Optional[TransportAgent] = None
        self._retired_agents: list[TransportAgent] = []
        self._auth_task: Optional[asyncio.Task[Result[None, AuthenticationError]]] = None
        self._stats = ConnectionStats()
        self._closed = False
        self._log = StructuredLogger(__name__).with_extra(
            style=config.style.value,
            endpoint=config.endpoint,
        )
        self._gate = ReadinessGate(initial_state, on_disconnected=self._on_disconnected)
        self._gate.add_listener(self._on_transition)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------
    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def state(self) -> ConnectionState:
        return self._gate.state

    @property
    def stats(self) -> ConnectionStats:
        return self._stats

    @property
    def session(self) -> Optional[AuthSession]:
        return self._session

    @property
    def bucket(self) -> Optional[str]:
        return self._config.bucket

    container = bucket

    @property
    def vendor_code(self) -> str:
        return self._config.vendor_code

    def is_connected(self) -> bool:
        return self._gate.state.is_ready

    def get(self, name: str) -> Optional[str]:
        """Normalized option by loose name ('endPoint', 'container', ...)."""
        return self._config.get(name)

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self._config.to_dict().items())
        return f"{self.__class__.__name__}({fields}, state={self._gate.state.name})"

    __str__ = __repr__

    # -------------------------------------------------------------------------
    # Readiness
    # -------------------------------------------------------------------------
    def connect(self, callback: Optional[Callback] = None) -> OperationFuture:
        """
        Run the token exchange (no-op for signing styles).

        While AUTHENTICATING this joins the exchange in flight. On a
        CONNECTED connection a fresh exchange replaces the session in place;
        operations already running keep the agents they started with.
        On a FAILED connection the cached error is returned.
        """
        future, settle = self._channel("CONNECT", callback)
        state = self._gate.state

        if state is ConnectionState.FAILED:
            settle(Err(self._gate.failure))
            return future

        if not self.style.needs_handshake:
            settle(Ok(None))
            return future

        if self._closed:
            settle(Err(self._closed_error("CONNECT")))
            return future

        def joined(task: asyncio.Task[Result[None, AuthenticationError]]) -> None:
            # cancelled only by close()
            settle(Err(self._closed_error("CONNECT")) if task.cancelled() else task.result())

        self._start_auth().add_done_callback(joined)
        return future

    def _on_disconnected(self) -> None:
        self._start_auth()

    def _start_auth(self) -> asyncio.Task[Result[None, AuthenticationError]]:
        if self._auth_task is not None and not self._auth_task.done():
            return self._auth_task
        if self._gate.state is ConnectionState.DISCONNECTED:
            self._gate.transition("CONNECT")
        self._auth_task = asyncio.get_running_loop().create_task(
            self._authenticate(), name=f"{self.style.value}-auth"
        )
        return self._auth_task

    async def _authenticate(self) -> Result[None, AuthenticationError]:
        self._stats.requests += 1
        try:
            result = await self._strategy.authenticate()
        except Exception as e:
            result = Err(AuthenticationError(
                code=ErrorCode.INTERNAL_ERROR,
                message=f"failed AUTH - internal error: {e!r}",
                action="AUTH",
                cause=e,
            ))

        if result.is_err():
            error = result.error
            self._stats.failures += 1
            self._log.error(
                f"Authentication failed: {error}",
                action="AUTH",
                error=error.to_dict(),
            )
            if self._gate.state is ConnectionState.AUTHENTICATING:
                self._gate.transition("AUTH_REJECTED", failure=error)
            return Err(error)

        self._install_session(result.unwrap())
        if self._gate.state is ConnectionState.AUTHENTICATING:
            self._gate.transition("AUTH_SUCCEEDED")
        else:
            self._log.info("Session replaced by a fresh token exchange", action="AUTH")
        return Ok(None)

    def _install_session(self, session: Optional[AuthSession]) -> None:
        if self._agent is not None:
            self._retired_agents.append(self._agent)
        if self._piping_agent is not None and self._piping_agent is not self._agent:
            self._retired_agents.append(self._piping_agent)
        self._session = session
        self._agent, self._piping_agent = self._strategy.bind(session)

    def _on_transition(self, event: StateTransitionEvent) -> None:
        self._log.info(
            f"{event.from_state.name} -> {event.to_state.name}",
            trigger=event.trigger,
            released=event.released,
        )

    async def close(self) -> None:
        """
        Release pooled transport clients.

        A connection closed before it became ready moves to FAILED: the
        operations waiting for it and any issued later are rejected.
        """
        if self._closed:
            return
        self._closed = True

        if self._gate.can_transition("CLOSE"):
            self._gate.transition("CLOSE", failure=self._closed_error("CLOSE"))
        if self._auth_task is not None and not self._auth_task.done():
            self._auth_task.cancel()

        agents = [*self._retired_agents]
        if self._agent is not None:
            agents.append(self._agent)
        if self._piping_agent is not None and self._piping_agent is not self._agent:
            agents.append(self._piping_agent)
        for agent in agents:
            await agent.aclose()
        self._retired_agents.clear()
        await self._strategy.aclose()

    async def __aenter__(self) -> Connection:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @staticmethod
    def _closed_error(action: str) -> StorageRequestError:
        return StorageRequestError.internal(action, RuntimeError("connection closed"))

    # -------------------------------------------------------------------------
    # Result channel
    # -------------------------------------------------------------------------
    def _channel(
        self,
        label: str,
        callback: Optional[Callback],
    ) -> tuple[OperationFuture, Callable[[Result[Any, OsapiError]], None]]:
        """A future plus a settle() that fills it and calls back exactly once."""
        future: OperationFuture = asyncio.get_running_loop().create_future()

        def settle(result: Result[Any, OsapiError]) -> None:
            if future.done():
                return
            future.set_result(result)
            if callback is None:
                return
            try:
                callback(*result.as_pair())
            except Exception:
                self._log.exception(f"Callback of {label} raised", action=label)

        return future, settle

    def _action(
        self,
        label: str,
        work: Callable[[], Awaitable[Result[T, OsapiError]]],
        callback: Optional[Callback] = None,
    ) -> OperationFuture:
        """Submit work to the readiness gate and return its future."""
        future, settle = self._channel(label, callback)

        async def run() -> None:
            try:
                result = await work()
            except OsapiError as e:
                result = Err(e)
            except Exception as e:
                self._log.exception(f"{label} raised unexpectedly", action=label)
                result = Err(StorageRequestError.internal(label, e))
            settle(result)

        def reject(error: OsapiError) -> None:
            self._stats.rejected += 1
            settle(Err(error))

        if self._closed:
            reject(self._closed_error(label))
            return future
        if not self._gate.state.is_ready and not self._gate.state.is_terminal:
            self._stats.queued += 1
        self._gate.submit(PendingOperation(label, run, reject))
        return future

    # -------------------------------------------------------------------------
    # Request helpers
    # -------------------------------------------------------------------------
    def _options(self, options: Options, default_field: str = "name") -> OperationOptions:
        return parse_options(options, default_field, self._config.bucket)

    def _bucket_options(self, options: Options, action: str) -> OperationOptions:
        """Bucket verbs take the bucket as 'name'; a bare 'bucket' works too."""
        opts = self._options(options)
        if not opts.name:
            opts = opts.merge(name=opts.bucket)
        return opts.require(action, "name")

    def _parse_meta(self, response: TransportResponse) -> ResponseMetadata:
        return parse_headers(response.headers, self.vendor_code)

    def _require_agent(self, streaming: bool = False) -> TransportAgent:
        agent = self._piping_agent if streaming else self._agent
        if agent is None:
            raise RuntimeError("connection has no bound transport agent")
        return agent

    async def _send(
        self,
        action: str,
        method: str,
        url: str,
        meta: Mapping[str, Any],
        headers: Optional[Mapping[str, Any]] = None,
        body: Body = None,
    ) -> Result[TransportResponse, StorageRequestError]:
        """One round trip; only transport failures come back as Err."""
        self._stats.requests += 1
        self._stats.bytes_uploaded += _body_size(body)
        request = RequestDescriptor(method=method, url=url, headers=dict(headers or {}), body=body)
        result = await self._require_agent().perform(request)
        if result.is_err():
            self._stats.failures += 1
            error = StorageRequestError.transport_failed(action, meta, result.error)
            self._log.warning(str(error), action=action, error_id=error.error_id)
            return Err(error)
        return result

    def _classify(
        self,
        action: str,
        expect: Collection[int],
        response: TransportResponse,
        meta: Mapping[str, Any],
    ) -> Optional[StorageRequestError]:
        error = find_error(action, expect, response, meta)
        if error is not None:
            self._stats.failures += 1
            self._log.warning(
                str(error),
                action=action,
                status=response.status_code,
                vendor_code=error.vendor_code,
                error_id=error.error_id,
            )
        return error

    @staticmethod
    def _suppressed(error: OsapiError, options: OperationOptions) -> bool:
        return (
            (options.suppress_not_found_error and is_not_found(error))
            or (options.suppress_bad_request_error and is_bad_request(error))
        )

    async def _call(
        self,
        action: str,
        method: str,
        url: str,
        expect: Collection[int],
        options: OperationOptions,
        headers: Optional[Mapping[str, Any]] = None,
        body: Body = None,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> Result[TransportResponse, StorageRequestError]:
        """_send() plus classification against `expect`."""
        meta = meta if meta is not None else options.to_dict()
        sent = await self._send(action, method, url, meta, headers, body)
        if sent.is_err():
            return sent
        response = sent.unwrap()
        error = self._classify(action, expect, response, meta)
        return Err(error) if error else Ok(response)

    async def _put_bucket(
        self,
        url: str,
        options: OperationOptions,
        headers: Mapping[str, Any],
        body: Body = None,
    ) -> Result[ResponseMetadata, StorageRequestError]:
        """PUT a bucket; 409 BucketAlreadyExists is success."""
        meta = options.to_dict()
        sent = await self._send("BUCKET_PUT", "PUT", url, meta, headers, body)
        if sent.is_err():
            return sent
        response = sent.unwrap()
        if response.status_code == 409 and summarize(response).vendor_code == C.BUCKET_ALREADY_EXISTS:
            self._log.debug(f"Bucket {options.name} already exists", action="BUCKET_PUT")
            return Ok(self._parse_meta(response))
        error = self._classify("BUCKET_PUT", C.STATUS_CREATE_BUCKET, response, meta)
        return Err(error) if error else Ok(self._parse_meta(response))

    # -------------------------------------------------------------------------
    # Style-specific verbs
    # -------------------------------------------------------------------------
    @abstractmethod
    def create_bucket(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        """Create a bucket/container. Resolves to ResponseMetadata."""

    @abstractmethod
    def find_buckets(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        """List buckets/containers. Resolves to list[BucketEntry]."""

    @abstractmethod
    def find_objects(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        """List objects. Resolves to list[DirEntry | ObjectEntry]."""

    @abstractmethod
    def create_object(
        self,
        options: Options,
        content: Body = None,
        callback: Optional[Callback] = None,
    ) -> OperationFuture:
        """Upload an object, or rewrite its metadata when meta_flag is set."""

    @abstractmethod
    def copy_object(self, source: Options, target: Options, callback: Optional[Callback] = None) -> OperationFuture:
        """Server-side copy. Resolves to ResponseMetadata."""

    # -------------------------------------------------------------------------
    # Shared verbs
    # -------------------------------------------------------------------------
    def delete_bucket(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        """
        Delete an empty bucket/container.

        Only 204 is success; a missing bucket surfaces as a not-found error.
        """
        opts = self._bucket_options(options, "BUCKET_DELETE")

        async def work() -> Result[ResponseMetadata, OsapiError]:
            # trailing slash is required by AWS S3 and Aliyun OSS
            url = build_url([opts.name, ""])
            called = await self._call("BUCKET_DELETE", "DELETE", url, C.STATUS_DELETE_BUCKET, opts)
            return called.map(self._parse_meta)

        return self._action("BUCKET_DELETE", work, callback)

    def read_bucket(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        """
        HEAD a bucket/container.

        Resolves to BucketInfo, or None when suppress_not_found_error is set
        and the bucket does not exist.
        """
        opts = self._bucket_options(options, "BUCKET_HEAD")

        async def work() -> Result[Optional[BucketInfo], OsapiError]:
            url = build_url([opts.name, ""])
            called = await self._call("BUCKET_HEAD", "HEAD", url, C.STATUS_READ, opts)
            if called.is_err():
                return Ok(None) if self._suppressed(called.error, opts) else called
            response = called.unwrap()
            return Ok(BucketInfo(
                meta=self._parse_meta(response),
                stats=parse_bucket_headers(response.headers),
            ))

        return self._action("BUCKET_HEAD", work, callback)

    def delete_object(self, options: Options, callback: Optional[Callback] = None) -> OperationFuture:
        """Delete an object. A missing object is not an error."""
        opts = self._options(options).require("OBJECT_DELETE", "bucket", "name")

        async def work() -> Result[ResponseMetadata, OsapiError]:
            url = build_url([opts.bucket, opts.name])
            called = await self._call("OBJECT_DELETE", "DELETE", url, C.STATUS_DELETE_OBJECT, opts)
            return called.map(self._parse_meta)

        return self._action("OBJECT_DELETE", work, callback)

    async def _read_object(self, opts: OperationOptions) -> Result[Optional[StoredObject], OsapiError]:
        method = "HEAD" if opts.only_meta else "GET"
        action = f"OBJECT_{method}"
        url = build_url([opts.bucket, opts.name])
        called = await self._call(action, method, url, C.STATUS_READ, opts)
        if called.is_err():
            return Ok(None) if self._suppressed(called.error, opts) else called
        response = called.unwrap()
        buffer = b"" if opts.only_meta else response.body_buffer
        self._stats.bytes_downloaded += len(buffer)
        return Ok(StoredObject(meta=self._parse_meta(response), buffer=buffer))

    def read_object(self, options: Options, callback: Optional[Callback] = None) -> OperationFuture:
        """
        Fetch an object into memory.

        Resolves to StoredObject (empty buffer with only_meta), or None when
        a suppressed not-found/bad-request error occurred.
        """
        opts = self._options(options).require("OBJECT_GET", "bucket", "name")
        return self._action("OBJECT_GET", lambda: self._read_object(opts), callback)

    def read_object_meta(self, options: Options, callback: Optional[Callback] = None) -> OperationFuture:
        """HEAD an object. Resolves to ResponseMetadata (or None if suppressed)."""
        opts = self._options(options).merge(only_meta=True)
        opts.require("OBJECT_HEAD", "bucket", "name")

        async def work() -> Result[Optional[ResponseMetadata], OsapiError]:
            read = await self._read_object(opts)
            return read.map(lambda stored: stored.meta if stored else None)

        return self._action("OBJECT_HEAD", work, callback)

    def create_object_meta(
        self,
        options: Options,
        meta: Optional[Mapping[str, Any]] = None,
        meta_flag: str = "w",
        callback: Optional[Callback] = None,
    ) -> OperationFuture:
        """
        Rewrite ('w') or extend ('a') the metadata of an existing object
        without touching its content.
        """
        if meta_flag not in META_FLAGS:
            raise ConfigurationError.invalid_argument(
                "OBJECT_META", f"meta_flag must be one of {META_FLAGS}, got {meta_flag!r}"
            )
        opts = self._options(options)
        opts = opts.merge(meta=meta if meta is not None else (opts.meta or {}), meta_flag=meta_flag)
        return self.create_object(opts, None, callback)

    def pull_object(self, options: Options, callback: Optional[Callback] = None) -> StreamReceiver:
        """
        Streaming read.

        Returns a StreamReceiver at once; its completion future and the
        callback get ResponseMetadata, or the error that also ends iteration.
        """
        opts = self._options(options).require("OBJECT_GET", "bucket", "name")
        receiver: Optional[StreamReceiver] = None

        async def work() -> Result[Optional[ResponseMetadata], OsapiError]:
            assert receiver is not None
            sink = _PullSink(self, receiver)
            meta = opts.to_dict()
            self._stats.requests += 1
            request = RequestDescriptor("GET", build_url([opts.bucket, opts.name]))
            streamed = await self._require_agent(streaming=True).stream(request, sink)
            if streamed.is_err():
                self._stats.failures += 1
                return Err(StorageRequestError.transport_failed("OBJECT_GET", meta, streamed.error))
            error = self._classify("OBJECT_GET", C.STATUS_PULL, streamed.unwrap(), meta)
            if error is not None:
                return Err(error)
            return Ok(sink.meta)

        future = self._action("OBJECT_GET", work, callback)
        receiver = StreamReceiver(future)

        def finish(done: asyncio.Future) -> None:
            result = done.result()
            receiver.finish(result.error if result.is_err() else None)

        future.add_done_callback(finish)
        return receiver

    def generate_temp_url(self, options: Options, callback: Optional[Callback] = None) -> OperationFuture:
        """
        Pre-signed GET URL for one object.

        ttl defaults to one day; an absolute `expires` (unix seconds) wins.
        """
        opts = self._options(options).require("OBJECT_TEMP_URL", "bucket", "name")
        ttl = opts.ttl if opts.ttl is not None else C.DEFAULT_TEMP_URL_TTL_S

        async def work() -> Result[str, OsapiError]:
            expires = opts.expires if opts.expires is not None else int(self._clock()) + ttl
            return Ok(self._strategy.signed_url(self._session, opts, expires))

        return self._action("OBJECT_TEMP_URL", work, callback)

    # -------------------------------------------------------------------------
    # Swift-style aliases
    # -------------------------------------------------------------------------
    def create_container(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        return self.create_bucket(options, callback)

    def delete_container(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        return self.delete_bucket(options, callback)

    def read_container(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        return self.read_bucket(options, callback)

    def find_containers(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        return self.find_buckets(options, callback)

    generate_signed_url = generate_temp_url


__all__ = [
    "Callback",
    "Options",
    "OperationFuture",
    "ConnectionStats",
    "guess_content_type",
    "Connection",
]
