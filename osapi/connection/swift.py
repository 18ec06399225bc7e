"""
Swift Connection: token-authenticated requests behind a readiness gate.

The token exchange starts as soon as the connection is built inside a
running event loop, or on the first operation otherwise. Operations
issued meanwhile are queued and released in order once the storage URL
and token are known; a refused exchange rejects them all, and every
later operation, with the same AuthenticationError.

Usage:
    conn = SwiftConnection({
        "endpoint": "http://rgw.local:7480",
        "subuser": "account:swift",
        "key": "secret",
        "container": "photos",
    })
    # no need to await connect(); this waits for it
    listing = await conn.find_objects({"prefix": "2024/", "delimiter": "/"})
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, ClassVar, Mapping, Optional

from osapi.auth.swift import SwiftTokenClient
from osapi.core import constants as C
from osapi.core.config import ConnectionConfig
from osapi.core.errors import ConfigurationError, OsapiError
from osapi.core.types import BucketEntry, ConnectionStyle, ListingEntry, Ok, ResponseMetadata, Result
from osapi.connection.base import Callback, Connection, OperationFuture, Options, guess_content_type
from osapi.connection.state_machine import ConnectionState
from osapi.protocol.headers import (
    SWIFT_CONTAINER_META_PREFIX,
    SWIFT_OBJECT_META_PREFIX,
    format_headers,
)
from osapi.protocol.listing import parse_swift_containers, parse_swift_objects
from osapi.protocol.request import build_url, encode_path
from osapi.transport.agent import Body

logger = logging.getLogger(__name__)

_LIST_OBJECTS_QUERY = ("delimiter", "limit", "path", "prefix", "marker")
_LIST_CONTAINERS_QUERY = ("limit", "marker", "prefix")

# meta_flag -> request method of a metadata-only update
_META_METHODS = {"w": "POST", "a": "COPY"}


class SwiftConnection(Connection):
    """
    Connection to a Swift endpoint (Ceph RGW Swift API or OpenStack Swift)
    using v1.0 token authentication.
    """

    style: ClassVar[ConnectionStyle] = ConnectionStyle.SWIFT

    def __init__(
        self,
        options: Mapping[str, Any],
        settings: Optional[Mapping[str, Any]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Raises:
            ConfigurationError: endpoint, subuser or key is absent
        """
        config = ConnectionConfig.from_options(options, ConnectionStyle.SWIFT, settings)
        client = SwiftTokenClient(
            endpoint=config.endpoint,
            subuser=config.subuser,
            key=config.key,
            settings=config.settings,
            temp_url_key=config.temp_url_key,
        )
        super().__init__(config, client, ConnectionState.DISCONNECTED, clock)

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop; token exchange for {config.subuser} deferred")
        else:
            self._start_auth()

    # -------------------------------------------------------------------------
    # Buckets (containers)
    # -------------------------------------------------------------------------
    def create_bucket(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        """PUT a container, with X-Container-Meta-* from options.meta."""
        opts = self._bucket_options(options, "BUCKET_PUT")
        headers = format_headers(meta=opts.meta, meta_prefix=SWIFT_CONTAINER_META_PREFIX)

        async def work() -> Result[ResponseMetadata, OsapiError]:
            return await self._put_bucket(build_url([opts.name]), opts, headers)

        return self._action("BUCKET_PUT", work, callback)

    def find_buckets(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        opts = self._options(options, default_field="prefix")
        query = {"limit": opts.limit, "marker": opts.marker, "prefix": opts.prefix}

        async def work() -> Result[list[BucketEntry], OsapiError]:
            url = build_url([], query, _LIST_CONTAINERS_QUERY)
            called = await self._call("SERVICE_GET", "GET", url, C.STATUS_LIST, opts)
            return called.flat_map(lambda response: parse_swift_containers(response.body))

        return self._action("SERVICE_GET", work, callback)

    # -------------------------------------------------------------------------
    # Objects
    # -------------------------------------------------------------------------
    def find_objects(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        """List a container. A bare string is the prefix."""
        opts = self._options(options, default_field="prefix").require("BUCKET_GET", "bucket")
        query = {
            "delimiter": opts.delimiter,
            "limit": opts.limit,
            "path": opts.path,
            "prefix": opts.prefix,
            "marker": opts.marker,
        }

        async def work() -> Result[list[ListingEntry], OsapiError]:
            url = build_url([opts.bucket], query, _LIST_OBJECTS_QUERY)
            called = await self._call("BUCKET_GET", "GET", url, C.STATUS_LIST, opts)
            return called.flat_map(lambda response: parse_swift_objects(response.body))

        return self._action("BUCKET_GET", work, callback)

    def create_object(
        self,
        options: Options,
        content: Body = None,
        callback: Optional[Callback] = None,
    ) -> OperationFuture:
        """
        PUT an object.

        meta_flag 'w' replaces the metadata with a POST; 'a' copies the
        object onto itself so the server merges the new values in.
        """
        opts = self._options(options).require("OBJECT_PUT", "bucket", "name")
        action = "OBJECT_META" if opts.meta_flag else "OBJECT_PUT"
        method = _META_METHODS.get(opts.meta_flag or "", "PUT")

        headers = format_headers(
            content_type=opts.content_type or guess_content_type(opts.name),
            meta=opts.meta,
            meta_prefix=SWIFT_OBJECT_META_PREFIX,
        )
        body = content
        if opts.meta_flag:
            body = None
        if method == "COPY":
            headers["destination"] = encode_path([opts.bucket, opts.name])

        async def work() -> Result[Optional[ResponseMetadata], OsapiError]:
            url = build_url([opts.bucket, opts.name])
            called = await self._call(
                action, method, url, C.STATUS_SWIFT_CREATE_OBJECT, opts, headers=headers, body=body
            )
            if called.is_err():
                return Ok(None) if self._suppressed(called.error, opts) else called
            return called.map(self._parse_meta)

        return self._action(action, work, callback)

    def copy_object(self, source: Options, target: Options, callback: Optional[Callback] = None) -> OperationFuture:
        """
        Server-side copy: COPY on the source with a Destination header.

        Raises:
            ConfigurationError: source or target lacks a container or name
        """
        src = self._options(source).require("OBJECT_COPY", "bucket", "name")
        dst = self._options(target).require("OBJECT_COPY", "bucket", "name")
        meta = {"source": src.to_dict(), "target": dst.to_dict()}
        headers = {"destination": encode_path([dst.bucket, dst.name])}

        async def work() -> Result[ResponseMetadata, OsapiError]:
            called = await self._call(
                "OBJECT_COPY", "COPY", build_url([src.bucket, src.name]),
                C.STATUS_SWIFT_COPY_OBJECT, src, headers=headers, meta=meta,
            )
            return called.map(self._parse_meta)

        return self._action("OBJECT_COPY", work, callback)

    def generate_temp_url(self, options: Options, callback: Optional[Callback] = None) -> OperationFuture:
        """
        Raises:
            ConfigurationError: the connection has no tempurlkey
        """
        if not self._config.temp_url_key:
            raise ConfigurationError.option_absent("tempurlkey")
        return super().generate_temp_url(options, callback)

    generate_signed_url = generate_temp_url


__all__ = [
    "SwiftConnection",
]
