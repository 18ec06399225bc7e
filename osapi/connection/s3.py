"""
S3 Connection: header-signed requests, always ready.

Every request is signed by the S3Signer hook on the agent, so there is
no handshake; the readiness gate starts (and stays) CONNECTED.

Usage:
    async with S3Connection({
        "endpoint": "http://rgw.local:7480",
        "accessKey": "AK",
        "secretAccessKey": "SK",
        "bucket": "photos",
    }) as conn:
        await conn.create_object("cat.jpg", jpeg_bytes)
        listing = (await conn.find_objects({"prefix": "2024/", "delimiter": "/"})).unwrap()
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, ClassVar, Mapping, Optional

from osapi.auth.s3 import S3Signer
from osapi.core import constants as C
from osapi.core.config import ConnectionConfig
from osapi.core.errors import OsapiError
from osapi.core.types import BucketEntry, ConnectionStyle, ListingEntry, Ok, ResponseMetadata, Result
from osapi.connection.base import Callback, Connection, OperationFuture, Options, guess_content_type
from osapi.connection.state_machine import ConnectionState
from osapi.protocol.headers import S3_META_PREFIX, format_headers
from osapi.protocol.listing import parse_s3_buckets, parse_s3_objects
from osapi.protocol.request import build_url, encode_path
from osapi.transport.agent import Body

logger = logging.getLogger(__name__)

COPY_SOURCE_HEADER = "x-{VENDOR_CODE}-copy-source"
METADATA_DIRECTIVE_HEADER = "x-{VENDOR_CODE}-metadata-directive"

# Sent to vendors other than ceph, which rejects an empty configuration
CREATE_BUCKET_BODY = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    "<CreateBucketConfiguration>"
    "<StorageClass>Standard</StorageClass>"
    "</CreateBucketConfiguration>"
)

_LIST_OBJECTS_QUERY = ("delimiter", "max-keys", "marker", "prefix")
_LIST_BUCKETS_QUERY = ("limit", "marker", "prefix")


class S3Connection(Connection):
    """
    Connection to an S3-compatible endpoint (Ceph RGW, AWS, Aliyun OSS).

    Vendor-specific header names carry a {VENDOR_CODE} placeholder that
    the signer resolves to 'amz' or 'oss'.
    """

    style: ClassVar[ConnectionStyle] = ConnectionStyle.S3

    def __init__(
        self,
        options: Mapping[str, Any],
        settings: Optional[Mapping[str, Any]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Raises:
            ConfigurationError: endpoint, access key or secret is absent,
                or the vendor is unknown
        """
        config = ConnectionConfig.from_options(options, ConnectionStyle.S3, settings)
        signer = S3Signer(
            access_key=config.access_key,
            secret_access_key=config.secret_access_key,
            endpoint=config.endpoint,
            settings=config.settings,
            vendor_code=config.vendor_code,
            bucket_in_domain=config.bucket_in_domain,
            clock=clock,
        )
        super().__init__(config, signer, ConnectionState.CONNECTED, clock)
        self._install_session(None)
        logger.debug(f"S3 connection ready: {config.endpoint} (vendor {config.vendor})")

    # -------------------------------------------------------------------------
    # Buckets
    # -------------------------------------------------------------------------
    def create_bucket(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        """
        PUT a bucket. An existing bucket (409 BucketAlreadyExists) counts
        as created.
        """
        opts = self._bucket_options(options, "BUCKET_PUT")
        headers = format_headers(acl=opts.acl)
        body = None if self._config.vendor == C.DEFAULT_VENDOR else CREATE_BUCKET_BODY

        async def work() -> Result[ResponseMetadata, OsapiError]:
            return await self._put_bucket(build_url([opts.name, ""]), opts, headers, body)

        return self._action("BUCKET_PUT", work, callback)

    def find_buckets(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        opts = self._options(options, default_field="prefix")
        query = {"limit": opts.limit, "marker": opts.marker, "prefix": opts.prefix}

        async def work() -> Result[list[BucketEntry], OsapiError]:
            url = build_url([], query, _LIST_BUCKETS_QUERY)
            called = await self._call(
                "SERVICE_GET", "GET", url, C.STATUS_LIST, opts,
                headers={"accept": "application/xml"},
            )
            return called.flat_map(lambda response: parse_s3_buckets(response.body))

        return self._action("SERVICE_GET", work, callback)

    # -------------------------------------------------------------------------
    # Objects
    # -------------------------------------------------------------------------
    def find_objects(self, options: Options = None, callback: Optional[Callback] = None) -> OperationFuture:
        """
        List a bucket. A bare string is the prefix.

        Resolves to common prefixes (DirEntry) followed by objects.
        """
        opts = self._options(options, default_field="prefix").require("BUCKET_GET", "bucket")
        query = {
            "delimiter": opts.delimiter,
            "max-keys": opts.limit,
            "marker": opts.marker,
            "prefix": opts.prefix,
        }

        async def work() -> Result[list[ListingEntry], OsapiError]:
            url = build_url([opts.bucket, ""], query, _LIST_OBJECTS_QUERY)
            called = await self._call("BUCKET_GET", "GET", url, C.STATUS_LIST, opts)
            return called.flat_map(lambda response: parse_s3_objects(response.body))

        return self._action("BUCKET_GET", work, callback)

    def create_object(
        self,
        options: Options,
        content: Body = None,
        callback: Optional[Callback] = None,
    ) -> OperationFuture:
        """
        PUT an object.

        With meta_flag set the object copies onto itself with the
        metadata directive REPLACE; 'a' merges over the current metadata
        first. Content is ignored in that case.
        """
        opts = self._options(options).require("OBJECT_PUT", "bucket", "name")
        action = "OBJECT_META" if opts.meta_flag else "OBJECT_PUT"

        async def work() -> Result[Optional[ResponseMetadata], OsapiError]:
            meta = dict(opts.meta or {})
            body = content
            headers: dict[str, str] = {}

            if opts.meta_flag == "a":
                current = await self._read_object(opts.merge(only_meta=True))
                if current.is_err():
                    return current
                stored = current.unwrap()
                if stored is not None and stored.meta.meta:
                    meta = {**stored.meta.meta, **meta}

            if opts.meta_flag:
                headers[COPY_SOURCE_HEADER] = encode_path([opts.bucket, opts.name])
                headers[METADATA_DIRECTIVE_HEADER] = "REPLACE"
                body = b""

            headers.update(format_headers(
                content_type=opts.content_type or guess_content_type(opts.name),
                meta=meta,
                acl=opts.acl,
                meta_prefix=S3_META_PREFIX,
            ))
            url = build_url([opts.bucket, opts.name])
            called = await self._call(
                action, "PUT", url, C.STATUS_S3_CREATE_OBJECT, opts, headers=headers, body=body
            )
            if called.is_err():
                return Ok(None) if self._suppressed(called.error, opts) else called
            return called.map(self._parse_meta)

        return self._action(action, work, callback)

    def copy_object(self, source: Options, target: Options, callback: Optional[Callback] = None) -> OperationFuture:
        """
        Server-side copy: PUT on the target with the source in a header.

        Raises:
            ConfigurationError: source or target lacks a bucket or name
        """
        src = self._options(source).require("OBJECT_COPY", "bucket", "name")
        dst = self._options(target).require("OBJECT_COPY", "bucket", "name")
        meta = {"source": src.to_dict(), "target": dst.to_dict()}

        async def work() -> Result[ResponseMetadata, OsapiError]:
            headers = {COPY_SOURCE_HEADER: encode_path([src.bucket, src.name])}
            if dst.content_type:
                headers["content-type"] = dst.content_type
            called = await self._call(
                "OBJECT_COPY", "PUT", build_url([dst.bucket, dst.name]),
                C.STATUS_S3_COPY_OBJECT, dst, headers=headers, meta=meta,
            )
            return called.map(self._parse_meta)

        return self._action("OBJECT_COPY", work, callback)


__all__ = [
    "S3Connection",
    "CREATE_BUCKET_BODY",
]
