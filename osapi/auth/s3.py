"""
S3 Request Signer (AWS signature version 2)

Every request is signed locally, so an S3 connection never waits:

    StringToSign = METHOD + "\\n"
                 + Content-MD5 + "\\n"
                 + Content-Type + "\\n"
                 + Date + "\\n"
                 + CanonicalizedVendorHeaders
                 + CanonicalizedResource

    Authorization: AWS {access_key}:base64(HMAC-SHA1(secret, StringToSign))

Header names may carry the literal placeholder {VENDOR_CODE}; it is
replaced by the configured vendor code ('amz', or 'oss' for Aliyun)
before canonicalization. With bucket_in_domain the bucket moves from the
path into the host name, but the canonical resource keeps it.

References:
    https://docs.aws.amazon.com/AmazonS3/latest/userguide/RESTAuthentication.html
    https://docs.ceph.com/en/latest/radosgw/s3/authentication/
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import re
import time
from dataclasses import replace
from email.utils import formatdate
from typing import Any, Callable, ClassVar, Mapping, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit, quote

from osapi.auth.base import AuthStrategy
from osapi.core import constants as C
from osapi.core.config import TransportSettings
from osapi.core.types import AuthSession, ConnectionStyle, Ok
from osapi.protocol.request import OperationOptions, encode_path
from osapi.transport.agent import HttpxAgent, RequestDescriptor, TransportAgent

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def hmac_sha1_base64(secret: str, message: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def http_date(timestamp: Optional[float] = None) -> str:
    """RFC 1123 date in GMT, e.g. 'Tue, 14 Nov 2023 22:13:20 GMT'."""
    return formatdate(timestamp, usegmt=True)


def substitute_vendor_code(headers: Mapping[str, Any], vendor_code: str) -> dict[str, Any]:
    """Drop None-valued headers and fill in the {VENDOR_CODE} placeholder."""
    return {
        name.replace(C.VENDOR_CODE_PLACEHOLDER, vendor_code): value
        for name, value in headers.items()
        if value is not None
    }


def canonicalize_headers(headers: Mapping[str, Any], vendor_code: str) -> str:
    """
    Canonical block of x-{vendor}- headers.

    Names lowercased, list values comma-joined, whitespace runs collapsed
    to one space, sorted by name, one 'name:value\\n' line each.
    """
    prefix = f"x-{vendor_code}-"
    selected: dict[str, str] = {}
    for name, value in headers.items():
        if value is None:
            continue
        lowered = name.lower()
        if not lowered.startswith(prefix):
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        elif not isinstance(value, str):
            value = str(value)
        value = _WHITESPACE.sub(" ", value)
        selected[lowered] = f"{selected[lowered]},{value}" if lowered in selected else value
    return "".join(f"{name}:{selected[name]}\n" for name in sorted(selected))


def _header(headers: Mapping[str, Any], name: str) -> str:
    for key, value in headers.items():
        if key.lower() == name and value is not None:
            return str(value)
    return ""


def string_to_sign(
    method: str,
    headers: Mapping[str, Any],
    date: str,
    resource: str,
    vendor_code: str = "amz",
) -> str:
    return "\n".join([
        method.upper(),
        _header(headers, "content-md5"),
        _header(headers, "content-type"),
        date,
        canonicalize_headers(headers, vendor_code) + resource,
    ])


def split_bucket_host(url: str) -> tuple[str, str]:
    """
    Move the first path segment into the host name.

    Returns:
        (rewritten url, canonical resource = original path)
    """
    parts = urlsplit(url)
    resource = parts.path or "/"
    end = resource.find("/", 1)
    bucket = resource[1:] if end == -1 else resource[1:end]
    if not bucket:
        return url, resource

    host = parts.hostname or ""
    netloc = f"{bucket}.{host}"
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    path = resource[1 + len(bucket):] or "/"
    return urlunsplit((parts.scheme, netloc, path, parts.query, parts.fragment)), resource


class S3Signer(AuthStrategy):
    """
    HMAC-SHA1 signer used as the before_request hook of the S3 agent.

    clock is injectable so signatures can be reproduced in tests.
    """

    style: ClassVar[ConnectionStyle] = ConnectionStyle.S3

    __slots__ = (
        "_access_key",
        "_secret",
        "_vendor_code",
        "_bucket_in_domain",
        "_endpoint",
        "_settings",
        "_clock",
    )

    def __init__(
        self,
        access_key: str,
        secret_access_key: str,
        endpoint: str,
        settings: TransportSettings,
        vendor_code: str = "amz",
        bucket_in_domain: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._access_key = access_key
        self._secret = secret_access_key
        self._endpoint = endpoint.rstrip("/")
        self._settings = settings
        self._vendor_code = vendor_code
        self._bucket_in_domain = bucket_in_domain
        self._clock = clock

    @property
    def vendor_code(self) -> str:
        return self._vendor_code

    def sign(self, request: RequestDescriptor, date: Optional[str] = None) -> RequestDescriptor:
        """Return the request with Date and Authorization set (URL rewritten if configured)."""
        url = request.url
        if self._bucket_in_domain:
            url, resource = split_bucket_host(url)
        else:
            resource = urlsplit(url).path or "/"

        headers = substitute_vendor_code(request.headers, self._vendor_code)
        date = date or http_date(self._clock())
        signature = hmac_sha1_base64(
            self._secret,
            string_to_sign(request.method, headers, date, resource, self._vendor_code),
        )
        headers["Date"] = date
        headers["Authorization"] = f"AWS {self._access_key}:{signature}"
        return replace(request, url=url, headers=headers)

    async def authenticate(self) -> Ok[None]:
        return Ok(None)

    def bind(self, session: Optional[AuthSession]) -> tuple[TransportAgent, TransportAgent]:
        agent = HttpxAgent(self._endpoint, self._settings, before_request=self.sign)
        return agent, agent

    def presign(self, resource: str, expires: int, method: str = "GET") -> dict[str, str]:
        """Query-string authentication parameters for `resource`."""
        signature = hmac_sha1_base64(self._secret, f"{method}\n\n\n{expires}\n{resource}")
        return {
            "AWSAccessKeyId": self._access_key,
            "Expires": str(expires),
            "Signature": signature,
        }

    def signed_url(
        self,
        session: Optional[AuthSession],
        options: OperationOptions,
        expires: int,
    ) -> str:
        url = self._endpoint + encode_path([options.bucket, options.name])
        if self._bucket_in_domain:
            url, resource = split_bucket_host(url)
        else:
            resource = urlsplit(url).path
        query = urlencode(self.presign(resource, expires, options.method), quote_via=quote, safe="")
        return f"{url}?{query}"

    def __repr__(self) -> str:
        return f"S3Signer(access_key={self._access_key!r}, vendor_code={self._vendor_code!r})"
