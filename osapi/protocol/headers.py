"""
Header/Metadata Codec

User metadata travels in HTTP headers, which only carry bytes in the
0x00-0xFF range. Values inside that range go out unchanged; anything else
is sent as base64 of its UTF-8 form and recognized again on the way back.

Inbound, the codec also extracts the common response fields (request id,
content length/type, dates, etag) and, separately, the bucket statistics
headers, which never end up in the generic metadata map.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable, Mapping, Optional

from osapi.core import constants as C
from osapi.core.types import BucketStats, ResponseMetadata

logger = logging.getLogger(__name__)

META_NAME = re.compile(r"^x-([a-z]+)-meta-(.+)$")

S3_META_PREFIX = f"x-{C.VENDOR_CODE_PLACEHOLDER}-meta-"
S3_ACL_HEADER = f"x-{C.VENDOR_CODE_PLACEHOLDER}-acl"
SWIFT_OBJECT_META_PREFIX = "X-Object-Meta-"
SWIFT_CONTAINER_META_PREFIX = "X-Container-Meta-"


# =============================================================================
# VALUE CODEC
# =============================================================================
def is_single_byte(value: str) -> bool:
    """True when every character fits in one latin-1 byte."""
    return all(ord(ch) <= 0xFF for ch in value)


def encode_meta_value(value: Any) -> str:
    """
    Make a metadata value header-safe.

    Values representable in 0x00-0xFF pass through untouched, so legacy
    plain metadata stays readable. Others become base64 of their UTF-8.
    """
    text = value if isinstance(value, str) else str(value)
    if is_single_byte(text):
        return text
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_meta_value(value: str) -> str:
    """
    Reverse encode_meta_value().

    The decoded form is used only when the raw value is strict base64,
    decodes as UTF-8, and yields a character above 0xFF (which
    encode_meta_value() could never have passed through). Everything else
    is returned as it came.
    """
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return value
    if not value or is_single_byte(decoded):
        return value
    return decoded


# =============================================================================
# OUTBOUND
# =============================================================================
def format_headers(
    content_type: Optional[str] = None,
    meta: Optional[Mapping[str, Any]] = None,
    acl: Optional[str] = None,
    meta_prefix: str = S3_META_PREFIX,
) -> dict[str, str]:
    """
    Build request headers from object/bucket attributes.

    meta_prefix selects the wire convention: the S3 prefix keeps the
    {VENDOR_CODE} placeholder for the signer to substitute; Swift callers
    pass X-Object-Meta- or X-Container-Meta-.
    """
    headers: dict[str, str] = {}
    if content_type:
        headers["content-type"] = content_type
    for name, value in (meta or {}).items():
        if value is None:
            continue
        headers[f"{meta_prefix}{name}"] = encode_meta_value(value)
    if acl:
        headers[S3_ACL_HEADER] = acl
    return headers


# =============================================================================
# INBOUND
# =============================================================================
def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """RFC 1123 date header to an aware datetime; None when unparseable."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return parse_iso_date(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_iso_date(value: Optional[str]) -> Optional[datetime]:
    """
    ISO 8601 timestamp (S3 XML listings, Swift JSON listings).

    Naive values are taken as UTC, which is what Swift reports.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparseable timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


def strip_etag(value: str) -> str:
    """Remove the surrounding double quotes of an entity tag."""
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value


def decode_meta_headers(
    headers: Mapping[str, str],
    allowed_codes: Iterable[str] = C.META_VENDOR_ALLOW_LIST,
) -> Optional[dict[str, str]]:
    """
    Collect x-{code}-meta-{name} headers with an allowed code.

    Returns:
        {name: decoded value}, or None when no metadata header was found
    """
    allowed = frozenset(allowed_codes)
    meta: dict[str, str] = {}
    found = False
    for name, value in headers.items():
        match = META_NAME.match(name.lower())
        if not match or match.group(1) not in allowed:
            continue
        meta[match.group(2)] = decode_meta_value(value)
        found = True
    return meta if found else None


def parse_headers(headers: Mapping[str, str], vendor_code: str = "amz") -> ResponseMetadata:
    """
    Generic response metadata.

    headers must have lowercase names. The request id is taken from the
    first of x-{vendor}-request-id, x-amz-request-id, x-trans-id.
    """
    request_id = (
        headers.get(f"x-{vendor_code}-request-id")
        or headers.get("x-amz-request-id")
        or headers.get("x-trans-id")
    )
    etag = headers.get("etag")
    return ResponseMetadata(
        request_id=request_id,
        trans_id=request_id,
        content_type=headers.get("content-type") or None,
        content_length=_to_int(headers.get("content-length")),
        etag=strip_etag(etag) if etag else None,
        date=parse_http_date(headers.get("date")),
        last_modified=parse_http_date(headers.get("last-modified")),
        meta=decode_meta_headers(headers, C.META_VENDOR_ALLOW_LIST | {vendor_code}),
    )


def parse_bucket_headers(headers: Mapping[str, str]) -> BucketStats:
    """Bucket/container statistics, from a header set disjoint from parse_headers()."""
    object_count = headers.get("x-rgw-object-count") or headers.get("x-container-object-count")
    bytes_used = headers.get("x-rgw-bytes-used") or headers.get("x-container-bytes-used")
    return BucketStats(
        object_count=_to_int(object_count),
        bytes_used=_to_int(bytes_used),
        storage_policy=headers.get("x-storage-policy") or None,
        region=headers.get("x-amz-bucket-region") or None,
    )


__all__ = [
    "S3_META_PREFIX",
    "S3_ACL_HEADER",
    "SWIFT_OBJECT_META_PREFIX",
    "SWIFT_CONTAINER_META_PREFIX",
    "is_single_byte",
    "encode_meta_value",
    "decode_meta_value",
    "format_headers",
    "parse_http_date",
    "parse_iso_date",
    "strip_etag",
    "decode_meta_headers",
    "parse_headers",
    "parse_bucket_headers",
]
