"""
Listing Normalization

S3 answers listings with XML (ListAllMyBucketsResult, ListBucketResult),
Swift with JSON arrays. Both are reduced to the same entry types:

    DirEntry(dirname)                           common prefix / subdir
    ObjectEntry(name, etag, size, last_modified)
    BucketEntry(name, created | counters)

For S3 object listings common prefixes come first, then contents, which
is the order Swift returns them in.
"""

from __future__ import annotations

from typing import Any, Optional
from xml.etree import ElementTree as ET

from osapi.core.errors import StorageRequestError
from osapi.core.types import (
    BucketEntry,
    DirEntry,
    Err,
    ListingEntry,
    ObjectEntry,
    Ok,
    Result,
)
from osapi.protocol.classifier import local_name
from osapi.protocol.headers import parse_iso_date, strip_etag


# =============================================================================
# XML HELPERS
# =============================================================================
def _parse_xml(body: Any, action: str) -> Result[ET.Element, StorageRequestError]:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if not isinstance(body, str) or not body.strip():
        return Err(StorageRequestError.malformed_response(action, "empty XML body"))
    try:
        return Ok(ET.fromstring(body))
    except ET.ParseError as e:
        return Err(StorageRequestError.malformed_response(action, str(e), e))


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if local_name(child.tag) == name]


def _text(element: ET.Element, name: str) -> Optional[str]:
    for child in element:
        if local_name(child.tag) == name:
            return child.text or ""
    return None


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


# =============================================================================
# S3 (XML)
# =============================================================================
def parse_s3_objects(body: Any, action: str = "BUCKET_GET") -> Result[list[ListingEntry], StorageRequestError]:
    """ListBucketResult -> [DirEntry..., ObjectEntry...]."""
    parsed = _parse_xml(body, action)
    if parsed.is_err():
        return parsed
    root = parsed.unwrap()

    entries: list[ListingEntry] = []
    for node in _children(root, "CommonPrefixes"):
        prefix = _text(node, "Prefix")
        if prefix is not None:
            entries.append(DirEntry(dirname=prefix))

    for node in _children(root, "Contents"):
        etag = _text(node, "ETag")
        entries.append(ObjectEntry(
            name=_text(node, "Key") or "",
            etag=strip_etag(etag).replace('"', "") if etag else None,
            size=_int(_text(node, "Size")),
            last_modified=parse_iso_date(_text(node, "LastModified")),
        ))
    return Ok(entries)


def parse_s3_buckets(body: Any, action: str = "SERVICE_GET") -> Result[list[BucketEntry], StorageRequestError]:
    """ListAllMyBucketsResult -> [BucketEntry(name, created)]."""
    parsed = _parse_xml(body, action)
    if parsed.is_err():
        return parsed
    root = parsed.unwrap()

    buckets: list[BucketEntry] = []
    for container in _children(root, "Buckets"):
        for node in _children(container, "Bucket"):
            buckets.append(BucketEntry(
                name=_text(node, "Name") or "",
                created=parse_iso_date(_text(node, "CreationDate")),
            ))
    return Ok(buckets)


# =============================================================================
# SWIFT (JSON)
# =============================================================================
def _json_array(body: Any, action: str) -> Result[list[Any], StorageRequestError]:
    if body is None:
        return Ok([])
    if not isinstance(body, list):
        return Err(StorageRequestError.malformed_response(
            action, f"expected JSON array, got {type(body).__name__}"
        ))
    return Ok(body)


def parse_swift_objects(body: Any, action: str = "BUCKET_GET") -> Result[list[ListingEntry], StorageRequestError]:
    """[{subdir} | {name, hash, bytes, last_modified}] -> entries, order kept."""
    items = _json_array(body, action)
    if items.is_err():
        return items

    entries: list[ListingEntry] = []
    for item in items.unwrap():
        if not isinstance(item, dict):
            continue
        if item.get("subdir"):
            entries.append(DirEntry(dirname=item["subdir"]))
        else:
            entries.append(ObjectEntry(
                name=item.get("name", ""),
                etag=item.get("hash"),
                size=_int(item.get("bytes")),
                last_modified=parse_iso_date(item.get("last_modified")),
            ))
    return Ok(entries)


def parse_swift_containers(body: Any, action: str = "SERVICE_GET") -> Result[list[BucketEntry], StorageRequestError]:
    """[{name, count, bytes, last_modified}] -> [BucketEntry]."""
    items = _json_array(body, action)
    if items.is_err():
        return items

    return Ok([
        BucketEntry(
            name=item.get("name", ""),
            object_count=item.get("count"),
            bytes_used=item.get("bytes"),
            last_modified=parse_iso_date(item.get("last_modified")),
        )
        for item in items.unwrap()
        if isinstance(item, dict)
    ])


__all__ = [
    "parse_s3_objects",
    "parse_s3_buckets",
    "parse_swift_objects",
    "parse_swift_containers",
]
