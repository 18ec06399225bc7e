"""
Error Classifier

Turns a raw response into either nothing (status was expected) or a
StorageRequestError carrying the action tag, the caller's request meta
and a ResponseSummary. The vendor error code comes from <Code>/<Message>
of an XML body, or from the code/message fields of a JSON body.
"""

from __future__ import annotations

import logging
from typing import Any, Collection, Mapping, Optional
from xml.etree import ElementTree as ET

from osapi.core.errors import ResponseSummary, StorageRequestError
from osapi.transport.agent import TransportResponse

logger = logging.getLogger(__name__)


def local_name(tag: str) -> str:
    """Element tag without its '{namespace}' part."""
    return tag.rsplit("}", 1)[-1]


def _xml_error_fields(body: Any) -> tuple[Optional[str], Optional[str]]:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if not isinstance(body, str) or not body.strip():
        return None, None
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        logger.debug("Error body declared XML but did not parse")
        return None, None

    code = message = None
    for element in root.iter():
        name = local_name(element.tag)
        if name == "Code" and code is None:
            code = (element.text or "").strip() or None
        elif name == "Message" and message is None:
            message = (element.text or "").strip() or None
    return code, message


def _json_error_fields(body: Any) -> tuple[Optional[str], Optional[str]]:
    if not isinstance(body, Mapping):
        return None, None
    source: Mapping[str, Any] = body
    nested = body.get("error")
    if isinstance(nested, Mapping):
        source = nested

    code = source.get("code", source.get("Code"))
    message = source.get("message", source.get("Message"))
    if isinstance(nested, str) and message is None:
        message = nested
    return (
        str(code) if code is not None else None,
        str(message) if message is not None else None,
    )


def summarize(response: TransportResponse) -> ResponseSummary:
    """Status line plus whatever vendor error fields the body carries."""
    content_type = response.content_type.lower()
    code = message = None
    if "xml" in content_type:
        code, message = _xml_error_fields(response.body)
    elif "json" in content_type:
        code, message = _json_error_fields(response.body)
    return ResponseSummary(
        status_code=response.status_code,
        status_message=response.status_message,
        vendor_code=code,
        vendor_message=message,
    )


def find_error(
    action: str,
    expect: Collection[int],
    response: TransportResponse,
    meta: Optional[Mapping[str, Any]] = None,
) -> Optional[StorageRequestError]:
    """
    Classify a response against the expected status set.

    Args:
        action: <ENTITY>_<VERB> tag, e.g. OBJECT_GET
        expect: Statuses that count as success
        response: Raw transport response
        meta: Request options, kept on the error for diagnostics

    Returns:
        None when the status is expected, else the typed error
    """
    if response.status_code in expect:
        return None
    return StorageRequestError.unexpected_status(action, meta, summarize(response))


__all__ = [
    "local_name",
    "summarize",
    "find_error",
]
