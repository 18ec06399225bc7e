"""
Request Builder and Operation Options

Two jobs:
- parse_options() coerces whatever a caller passed (a shorthand string,
  a camelCase or snake_case mapping, or nothing) into one frozen
  OperationOptions, resolving bucket/container once
- build_url() renders path segments and an allow-listed query into the
  relative URL handed to the transport, percent-encoding each segment on
  its own so a '/' inside an object name stays part of that name
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional, Sequence, Union
from urllib.parse import quote, urlencode

from osapi.core import constants as C
from osapi.core.config import normalize_key
from osapi.core.errors import ConfigurationError

MetaFlag = Optional[str]
META_FLAGS = ("w", "a")


# =============================================================================
# OPERATION OPTIONS
# =============================================================================
@dataclass(frozen=True)
class OperationOptions:
    """
    Options of a single operation, after alias resolution.

    bucket is the canonical name for bucket/container.
    """

    bucket: Optional[str] = None
    name: Optional[str] = None

    # listing
    prefix: Optional[str] = None
    delimiter: Optional[str] = None
    marker: Optional[str] = None
    limit: Optional[int] = None
    path: Optional[str] = None

    # object attributes
    meta: Optional[Mapping[str, Any]] = None
    meta_flag: MetaFlag = None
    content_type: Optional[str] = None
    acl: Optional[str] = None

    # reads
    only_meta: bool = False
    suppress_not_found_error: bool = False
    suppress_bad_request_error: bool = False

    # temp url
    ttl: Optional[int] = None
    expires: Optional[int] = None
    method: str = "GET"

    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def container(self) -> Optional[str]:
        return self.bucket

    def merge(self, **changes: Any) -> OperationOptions:
        return replace(self, **changes)

    def require(self, action: str, *fields: str) -> OperationOptions:
        """
        Raises:
            ConfigurationError: One of the named fields is empty
        """
        missing = [f for f in fields if not getattr(self, f)]
        if missing:
            raise ConfigurationError.invalid_argument(action, f"missing {', '.join(missing)}")
        return self

    def to_dict(self) -> dict[str, Any]:
        """Non-empty fields, for error diagnostics."""
        data = {
            k: v for k, v in asdict(self).items()
            if v is not None and v is not False and v != {} and v != "GET"
        }
        extra = data.pop("extra", None) or {}
        data.update(extra)
        return data


_FIELD_ALIASES: dict[str, str] = {
    "bucket": "bucket",
    "container": "bucket",
    "name": "name",
    "key": "name",
    "prefix": "prefix",
    "delimiter": "delimiter",
    "marker": "marker",
    "limit": "limit",
    "maxkeys": "limit",
    "path": "path",
    "meta": "meta",
    "metaflag": "meta_flag",
    "contenttype": "content_type",
    "acl": "acl",
    "onlymeta": "only_meta",
    "suppressnotfounderror": "suppress_not_found_error",
    "suppressbadrequesterror": "suppress_bad_request_error",
    "ttl": "ttl",
    "expires": "expires",
    "method": "method",
}

_INT_FIELDS = frozenset({"limit", "ttl", "expires"})
_BOOL_FIELDS = frozenset({"only_meta", "suppress_not_found_error", "suppress_bad_request_error"})


def parse_options(
    options: Union[str, Mapping[str, Any], OperationOptions, None],
    default_field: str = "name",
    default_bucket: Optional[str] = None,
) -> OperationOptions:
    """
    Coerce operation arguments into OperationOptions.

    A bare string is taken as `default_field` ('name' for most calls,
    'prefix' for listings). The bucket falls back to `default_bucket`.

    Raises:
        ConfigurationError: options is of an unsupported type, carries
            an unknown meta_flag or a non-integer limit, ttl or expires
    """
    if isinstance(options, OperationOptions):
        if options.bucket or not default_bucket:
            return options
        return replace(options, bucket=default_bucket)

    if options is None:
        raw: Mapping[str, Any] = {}
    elif isinstance(options, str):
        raw = {default_field: options}
    elif isinstance(options, Mapping):
        raw = options
    else:
        raise ConfigurationError.invalid_argument(
            "OPTIONS", f"expected str or mapping, got {type(options).__name__}"
        )

    values: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in raw.items():
        target = _FIELD_ALIASES.get(normalize_key(str(key)))
        if target is None:
            extra[str(key)] = value
            continue
        if value is None:
            continue
        # bucket wins over container when both are given
        if target in values and normalize_key(str(key)) == "container":
            continue
        if target in _INT_FIELDS:
            try:
                value = int(value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError.invalid_argument(
                    "OPTIONS", f"{target} must be an integer, got {value!r}"
                ) from e
        elif target in _BOOL_FIELDS:
            value = bool(value)
        elif target == "method":
            value = str(value).upper()
        values[target] = value

    if values.get("meta_flag") not in (None, *META_FLAGS):
        raise ConfigurationError.invalid_argument(
            "OPTIONS", f"meta_flag must be one of {META_FLAGS}, got {values['meta_flag']!r}"
        )

    if not values.get("bucket") and default_bucket:
        values["bucket"] = default_bucket
    return OperationOptions(**values, extra=extra)


# =============================================================================
# URL ENCODING
# =============================================================================
def encode_segment(segment: str) -> str:
    return quote(str(segment), safe=C.PATH_SAFE_CHARS)


def encode_path(segments: Union[str, Sequence[str]]) -> str:
    """
    '/'-joined path of individually percent-encoded segments.

    A string is split on '/' first. A trailing '' segment yields the
    trailing slash some S3 vendors require on bucket URLs.
    """
    if isinstance(segments, str):
        segments = segments.split("/") if segments.strip("/") else []
        if segments and segments[0] == "":
            segments = segments[1:]
    return "/" + "/".join(encode_segment(s) for s in segments)


def encode_query(params: Mapping[str, Any], allowed: Optional[Iterable[str]] = None) -> str:
    """
    Query string from the allowed names only; None values are left out.
    """
    names = list(allowed) if allowed is not None else list(params)
    pairs = []
    for name in names:
        value = params.get(name)
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        pairs.append((name, value))
    return urlencode(pairs, quote_via=quote, safe=C.PATH_SAFE_CHARS)


def build_url(
    segments: Union[str, Sequence[str]],
    query: Optional[Mapping[str, Any]] = None,
    allowed: Optional[Iterable[str]] = None,
) -> str:
    """Relative request URL: encoded path plus optional query."""
    url = encode_path(segments)
    if query:
        qs = encode_query(query, allowed)
        if qs:
            url = f"{url}?{qs}"
    return url


__all__ = [
    "OperationOptions",
    "META_FLAGS",
    "parse_options",
    "encode_segment",
    "encode_path",
    "encode_query",
    "build_url",
]
