"""
Protocol module: header/metadata codec, error classifier, request builder
and listing normalization. Pure functions, no I/O.
"""

from osapi.protocol.headers import (
    encode_meta_value,
    decode_meta_value,
    format_headers,
    parse_headers,
    parse_bucket_headers,
)
from osapi.protocol.classifier import find_error, summarize
from osapi.protocol.request import OperationOptions, parse_options, build_url
from osapi.protocol.listing import (
    parse_s3_objects,
    parse_s3_buckets,
    parse_swift_objects,
    parse_swift_containers,
)

__all__ = [
    "encode_meta_value",
    "decode_meta_value",
    "format_headers",
    "parse_headers",
    "parse_bucket_headers",
    "find_error",
    "summarize",
    "OperationOptions",
    "parse_options",
    "build_url",
    "parse_s3_objects",
    "parse_s3_buckets",
    "parse_swift_objects",
    "parse_swift_containers",
]
