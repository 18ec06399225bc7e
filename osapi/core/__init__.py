"""
Core module: Type definitions, error taxonomy, and configuration.

This module provides the foundational abstractions shared by both
connection styles:
- Result/Either monad used as the single internal result channel
- Error taxonomy classified by predicates on the response status
- Option normalization into a frozen ConnectionConfig
"""

from osapi.core.types import (
    Result,
    Ok,
    Err,
    ConnectionStyle,
    AuthSession,
    ResponseMetadata,
    BucketStats,
    BucketInfo,
    StoredObject,
    ObjectEntry,
    DirEntry,
    ListingEntry,
    BucketEntry,
)
from osapi.core.errors import (
    ErrorCode,
    ResponseSummary,
    OsapiError,
    ConfigurationError,
    AuthenticationError,
    StorageRequestError,
    is_not_found,
    is_bad_request,
)
from osapi.core.config import ConnectionConfig, TransportSettings

__all__ = [
    "Result",
    "Ok",
    "Err",
    "ConnectionStyle",
    "AuthSession",
    "ResponseMetadata",
    "BucketStats",
    "BucketInfo",
    "StoredObject",
    "ObjectEntry",
    "DirEntry",
    "ListingEntry",
    "BucketEntry",
    "ErrorCode",
    "ResponseSummary",
    "OsapiError",
    "ConfigurationError",
    "AuthenticationError",
    "StorageRequestError",
    "is_not_found",
    "is_bad_request",
    "ConnectionConfig",
    "TransportSettings",
]
