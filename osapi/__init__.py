"""
Object Storage API Client

One asynchronous client for two object-storage protocols:
- S3 style: every request signed with the access key (HMAC-SHA1 header auth)
- Swift style: a token exchange first, then token-bearing requests

Both share one operation surface (buckets/containers, objects, listings,
metadata, streaming reads, server-side copy, temporary URLs). Every
operation returns an asyncio.Future resolving to a Result and accepts an
optional callback(error, data).

Errors are classified by the HTTP status they carry, not by type:
    if is_not_found(error): ...
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from osapi.core.types import (
    Result,
    Ok,
    Err,
    ConnectionStyle,
    ResponseMetadata,
    BucketStats,
    BucketInfo,
    StoredObject,
    ObjectEntry,
    DirEntry,
    BucketEntry,
)
from osapi.core.errors import (
    ErrorCode,
    OsapiError,
    ConfigurationError,
    AuthenticationError,
    StorageRequestError,
    is_not_found,
    is_bad_request,
)
from osapi.core.config import ConnectionConfig, TransportSettings
from osapi.connection import (
    ConnectionState,
    Connection,
    S3Connection,
    SwiftConnection,
)
from osapi.transport import StreamReceiver
from osapi.observability import StructuredLogger, setup_logging

__all__ = [
    "__version__",
    "Result",
    "Ok",
    "Err",
    "ConnectionStyle",
    "ResponseMetadata",
    "BucketStats",
    "BucketInfo",
    "StoredObject",
    "ObjectEntry",
    "DirEntry",
    "BucketEntry",
    "ErrorCode",
    "OsapiError",
    "ConfigurationError",
    "AuthenticationError",
    "StorageRequestError",
    "is_not_found",
    "is_bad_request",
    "ConnectionConfig",
    "TransportSettings",
    "ConnectionState",
    "Connection",
    "S3Connection",
    "SwiftConnection",
    "StreamReceiver",
    "StructuredLogger",
    "setup_logging",
]
