"""
Core Type Definitions for the Object Storage Compatibility Layer

Implements the Result/Either monad used as the single internal result
channel, plus the immutable value types that flow out of the operation
façade (response metadata, bucket stats, listing entries).

Design Principles:
- Fallible calls return Result instead of raising
- Values parsed from the wire are frozen after construction
- One canonical field per concept (bucket == container)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    Mapping,
    Optional,
    TypeVar,
    Union,
)

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.

    Immutable container for a successful operation result.
    """

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """Extract value. Safe to call after is_ok() check."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible operations."""
        return fn(self.value)

    def as_pair(self) -> tuple[None, T]:
        """Callback form: (error, data)."""
        return None, self.value

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.

    Carries the typed error for the operation that produced it.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.

        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant - propagates error unchanged."""
        return self

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        """Propagate error through monadic chain."""
        return self

    def as_pair(self) -> tuple[E, None]:
        """Callback form: (error, data)."""
        return self.error, None

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# CONNECTION STYLE
# =============================================================================
class ConnectionStyle(Enum):
    """
    Wire protocol family spoken by a connection.

    S3 signs every request locally; SWIFT exchanges credentials for a
    bearer token once and reuses it.
    """

    S3 = "s3"
    SWIFT = "swift"

    @property
    def needs_handshake(self) -> bool:
        """Whether a network round trip is required before the first call."""
        return self is ConnectionStyle.SWIFT


# =============================================================================
# AUTH SESSION (SWIFT ONLY)
# =============================================================================
@dataclass(frozen=True, slots=True)
class AuthSession:
    """
    Result of a successful Swift token exchange.

    Written once by connect() and only read afterwards. There is no
    expiry tracking: the session lives until the process exits or
    connect() replaces it.
    """

    auth_token: Optional[str]
    storage_url: str
    storage_token: str

    def __repr__(self) -> str:
        return f"AuthSession(storage_url={self.storage_url!r}, token=***)"


# =============================================================================
# RESPONSE METADATA
# =============================================================================
@dataclass(frozen=True, slots=True)
class ResponseMetadata:
    """
    Common information parsed from response headers.

    Attributes:
        request_id: Vendor request id (x-{vendor}-request-id / x-amz-request-id).
        trans_id: Same value as request_id; Swift calls it transaction id.
        content_type: Content-Type header.
        content_length: Content-Length as integer.
        etag: Entity tag with surrounding quotes removed.
        date: Server Date header.
        last_modified: Last-Modified header.
        meta: User metadata with vendor prefixes stripped and values decoded.
    """

    request_id: Optional[str] = None
    trans_id: Optional[str] = None
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    etag: Optional[str] = None
    date: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    meta: Optional[Mapping[str, str]] = None


@dataclass(frozen=True, slots=True)
class BucketStats:
    """
    Bucket/container statistics from a disjoint header set.

    object_count and bytes_used are only reported by Swift-style servers;
    region only by S3-style servers.
    """

    object_count: Optional[int] = None
    bytes_used: Optional[int] = None
    storage_policy: Optional[str] = None
    region: Optional[str] = None


@dataclass(frozen=True, slots=True)
class BucketInfo:
    """Result of read_bucket(): generic metadata plus bucket stats."""

    meta: ResponseMetadata
    stats: BucketStats


@dataclass(frozen=True, slots=True)
class StoredObject:
    """Result of read_object(): metadata and the buffered body."""

    meta: ResponseMetadata
    buffer: bytes = b""

    @property
    def size(self) -> int:
        return len(self.buffer)


# =============================================================================
# LISTING ENTRIES
# =============================================================================
@dataclass(frozen=True, slots=True)
class ObjectEntry:
    """One object in a normalized listing."""

    name: str
    etag: Optional[str]
    size: int
    last_modified: Optional[datetime]


@dataclass(frozen=True, slots=True)
class DirEntry:
    """One common prefix (pseudo directory) in a normalized listing."""

    dirname: str


ListingEntry = Union[DirEntry, ObjectEntry]


@dataclass(frozen=True, slots=True)
class BucketEntry:
    """
    One bucket/container in a service listing.

    S3 reports creation time only; Swift reports counters and
    last_modified.
    """

    name: str
    created: Optional[datetime] = None
    object_count: Optional[int] = None
    bytes_used: Optional[int] = None
    last_modified: Optional[datetime] = None


__all__ = [
    "Ok",
    "Err",
    "Result",
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
]
