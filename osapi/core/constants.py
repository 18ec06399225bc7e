"""
Wire Constants for the Object Storage Compatibility Layer

All magic strings and status sets centralized here.
"""

from typing import Final

# =============================================================================
# TIME UNITS
# =============================================================================
SECOND_S: Final[int] = 1
MINUTE_S: Final[int] = 60 * SECOND_S
HOUR_S: Final[int] = 60 * MINUTE_S
DAY_S: Final[int] = 24 * HOUR_S

# =============================================================================
# VENDORS
# =============================================================================
VENDOR_CODE_PLACEHOLDER: Final[str] = "{VENDOR_CODE}"

DEFAULT_VENDOR: Final[str] = "ceph"
VENDOR_CODES: Final[dict[str, str]] = {
    "ceph": "amz",
    "aws": "amz",
    "aliyun": "oss",
}

# Vendor prefixes kept when decoding x-{vendor}-meta-* headers
META_VENDOR_ALLOW_LIST: Final[frozenset[str]] = frozenset({"amz", "object", "container"})

DEFAULT_ACL: Final[str] = "private"

# =============================================================================
# SWIFT
# =============================================================================
SWIFT_AUTH_PATH: Final[str] = "/auth/1.0"
SWIFT_API_VERSION: Final[str] = "v1"
SWIFT_AUTH_EXPECTED: Final[frozenset[int]] = frozenset({204})

DEFAULT_TEMP_URL_TTL_S: Final[int] = DAY_S

# =============================================================================
# EXPECTED STATUS SETS
# =============================================================================
STATUS_CREATE_BUCKET: Final[frozenset[int]] = frozenset({200, 201, 202, 204})
STATUS_DELETE_BUCKET: Final[frozenset[int]] = frozenset({204})
STATUS_DELETE_OBJECT: Final[frozenset[int]] = frozenset({204, 404})
STATUS_READ: Final[frozenset[int]] = frozenset({200, 204})
STATUS_LIST: Final[frozenset[int]] = frozenset({200, 204})
STATUS_PULL: Final[frozenset[int]] = frozenset({200})

STATUS_S3_CREATE_OBJECT: Final[frozenset[int]] = frozenset({200, 204})
STATUS_S3_COPY_OBJECT: Final[frozenset[int]] = frozenset({200})

STATUS_SWIFT_CREATE_OBJECT: Final[frozenset[int]] = frozenset({201, 202})
STATUS_SWIFT_COPY_OBJECT: Final[frozenset[int]] = frozenset({201})

BUCKET_ALREADY_EXISTS: Final[str] = "BucketAlreadyExists"

# =============================================================================
# REQUEST BUILDER
# =============================================================================
# Characters left unescaped in a path segment, as encodeURIComponent does
PATH_SAFE_CHARS: Final[str] = "!*'()"

DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"

# =============================================================================
# LOGGING
# =============================================================================
SENSITIVE_FIELDS: Final[frozenset[str]] = frozenset({
    "key",
    "secret",
    "secretaccesskey",
    "password",
    "token",
    "auth_token",
    "storage_token",
    "authorization",
    "x-auth-key",
    "x-auth-token",
    "x-storage-token",
    "tempurlkey",
    "temp_url_key",
})
MASK: Final[str] = "***"
