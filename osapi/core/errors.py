"""
Error Taxonomy for the Object Storage Compatibility Layer

Design Principles:
- Errors travel as data inside Err(...), not as control flow
- Classification is done by predicates on the response status,
  never by subclass identity
- Every error carries enough context (action, request meta, response
  summary) to be diagnosed from a single log line

Taxonomy:
- ConfigurationError: required option missing at construction; raised
  synchronously and never recoverable
- AuthenticationError: the token exchange was rejected; broadcast to every
  queued and future operation of the connection
- StorageRequestError: one operation got an unexpected status or the
  transport failed; scoped to that operation only

Usage:
    result = await conn.read_object("photo.jpg")
    match result:
        case Ok(stored):
            process(stored.buffer)
        case Err(error) if is_not_found(error):
            handle_missing()
        case Err(error):
            raise error
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union
from uuid import uuid4


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Configuration errors
    - 2xxx: Authentication errors
    - 3xxx: Storage request errors
    - 9xxx: Internal/unknown errors
    """

    # Configuration errors (1xxx)
    CONFIG_OPTION_ABSENT = 1001
    CONFIG_INVALID_OPTION = 1002
    CONFIG_INVALID_ARGUMENT = 1003

    # Authentication errors (2xxx)
    AUTH_REJECTED = 2001
    AUTH_TRANSPORT_FAILED = 2002
    AUTH_INCOMPLETE_RESPONSE = 2003

    # Storage request errors (3xxx)
    REQUEST_UNEXPECTED_STATUS = 3001
    REQUEST_TRANSPORT_FAILED = 3002
    REQUEST_MALFORMED_RESPONSE = 3003

    # Internal errors (9xxx)
    INTERNAL_ERROR = 9001


# =============================================================================
# RESPONSE SUMMARY
# =============================================================================
@dataclass(frozen=True, slots=True)
class ResponseSummary:
    """
    The part of an HTTP response an error keeps for diagnostics.

    vendor_code / vendor_message come from the <Code> / <Message> elements
    of an XML error body or from the equivalent fields of a JSON body.
    """

    status_code: int
    status_message: str = ""
    vendor_code: Optional[str] = None
    vendor_message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status_code": self.status_code,
            "status_message": self.status_message,
            "vendor_code": self.vendor_code,
            "vendor_message": self.vendor_message,
        }


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class OsapiError(Exception):
    """
    Base class for all errors of this package.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Action tag naming the operation, in <ENTITY>_<VERB> form
    - Caller-supplied request meta (diagnostics only)
    - Response summary when a response was received

    Treated as immutable after creation.
    """

    code: ErrorCode
    message: str
    action: str = ""
    meta: Mapping[str, Any] = field(default_factory=dict)
    response: Optional[ResponseSummary] = None
    cause: Optional[BaseException] = None
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp_nanos: int = field(default_factory=time.time_ns)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def status_code(self) -> Optional[int]:
        """HTTP status of the offending response, None if there was none."""
        return self.response.status_code if self.response else None

    @property
    def vendor_code(self) -> Optional[str]:
        return self.response.vendor_code if self.response else None

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize error to dictionary for logging.

        The cause is reduced to its repr to avoid leaking stack traces.
        """
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "action": self.action,
            "meta": dict(self.meta),
            "response": self.response.to_dict() if self.response else None,
            "cause": repr(self.cause) if self.cause else None,
            "timestamp_nanos": self.timestamp_nanos,
        }

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


def _failure_message(
    action: str,
    meta: Optional[Mapping[str, Any]],
    status: Union[int, str],
    status_message: str,
) -> str:
    name = (meta or {}).get("name") or "-"
    return " ".join(["failed", action, str(name), str(status), status_message]).rstrip()


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================
@dataclass
class ConfigurationError(OsapiError):
    """
    Invalid or incomplete options detected at construction time.

    Raised synchronously; no connection object is created.
    """

    @classmethod
    def option_absent(cls, *names: Union[str, Sequence[str]]) -> ConfigurationError:
        """
        Required option(s) absent.

        Each argument is one acceptable alternative. A sequence argument
        means all names in it are required together.
        """
        expressions = []
        for name in names:
            if isinstance(name, str):
                expressions.append(name)
            else:
                expressions.append(f"({', '.join(name)})")
        return cls(
            code=ErrorCode.CONFIG_OPTION_ABSENT,
            message=f"Required option(s) absent: {' | '.join(expressions)}",
            meta={"alternatives": expressions},
        )

    @classmethod
    def invalid_option(cls, name: str, value: Any, reason: str) -> ConfigurationError:
        """Option present but unusable."""
        return cls(
            code=ErrorCode.CONFIG_INVALID_OPTION,
            message=f"Invalid option '{name}': {reason}",
            meta={"name": name, "value": str(value)[:100]},
        )

    @classmethod
    def invalid_argument(cls, action: str, reason: str) -> ConfigurationError:
        """Operation arguments are malformed (e.g. missing object name)."""
        return cls(
            code=ErrorCode.CONFIG_INVALID_ARGUMENT,
            message=f"invalid arguments for {action}: {reason}",
            action=action,
        )


# =============================================================================
# AUTHENTICATION ERRORS
# =============================================================================
@dataclass
class AuthenticationError(OsapiError):
    """
    Token exchange failed.

    Moves the connection to FAILED; every queued and every later operation
    settles with this same instance.
    """

    @classmethod
    def rejected(cls, response: ResponseSummary) -> AuthenticationError:
        """Auth endpoint answered with a status other than the expected one."""
        return cls(
            code=ErrorCode.AUTH_REJECTED,
            message=_failure_message("AUTH", None, response.status_code, response.status_message),
            action="AUTH",
            response=response,
        )

    @classmethod
    def transport_failed(cls, endpoint: str, cause: BaseException) -> AuthenticationError:
        """Auth endpoint could not be reached."""
        return cls(
            code=ErrorCode.AUTH_TRANSPORT_FAILED,
            message=f"failed AUTH - unreachable {endpoint}: {cause}",
            action="AUTH",
            meta={"endpoint": endpoint},
            cause=cause,
        )

    @classmethod
    def incomplete(cls, missing_header: str, response: ResponseSummary) -> AuthenticationError:
        """Auth succeeded on the wire but a required header is missing."""
        return cls(
            code=ErrorCode.AUTH_INCOMPLETE_RESPONSE,
            message=f"failed AUTH - response lacks header {missing_header}",
            action="AUTH",
            meta={"missing_header": missing_header},
            response=response,
        )


# =============================================================================
# STORAGE REQUEST ERRORS
# =============================================================================
@dataclass
class StorageRequestError(OsapiError):
    """
    A single storage operation failed.

    Never affects sibling operations on the same connection.
    """

    @classmethod
    def unexpected_status(
        cls,
        action: str,
        meta: Optional[Mapping[str, Any]],
        response: ResponseSummary,
    ) -> StorageRequestError:
        """Response status outside the expected set."""
        return cls(
            code=ErrorCode.REQUEST_UNEXPECTED_STATUS,
            message=_failure_message(action, meta, response.status_code, response.status_message),
            action=action,
            meta=dict(meta or {}),
            response=response,
        )

    @classmethod
    def transport_failed(
        cls,
        action: str,
        meta: Optional[Mapping[str, Any]],
        cause: BaseException,
    ) -> StorageRequestError:
        """Transport raised before any response arrived."""
        return cls(
            code=ErrorCode.REQUEST_TRANSPORT_FAILED,
            message=_failure_message(action, meta, "-", f"transport error: {cause}"),
            action=action,
            meta=dict(meta or {}),
            cause=cause,
        )

    @classmethod
    def malformed_response(
        cls,
        action: str,
        reason: str,
        cause: Optional[BaseException] = None,
    ) -> StorageRequestError:
        """Response body could not be interpreted."""
        return cls(
            code=ErrorCode.REQUEST_MALFORMED_RESPONSE,
            message=f"failed {action} - malformed response: {reason}",
            action=action,
            cause=cause,
        )

    @classmethod
    def internal(cls, action: str, cause: BaseException) -> StorageRequestError:
        """Unexpected exception while running an operation."""
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"failed {action} - internal error: {cause!r}",
            action=action,
            cause=cause,
        )


# =============================================================================
# CLASSIFICATION PREDICATES
# =============================================================================
def is_not_found(error: Optional[BaseException]) -> bool:
    """True iff the error carries a response whose status was exactly 404."""
    return isinstance(error, OsapiError) and error.status_code == 404


def is_bad_request(error: Optional[BaseException]) -> bool:
    """True iff the error carries a response whose status was exactly 400."""
    return isinstance(error, OsapiError) and error.status_code == 400


__all__ = [
    "ErrorCode",
    "ResponseSummary",
    "OsapiError",
    "ConfigurationError",
    "AuthenticationError",
    "StorageRequestError",
    "is_not_found",
    "is_bad_request",
]
