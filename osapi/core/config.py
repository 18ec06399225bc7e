"""
Connection Configuration

Turns the loose, case-insensitive option bag a caller passes in into one
frozen ConnectionConfig. Alias resolution (bucket vs container, the three
spellings of the endpoint, the S3 key aliases) happens here and nowhere
else.

Design:
- Immutable after validation
- Fail-fast on missing required options
- Secret material never leaves through repr() or to_dict()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import httpx

from osapi.core import constants as C
from osapi.core.errors import ConfigurationError
from osapi.core.types import ConnectionStyle, Err, Ok, Result


def normalize_key(key: str) -> str:
    """Case-fold an option name and drop separators: 'end_Point' -> 'endpoint'."""
    return key.lower().replace("_", "").replace("-", "")


def normalize_options(options: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Normalize every key of an option mapping. Later duplicates win."""
    return {normalize_key(str(k)): v for k, v in (options or {}).items()}


def _first(options: Mapping[str, Any], *names: str) -> Any:
    """Value of the first alias present with a truthy value."""
    for name in names:
        value = options.get(name)
        if value:
            return value
    return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# =============================================================================
# TRANSPORT SETTINGS
# =============================================================================
@dataclass(frozen=True)
class TransportSettings:
    """
    HTTP client settings handed to the transport agent.

    transport is an optional httpx transport (e.g. httpx.MockTransport)
    used in place of the network stack.
    """

    keep_alive: bool = True
    reject_unauthorized: bool = True
    proxy: Optional[str] = None
    timeout: Optional[float] = None
    transport: Optional[httpx.AsyncBaseTransport] = None

    @classmethod
    def from_options(
        cls,
        options: Mapping[str, Any],
        settings: Optional[Mapping[str, Any]] = None,
    ) -> TransportSettings:
        """
        Merge, lowest priority first: defaults, `proxy` from the connection
        options, then the explicit settings mapping.
        """
        merged: dict[str, Any] = {}
        if options.get("proxy"):
            merged["proxy"] = options["proxy"]
        merged.update(normalize_options(settings))

        timeout = merged.get("timeout")
        return cls(
            keep_alive=_as_bool(merged.get("keepalive", True)),
            reject_unauthorized=_as_bool(merged.get("rejectunauthorized", True)),
            proxy=merged.get("proxy") or None,
            timeout=float(timeout) if timeout is not None else None,
            transport=merged.get("transport"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "keep_alive": self.keep_alive,
            "reject_unauthorized": self.reject_unauthorized,
            "proxy": self.proxy,
            "timeout": self.timeout,
        }


# =============================================================================
# CONNECTION CONFIG
# =============================================================================
@dataclass(frozen=True)
class ConnectionConfig:
    """
    Normalized connection options.

    Exactly one credential set is populated: access_key/secret_access_key
    for S3 style, subuser/key for Swift style.
    """

    style: ConnectionStyle
    endpoint: str
    bucket: Optional[str] = None

    # S3 style
    access_key: Optional[str] = field(default=None, repr=False)
    secret_access_key: Optional[str] = field(default=None, repr=False)
    vendor: str = C.DEFAULT_VENDOR
    bucket_in_domain: bool = False

    # Swift style
    subuser: Optional[str] = None
    key: Optional[str] = field(default=None, repr=False)
    temp_url_key: Optional[str] = field(default=None, repr=False)

    settings: TransportSettings = field(default_factory=TransportSettings)

    @property
    def vendor_code(self) -> str:
        """Header prefix segment: 'amz' for ceph/aws, 'oss' for aliyun."""
        return C.VENDOR_CODES.get(self.vendor, "amz")

    @property
    def username(self) -> Optional[str]:
        return self.subuser.split(":", 1)[0] if self.subuser else None

    @property
    def subusername(self) -> Optional[str]:
        if not self.subuser or ":" not in self.subuser:
            return None
        return self.subuser.split(":", 1)[1]

    @classmethod
    def parse(
        cls,
        options: Mapping[str, Any],
        style: ConnectionStyle,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> Result[ConnectionConfig, ConfigurationError]:
        """
        Build a config from a raw option mapping.

        Keys are matched case-insensitively with '_' and '-' ignored.

        Returns:
            Ok(config), or Err(ConfigurationError) naming the absent options
        """
        opts = normalize_options(options)
        transport = TransportSettings.from_options(opts, settings)

        endpoint = _first(opts, "endpoint", "serviceurl", "url")
        if not endpoint:
            return Err(ConfigurationError.option_absent("endpoint", "serviceurl", "url"))
        endpoint = str(endpoint).rstrip("/")

        bucket = _first(opts, "bucket", "container")

        if style is ConnectionStyle.S3:
            access_key = _first(opts, "accesskey", "key", "awsaccesskeyid")
            if not access_key:
                return Err(ConfigurationError.option_absent("accesskey", "key", "awsaccesskeyid"))
            secret = _first(opts, "secretaccesskey", "awssecretaccesskey", "secretkey")
            if not secret:
                return Err(ConfigurationError.option_absent(
                    "secretaccesskey", "awssecretaccesskey", "secretkey"
                ))

            vendor = str(opts.get("vendor") or C.DEFAULT_VENDOR).lower()
            if vendor not in C.VENDOR_CODES:
                return Err(ConfigurationError.invalid_option(
                    "vendor", vendor, f"expected one of {sorted(C.VENDOR_CODES)}"
                ))

            if "bucketindomain" in opts:
                bucket_in_domain = _as_bool(opts["bucketindomain"])
            else:
                bucket_in_domain = vendor != "ceph"

            return Ok(cls(
                style=style,
                endpoint=endpoint,
                bucket=bucket,
                access_key=str(access_key),
                secret_access_key=str(secret),
                vendor=vendor,
                bucket_in_domain=bucket_in_domain,
                settings=transport,
            ))

        subuser = opts.get("subuser")
        if not subuser and opts.get("username") and opts.get("subusername"):
            subuser = f"{opts['username']}:{opts['subusername']}"
        if not subuser:
            return Err(ConfigurationError.option_absent("subuser", ("username", "subusername")))

        key = _first(opts, "key", "password")
        if not key:
            return Err(ConfigurationError.option_absent("key", "password"))

        return Ok(cls(
            style=style,
            endpoint=endpoint,
            bucket=bucket,
            subuser=str(subuser),
            key=str(key),
            temp_url_key=opts.get("tempurlkey") or None,
            settings=transport,
        ))

    @classmethod
    def from_options(
        cls,
        options: Mapping[str, Any],
        style: ConnectionStyle,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> ConnectionConfig:
        """
        Same as parse() but raises.

        Raises:
            ConfigurationError: A required option is absent or invalid
        """
        result = cls.parse(options, style, settings)
        if result.is_err():
            raise result.error
        return result.value

    def get(self, name: str) -> Optional[str]:
        """Read a public field by its loose option name. Secrets are not readable."""
        lookup = {
            "style": self.style.value,
            "endpoint": self.endpoint,
            "bucket": self.bucket,
            "container": self.bucket,
            "accesskey": self.access_key,
            "vendor": self.vendor if self.style is ConnectionStyle.S3 else None,
            "subuser": self.subuser,
            "username": self.username,
            "subusername": self.subusername,
        }
        return lookup.get(normalize_key(name))

    def to_dict(self) -> dict[str, Any]:
        """Loggable view: secrets masked."""
        data: dict[str, Any] = {
            "style": self.style.value,
            "endpoint": self.endpoint,
            "bucket": self.bucket,
        }
        if self.style is ConnectionStyle.S3:
            data.update(
                accesskey=self.access_key,
                secretaccesskey=C.MASK,
                vendor=self.vendor,
                bucket_in_domain=self.bucket_in_domain,
            )
        else:
            data.update(
                subuser=self.subuser,
                key=C.MASK,
                tempurlkey=C.MASK if self.temp_url_key else None,
            )
        return data


__all__ = [
    "normalize_key",
    "normalize_options",
    "TransportSettings",
    "ConnectionConfig",
]
