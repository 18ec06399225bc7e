"""
Unit Tests: Connection Configuration

Tests:
    - Case- and separator-insensitive option names
    - Alias resolution for endpoint, credentials and bucket
    - Missing-option error messages
    - Transport settings merge
    - Secret masking in to_dict()/repr()
"""

import pytest

from osapi.core.config import ConnectionConfig, TransportSettings, normalize_key
from osapi.core.errors import ConfigurationError, ErrorCode
from osapi.core.types import ConnectionStyle


class TestNormalizeKey:
    """Tests for option name normalization."""

    @pytest.mark.parametrize("raw", ["endpoint", "endPoint", "end_point", "END-POINT"])
    def test_spellings_collapse(self, raw):
        assert normalize_key(raw) == "endpoint"


class TestS3Config:
    """Tests for S3-style option parsing."""

    def test_aliases(self):
        """serviceUrl, awsAccessKeyId and container are accepted."""
        config = ConnectionConfig.from_options(
            {
                "serviceUrl": "http://rgw:7480/",
                "AWSAccessKeyId": "AK",
                "secret_access_key": "SK",
                "container": "photos",
            },
            ConnectionStyle.S3,
        )
        assert config.endpoint == "http://rgw:7480"
        assert config.access_key == "AK"
        assert config.secret_access_key == "SK"
        assert config.bucket == "photos"

    def test_vendor_defaults(self):
        """ceph keeps the bucket in the path; other vendors move it to the host."""
        ceph = ConnectionConfig.from_options(
            {"endpoint": "http://a", "key": "AK", "secretKey": "SK"}, ConnectionStyle.S3
        )
        aliyun = ConnectionConfig.from_options(
            {"endpoint": "http://a", "key": "AK", "secretKey": "SK", "vendor": "aliyun"},
            ConnectionStyle.S3,
        )

        assert ceph.vendor == "ceph"
        assert ceph.vendor_code == "amz"
        assert ceph.bucket_in_domain is False
        assert aliyun.vendor_code == "oss"
        assert aliyun.bucket_in_domain is True

    def test_explicit_bucket_in_domain_wins(self):
        config = ConnectionConfig.from_options(
            {"endpoint": "http://a", "key": "AK", "secretKey": "SK", "vendor": "aws", "bucketInDomain": "false"},
            ConnectionStyle.S3,
        )
        assert config.bucket_in_domain is False

    def test_unknown_vendor(self):
        result = ConnectionConfig.parse(
            {"endpoint": "http://a", "key": "AK", "secretKey": "SK", "vendor": "minio"},
            ConnectionStyle.S3,
        )
        assert result.is_err()
        assert result.error.code is ErrorCode.CONFIG_INVALID_OPTION

    def test_missing_secret(self):
        with pytest.raises(ConfigurationError) as exc:
            ConnectionConfig.from_options({"endpoint": "http://a", "key": "AK"}, ConnectionStyle.S3)
        assert "secretaccesskey" in str(exc.value)
        assert exc.value.code is ErrorCode.CONFIG_OPTION_ABSENT


class TestSwiftConfig:
    """Tests for Swift-style option parsing."""

    def test_subuser_from_parts(self):
        config = ConnectionConfig.from_options(
            {"endpoint": "http://a", "username": "acc", "subusername": "swift", "password": "pw"},
            ConnectionStyle.SWIFT,
        )
        assert config.subuser == "acc:swift"
        assert config.username == "acc"
        assert config.subusername == "swift"
        assert config.key == "pw"

    def test_missing_subuser_message(self):
        """The message lists each acceptable alternative."""
        with pytest.raises(ConfigurationError) as exc:
            ConnectionConfig.from_options({"endpoint": "http://a", "key": "k"}, ConnectionStyle.SWIFT)
        assert str(exc.value) == "Required option(s) absent: subuser | (username, subusername)"

    def test_missing_endpoint(self):
        result = ConnectionConfig.parse({"subuser": "a:b", "key": "k"}, ConnectionStyle.SWIFT)
        assert result.is_err()
        assert "endpoint" in result.error.message

    def test_get_hides_secrets(self):
        config = ConnectionConfig.from_options(
            {"endpoint": "http://a", "subuser": "acc:swift", "key": "k", "container": "c"},
            ConnectionStyle.SWIFT,
        )
        assert config.get("endPoint") == "http://a"
        assert config.get("container") == "c"
        assert config.get("subUserName") == "swift"
        assert config.get("key") is None

    def test_to_dict_masks(self):
        config = ConnectionConfig.from_options(
            {"endpoint": "http://a", "subuser": "acc:swift", "key": "hunter2", "tempUrlKey": "tk"},
            ConnectionStyle.SWIFT,
        )
        data = config.to_dict()
        assert data["key"] == "***"
        assert data["tempurlkey"] == "***"
        assert "hunter2" not in repr(config)


class TestTransportSettings:
    """Tests for transport settings merge."""

    def test_defaults(self):
        settings = TransportSettings.from_options({})
        assert settings.keep_alive is True
        assert settings.reject_unauthorized is True
        assert settings.proxy is None
        assert settings.timeout is None

    def test_settings_override_options(self):
        settings = TransportSettings.from_options(
            {"proxy": "http://p1:3128"},
            {"proxy": "http://p2:3128", "keepAlive": False, "reject_unauthorized": "no", "timeout": "5"},
        )
        assert settings.proxy == "http://p2:3128"
        assert settings.keep_alive is False
        assert settings.reject_unauthorized is False
        assert settings.timeout == 5.0
