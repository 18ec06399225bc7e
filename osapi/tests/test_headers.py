"""
Unit Tests: Header and Metadata Codec

Tests:
    - Metadata value encoding (latin-1 passthrough, base64 otherwise)
    - Decoding rules and the legacy-value ambiguity
    - Outbound header formatting per style
    - Response metadata and bucket statistics parsing
"""

from datetime import datetime, timezone

import pytest

from osapi.protocol.headers import (
    S3_META_PREFIX,
    SWIFT_OBJECT_META_PREFIX,
    decode_meta_headers,
    decode_meta_value,
    encode_meta_value,
    format_headers,
    parse_bucket_headers,
    parse_headers,
    parse_iso_date,
)


class TestMetaValueCodec:
    """Tests for encode_meta_value / decode_meta_value."""

    @pytest.mark.parametrize("value", ["red", "café", "naïve résumé", "ÿ"])
    def test_single_byte_passthrough(self, value):
        """Values inside 0x00-0xFF go out unchanged."""
        assert encode_meta_value(value) == value
        assert decode_meta_value(value) == value

    def test_wide_value_is_base64(self):
        encoded = encode_meta_value("日本")
        assert encoded == "5pel5pys"
        assert decode_meta_value(encoded) == "日本"

    def test_non_string_is_stringified(self):
        assert encode_meta_value(42) == "42"

    def test_base64_looking_plain_value_kept(self):
        """'cmVk' is base64 of 'red', but 'red' is single-byte so the raw value wins."""
        assert decode_meta_value("cmVk") == "cmVk"

    def test_invalid_base64_kept(self):
        assert decode_meta_value("not base64!") == "not base64!"

    def test_empty_value(self):
        assert encode_meta_value("") == ""
        assert decode_meta_value("") == ""


class TestFormatHeaders:
    """Tests for outbound header construction."""

    def test_s3_prefix_keeps_placeholder(self):
        headers = format_headers(
            content_type="image/jpeg",
            meta={"color": "red", "skip": None},
            acl="public-read",
        )
        assert headers == {
            "content-type": "image/jpeg",
            "x-{VENDOR_CODE}-meta-color": "red",
            "x-{VENDOR_CODE}-acl": "public-read",
        }
        assert S3_META_PREFIX == "x-{VENDOR_CODE}-meta-"

    def test_swift_prefix(self):
        headers = format_headers(meta={"title": "日本"}, meta_prefix=SWIFT_OBJECT_META_PREFIX)
        assert headers == {"X-Object-Meta-title": "5pel5pys"}


class TestParseHeaders:
    """Tests for response metadata parsing."""

    def test_common_fields(self):
        meta = parse_headers({
            "x-amz-request-id": "tx-1",
            "content-type": "image/jpeg",
            "content-length": "1024",
            "etag": '"abc123"',
            "date": "Tue, 14 Nov 2023 22:13:20 GMT",
            "last-modified": "Mon, 13 Nov 2023 10:00:00 GMT",
        })
        assert meta.request_id == "tx-1"
        assert meta.trans_id == "tx-1"
        assert meta.content_type == "image/jpeg"
        assert meta.content_length == 1024
        assert meta.etag == "abc123"
        assert meta.date == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert meta.last_modified.day == 13
        assert meta.meta is None

    def test_swift_trans_id(self):
        meta = parse_headers({"x-trans-id": "tx-swift"})
        assert meta.request_id == "tx-swift"

    def test_vendor_request_id_first(self):
        meta = parse_headers({"x-oss-request-id": "oss-1", "x-amz-request-id": "amz-1"}, "oss")
        assert meta.request_id == "oss-1"

    def test_meta_allow_list(self):
        """amz, object and container prefixes are read; unknown codes are not."""
        meta = parse_headers({
            "x-amz-meta-color": "red",
            "x-object-meta-title": "5pel5pys",
            "x-container-meta-owner": "ops",
            "x-goog-meta-ignored": "x",
        })
        assert meta.meta == {"color": "red", "title": "日本", "owner": "ops"}

    def test_meta_configured_vendor_code(self):
        meta = parse_headers({"x-oss-meta-color": "blue"}, vendor_code="oss")
        assert meta.meta == {"color": "blue"}

    def test_decode_meta_headers_case_insensitive(self):
        assert decode_meta_headers({"X-Amz-Meta-Color": "red"}) == {"color": "red"}


class TestBucketHeaders:
    """Tests for bucket/container statistics."""

    def test_swift_counters(self):
        stats = parse_bucket_headers({
            "x-container-object-count": "3",
            "x-container-bytes-used": "2048",
            "x-storage-policy": "default-placement",
        })
        assert stats.object_count == 3
        assert stats.bytes_used == 2048
        assert stats.storage_policy == "default-placement"
        assert stats.region is None

    def test_rgw_and_region(self):
        stats = parse_bucket_headers({
            "x-rgw-object-count": "7",
            "x-rgw-bytes-used": "70",
            "x-amz-bucket-region": "us-east-1",
        })
        assert (stats.object_count, stats.bytes_used, stats.region) == (7, 70, "us-east-1")


class TestIsoDates:
    """Tests for listing timestamps."""

    def test_zulu(self):
        assert parse_iso_date("2023-11-14T22:13:20.000Z") == datetime(
            2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc
        )

    def test_naive_is_utc(self):
        assert parse_iso_date("2023-11-14T22:13:20.123456").tzinfo == timezone.utc

    def test_garbage(self):
        assert parse_iso_date("yesterday") is None
