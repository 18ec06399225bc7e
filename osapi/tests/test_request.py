"""
Unit Tests: Request Builder

Tests:
    - Path segment percent-encoding
    - Query strings from allowed names
    - Operation option coercion and aliases
"""

import pytest

from osapi.core.errors import ConfigurationError
from osapi.protocol.request import (
    OperationOptions,
    build_url,
    encode_path,
    encode_query,
    encode_segment,
    parse_options,
)


class TestEncodePath:
    """Tests for path encoding."""

    def test_segments_encoded_individually(self):
        assert encode_path(["photos", "2024/cat one.jpg"]) == "/photos/2024%2Fcat%20one.jpg"

    def test_string_split_on_slash(self):
        assert encode_path("photos/2024/cat.jpg") == "/photos/2024/cat.jpg"

    def test_trailing_slash(self):
        assert encode_path(["photos", ""]) == "/photos/"

    def test_root(self):
        assert encode_path([]) == "/"
        assert encode_path("") == "/"

    def test_unreserved_punctuation_kept(self):
        assert encode_segment("it's (1)!*") == "it's%20(1)!*"
        assert encode_segment("a+b&c") == "a%2Bb%26c"

    def test_unicode(self):
        assert encode_segment("日本") == "%E6%97%A5%E6%9C%AC"


class TestQuery:
    """Tests for query strings."""

    def test_allowed_order_and_none(self):
        qs = encode_query(
            {"prefix": "a b", "marker": None, "max-keys": 10, "junk": "x"},
            ("delimiter", "max-keys", "marker", "prefix"),
        )
        assert qs == "max-keys=10&prefix=a%20b"

    def test_build_url(self):
        assert build_url(["photos", ""], {"delimiter": "/"}, ("delimiter",)) == "/photos/?delimiter=%2F"
        assert build_url([], {"limit": None}, ("limit",)) == "/"


class TestParseOptions:
    """Tests for operation option coercion."""

    def test_shorthand_string(self):
        opts = parse_options("cat.jpg", default_bucket="photos")
        assert opts.name == "cat.jpg"
        assert opts.bucket == "photos"

    def test_shorthand_prefix(self):
        opts = parse_options("2024/", default_field="prefix")
        assert opts.prefix == "2024/"
        assert opts.name is None

    def test_aliases(self):
        opts = parse_options({
            "container": "c",
            "key": "o",
            "maxKeys": "25",
            "contentType": "text/plain",
            "onlyMeta": 1,
            "suppress_not_found_error": True,
            "metaFlag": "a",
        })
        assert opts.bucket == "c"
        assert opts.name == "o"
        assert opts.limit == 25
        assert opts.content_type == "text/plain"
        assert opts.only_meta is True
        assert opts.suppress_not_found_error is True
        assert opts.meta_flag == "a"

    def test_bucket_wins_over_container(self):
        opts = parse_options({"bucket": "b", "container": "c"})
        assert opts.bucket == "b"

    def test_unknown_keys_kept(self):
        opts = parse_options({"name": "o", "range": "bytes=0-1"})
        assert opts.extra == {"range": "bytes=0-1"}
        assert opts.to_dict() == {"name": "o", "range": "bytes=0-1"}

    def test_bad_meta_flag(self):
        with pytest.raises(ConfigurationError):
            parse_options({"name": "o", "metaFlag": "x"})

    def test_non_integer_limit(self):
        with pytest.raises(ConfigurationError) as exc:
            parse_options({"name": "o", "limit": "ten"})
        assert "limit" in str(exc.value)
        assert exc.value.action == "OPTIONS"

    def test_zero_limit_kept_in_diagnostics(self):
        opts = parse_options({"bucket": "b", "maxKeys": 0, "onlyMeta": False})
        assert opts.limit == 0
        assert opts.to_dict() == {"bucket": "b", "limit": 0}

    def test_bad_type(self):
        with pytest.raises(ConfigurationError):
            parse_options(42)

    def test_instance_gets_default_bucket(self):
        opts = parse_options(OperationOptions(name="o"), default_bucket="photos")
        assert opts.bucket == "photos"
        assert opts.container == "photos"

    def test_require(self):
        opts = OperationOptions(bucket="b")
        with pytest.raises(ConfigurationError) as exc:
            opts.require("OBJECT_GET", "bucket", "name")
        assert "name" in str(exc.value)
        assert exc.value.action == "OBJECT_GET"
