"""Tests for reqauth.encoding module."""

import pytest

from reqauth.encoding import UNRESERVED, ensure_header_value, percent_encode, quoted_param
from reqauth.errors import EncodingError


class TestPercentEncode:
    """Tests for percent_encode."""

    def test_unreserved_untouched(self):
        value = "".join(sorted(UNRESERVED))
        assert percent_encode(value) == value

    def test_space_is_percent20(self):
        assert percent_encode("hello world") == "hello%20world"

    def test_reserved_characters(self):
        assert percent_encode("a=b&c/d+e*") == "a%3Db%26c%2Fd%2Be%2A"

    def test_upper_case_hex_utf8(self):
        assert percent_encode("é") == "%C3%A9"

    def test_safe_characters(self):
        assert percent_encode("/a b/c", safe="/") == "/a%20b/c"


class TestHeaderValues:
    """Tests for header value validation."""

    def test_valid_value(self):
        assert ensure_header_value("X-Test", "value 1") == "value 1"

    @pytest.mark.parametrize("value", ["a\rb", "a\nb", "a\x00b", "☃"])
    def test_invalid_value(self, value):
        with pytest.raises(EncodingError):
            ensure_header_value("X-Test", value)

    def test_quoted_param(self):
        assert quoted_param("realm", "api@example.com") == 'realm="api@example.com"'

    @pytest.mark.parametrize("value", ['a"b', "a\\b", "a\nb"])
    def test_quoted_param_rejects(self, value):
        with pytest.raises(EncodingError):
            quoted_param("realm", value)
