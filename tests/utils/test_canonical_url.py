"""Tests for URL canonicalization."""

import pytest

from utils.canonical_url import canonicalize
from utils.errors import InvalidUrl


class TestCanonicalize:
    """Normalization steps"""

    def test_strips_fragment(self):
        assert canonicalize("https://example.com/page#section") == "https://example.com/page"

    def test_sorts_query_by_key(self):
        assert canonicalize("https://example.com/?b=2&a=1") == "https://example.com/?a=1&b=2"

    def test_sorts_equal_keys_by_value(self):
        assert canonicalize("https://example.com/?t=z&t=a&t=m") == "https://example.com/?t=a&t=m&t=z"

    def test_sort_is_code_point_order(self):
        # Uppercase sorts before lowercase regardless of locale
        assert canonicalize("https://example.com/?b=1&B=2") == "https://example.com/?B=2&b=1"

    def test_lowercases_host(self):
        assert canonicalize("https://EXAMPLE.Com/Path") == "https://example.com/Path"

    def test_path_case_preserved(self):
        assert canonicalize("https://example.com/A/b") == "https://example.com/A/b"

    def test_drops_default_https_port(self):
        assert canonicalize("https://example.com:443/x") == "https://example.com/x"

    def test_drops_default_http_port(self):
        assert canonicalize("http://example.com:80/x") == "http://example.com/x"

    def test_keeps_non_default_port(self):
        assert canonicalize("http://example.com:8080/x") == "http://example.com:8080/x"

    def test_https_on_port_80_keeps_port(self):
        assert canonicalize("https://example.com:80/") == "https://example.com:80/"

    def test_trailing_slash_is_significant(self):
        assert canonicalize("https://example.com") != canonicalize("https://example.com/")

    def test_empty_query_dropped(self):
        assert canonicalize("https://example.com/?") == "https://example.com/"

    def test_blank_values_kept(self):
        assert canonicalize("https://example.com/?flag&a=1") == "https://example.com/?a=1&flag="

    def test_ipv6_host(self):
        assert canonicalize("http://[::1]:80/x") == "http://[::1]/x"

    def test_userinfo_preserved(self):
        assert canonicalize("https://user@Example.com/") == "https://user@example.com/"

    def test_surrounding_whitespace_ignored(self):
        assert canonicalize("  https://example.com/  ") == "https://example.com/"


class TestCanonicalizeProperties:
    """Idempotence and order-independence"""

    @pytest.mark.parametrize("url", [
        "https://Example.com:443/a?b=2&a=1#top",
        "http://example.com:8080/path/?q=hello+world&q=%20x",
        "https://example.com",
        "https://example.com/?flag",
        "https://example.com/?x=%FF",
        "https://example.com/caf%C3%A9?k=%E2%9C%93",
        "mailto:someone@example.com",
        "pubky://abc123/pub/graphiti.dev/links/x.json",
    ])
    def test_idempotent(self, url):
        once = canonicalize(url)
        assert canonicalize(once) == once

    def test_query_order_independent(self):
        a = canonicalize("https://example.com/p?z=1&y=2&x=3")
        b = canonicalize("https://example.com/p?x=3&z=1&y=2")
        assert a == b


class TestCanonicalizeErrors:
    """Malformed input raises InvalidUrl"""

    @pytest.mark.parametrize("bad", [
        "",
        "   ",
        "example.com/path",
        "//example.com/",
        "https://",
        "http:///path",
        "https://example.com:99999/",
        "https://example.com:port/",
    ])
    def test_invalid(self, bad):
        with pytest.raises(InvalidUrl):
            canonicalize(bad)

    def test_non_string(self):
        with pytest.raises(InvalidUrl):
            canonicalize(None)

    def test_invalid_url_is_value_error(self):
        with pytest.raises(ValueError):
            canonicalize("not a url")
