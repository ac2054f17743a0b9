"""
Canonical URL Helper for Graphiti

Normalizes a raw URL into a canonical string so that trivially different
URLs hash to the same content address.

Steps (in order):
1. strip fragment
2. sort query parameters by key, then value (code-point order)
3. lowercase host
4. drop the scheme's default port (80 for http, 443 for https)

The path is kept verbatim: "https://example.com" and "https://example.com/"
are different canonical URLs.

Examples:
  - "https://Example.COM:443/a?b=2&a=1#top" -> "https://example.com/a?a=1&b=2"
  - "http://example.com:8080/" -> "http://example.com:8080/"
"""

from __future__ import annotations

import re
from typing import List, Tuple
from urllib.parse import SplitResult, parse_qsl, urlencode, urlsplit, urlunsplit

from utils.errors import InvalidUrl


DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
}

# Schemes that must carry a host to be meaningful
_HOST_SCHEMES = frozenset({"http", "https"})

_scheme_re = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


def _split(raw_url: str) -> SplitResult:
    if not isinstance(raw_url, str):
        raise InvalidUrl(raw_url, "expected a string")

    v = raw_url.strip()
    if not v or not _scheme_re.match(v):
        raise InvalidUrl(raw_url, "missing scheme")

    try:
        parts = urlsplit(v)
        # Accessing .port validates it (raises ValueError when out of range)
        parts.port
    except ValueError as exc:
        raise InvalidUrl(raw_url, str(exc)) from exc

    if parts.scheme in _HOST_SCHEMES and not parts.hostname:
        raise InvalidUrl(raw_url, "missing host")

    return parts


def _sorted_query(query: str) -> str:
    if not query:
        return ""
    pairs: List[Tuple[str, str]] = parse_qsl(query, keep_blank_values=True)
    pairs.sort()
    return urlencode(pairs)


def _netloc(parts: SplitResult) -> str:
    host = (parts.hostname or "").lower()
    if not host:
        return parts.netloc
    if ":" in host:
        host = f"[{host}]"

    userinfo = ""
    if "@" in parts.netloc:
        userinfo = parts.netloc.rsplit("@", 1)[0] + "@"

    port = parts.port
    if port is not None and DEFAULT_PORTS.get(parts.scheme) != port:
        return f"{userinfo}{host}:{port}"
    return f"{userinfo}{host}"


def canonicalize(raw_url: str) -> str:
    """
    Return the canonical form of a URL.

    Pure and idempotent: canonicalize(canonicalize(u)) == canonicalize(u).

    Raises:
        InvalidUrl: if the input cannot be parsed as a URL
    """
    parts = _split(raw_url)
    return urlunsplit((
        parts.scheme,
        _netloc(parts),
        parts.path,
        _sorted_query(parts.query),
        "",
    ))
