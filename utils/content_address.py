"""
Content addressing for canonical URLs.

Two one-way, deterministic identifiers are derived from a URL's SHA-256 digest:

- address(): full 64-char lowercase hex digest, used as the storage filename
- privacy_tag(): 10-char tag for querying the central index without
  revealing the URL

Privacy tag algorithm:
1. UTF-8 encode the input
2. SHA-256 (32 bytes), keep the first 20 bytes (160 bits)
3. read byte pairs little-endian as 16-bit code units (10 units)
4. remap control characters and surrogates into U+2600..U+26FF
5. lowercase the tag (per character if whole-string lowering changes its length)

Usage:
    from utils.content_address import content_address, privacy_tag

    content_address("https://Example.com/?b=1&a=2")  # hex of the canonical form
    privacy_tag("https://example.com")               # 10 characters
"""

from __future__ import annotations

import hashlib

from utils.canonical_url import canonicalize
from utils.errors import InvalidUrl


TAG_BYTES = 20
TAG_LENGTH = TAG_BYTES // 2

# Code points that can't travel safely inside a tag are shifted into the
# Miscellaneous Symbols block
_SAFE_BLOCK = 0x2600


def _digest(value: str) -> bytes:
    if not isinstance(value, str):
        raise InvalidUrl(value, "expected a string")
    try:
        data = value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidUrl(value, f"not encodable as UTF-8: {exc.reason}") from exc
    return hashlib.sha256(data).digest()


def address(canonical_url: str) -> str:
    """SHA-256 of the UTF-8 bytes of an already-canonical URL, as lowercase hex."""
    return _digest(canonical_url).hex()


def content_address(raw_url: str) -> str:
    """Canonicalize a raw URL and return its content address."""
    return address(canonicalize(raw_url))


def _safe_code_point(code_point: int) -> int:
    if (
        code_point < 0x20
        or 0x7F <= code_point <= 0x9F
        or 0xD800 <= code_point <= 0xDFFF
    ):
        return _SAFE_BLOCK + (code_point % 256)
    return code_point


def _lower_char(ch: str) -> str:
    # Some characters lowercase to two code points (e.g. U+0130); keep those
    # as-is so the tag length never changes.
    lowered = ch.lower()
    return lowered if len(lowered) == 1 else ch


def _lower_tag(text: str) -> str:
    # Whole-string lowering applies context rules such as final sigma
    lowered = text.lower()
    if len(lowered) == len(text):
        return lowered
    return "".join(_lower_char(ch) for ch in text)


def privacy_tag(value: str) -> str:
    """
    Return the 10-character privacy tag for a string (normally a canonical URL).

    Total over every encodable string, including "".
    """
    truncated = _digest(value)[:TAG_BYTES]
    chars = []
    for i in range(0, TAG_BYTES, 2):
        code_point = truncated[i] | (truncated[i + 1] << 8)
        chars.append(chr(_safe_code_point(code_point)))
    return _lower_tag("".join(chars))
