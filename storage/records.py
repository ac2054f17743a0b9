"""
Value types shared by the Graphiti storage and service layers.

- Record: a user-authored post about a URL (network-visible)
- Session: bearer credential bound to one identity
- Bookmark: local-only saved state for a URL

Persisted record shape (JSON):
    {"kind": "link", "content": str, "tags": [str], "note": str, "created_at": int}

Timestamps are integer milliseconds since the Unix epoch.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple


RECORD_KIND = "link"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def normalize_tags(tags: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Strip tags, drop blanks and duplicates, keep first-seen order."""
    if tags is None:
        return ()
    if isinstance(tags, str):
        tags = tags.split(",")
    seen: Dict[str, None] = {}
    for tag in tags:
        value = str(tag).strip()
        if value and value not in seen:
            seen[value] = None
    return tuple(seen)


def _timestamp(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return 0
    return 0


@dataclass(frozen=True)
class Record:
    """A published post about a canonical URL."""
    content: str
    tags: Tuple[str, ...] = ()
    note: str = ""
    created_at: int = 0
    kind: str = RECORD_KIND
    author: Optional[str] = None  # set by readers, never persisted

    def to_json(self) -> Dict[str, Any]:
        """Persisted shape (without author)."""
        return {
            "kind": self.kind,
            "content": self.content,
            "tags": list(self.tags),
            "note": self.note,
            "created_at": self.created_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/display"""
        data = self.to_json()
        data["author"] = self.author
        return data

    @classmethod
    def from_json(cls, data: Any, author: Optional[str] = None) -> "Record":
        """
        Parse a persisted record.

        Raises:
            ValueError: if data is not a record object
        """
        if not isinstance(data, dict):
            raise ValueError(f"Record must be an object, got {type(data).__name__}")
        content = data.get("content")
        if not isinstance(content, str) or not content:
            raise ValueError("Record is missing 'content'")
        tags = data.get("tags") or []
        if not isinstance(tags, list):
            raise ValueError("Record 'tags' must be a list")
        note = data.get("note") or ""
        return cls(
            content=content,
            tags=normalize_tags(str(t) for t in tags),
            note=str(note),
            created_at=_timestamp(data.get("created_at")),
            kind=str(data.get("kind") or RECORD_KIND),
            author=author if author is not None else data.get("author"),
        )


@dataclass(frozen=True)
class Session:
    """Authorization token bound to one identity."""
    token: str
    identity: str
    capabilities: Tuple[str, ...] = ()
    created_at: int = field(default_factory=now_ms)

    def to_json(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "identity": self.identity,
            "capabilities": list(self.capabilities),
            "created_at": self.created_at,
        }

    @classmethod
    def from_json(cls, data: Any) -> Optional["Session"]:
        """Parse a persisted session; None when the payload is unusable."""
        if not isinstance(data, dict):
            return None
        token = data.get("token")
        identity = data.get("identity")
        if not token or not identity:
            return None
        return cls(
            token=str(token),
            identity=str(identity),
            capabilities=tuple(data.get("capabilities") or ()),
            created_at=_timestamp(data.get("created_at")),
        )

    def __repr__(self) -> str:
        # Keep tokens out of logs and tracebacks
        return f"Session(identity={self.identity!r}, capabilities={self.capabilities!r})"


@dataclass(frozen=True)
class Bookmark:
    """Locally saved URL state."""
    saved: bool
    at: int
    tags: Tuple[str, ...] = ()
    note: str = ""

    def to_json(self) -> Dict[str, Any]:
        return {
            "saved": self.saved,
            "at": self.at,
            "tags": list(self.tags),
            "note": self.note,
        }

    @classmethod
    def from_json(cls, data: Any) -> Optional["Bookmark"]:
        if not isinstance(data, dict):
            return None
        return cls(
            saved=bool(data.get("saved", True)),
            at=_timestamp(data.get("at")),
            tags=normalize_tags(data.get("tags") or []),
            note=str(data.get("note") or ""),
        )


def sort_newest_first(records: Iterable[Record]) -> List[Record]:
    """Order records by created_at descending; missing/zero timestamps last."""
    return sorted(
        records,
        key=lambda r: (r.created_at <= 0, -r.created_at),
    )
