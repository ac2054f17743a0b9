"""
Client configuration for Graphiti.

Resolution order (later wins):
1. dataclass defaults
2. environment variables (GRAPHITI_*; the CLI loads .env via python-dotenv)
3. user overrides persisted in the key-value store under "config"
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional

from storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

CONFIG_KEY = "config"

# Fields a user may change at runtime (and that get persisted)
EDITABLE_FIELDS = frozenset({
    "my_pubkey",
    "nexus_url",
    "relay_url",
    "following",
    "debug",
})


def parse_following(value: Any) -> List[str]:
    """Accept a list or a comma-separated string; drop blanks and duplicates."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    else:
        items = value
    result: List[str] = []
    for item in items:
        v = str(item).strip()
        if v and v not in result:
            result.append(v)
    return result


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ClientConfig:
    """Configuration for the Graphiti client"""

    # Identity
    my_pubkey: Optional[str] = None

    # Endpoints
    nexus_url: str = "https://nexus.pubky.app"
    relay_url: str = "https://httprelay.pubky.app/link/"
    store_root_template: str = "https://homeserver.pubky.app/{identity}"
    namespace: str = "pub/graphiti.dev/links"

    # PeerSet for direct-read fallback
    following: List[str] = field(default_factory=list)

    # Authorization
    capabilities: str = "/pub/graphiti.dev/:rw"
    poll_interval_seconds: float = 1.0
    auth_deadline_seconds: float = 180.0

    # Reads
    cache_ttl_seconds: float = 30.0
    request_timeout_seconds: float = 10.0

    # Storage
    db_path: str = "graphiti.db"

    debug: bool = False

    @classmethod
    def from_env(cls) -> ClientConfig:
        """Load configuration from environment variables"""
        return cls(
            my_pubkey=os.getenv("GRAPHITI_PUBKEY") or None,
            nexus_url=os.getenv("GRAPHITI_NEXUS_URL", "https://nexus.pubky.app"),
            relay_url=os.getenv("GRAPHITI_RELAY_URL", "https://httprelay.pubky.app/link/"),
            store_root_template=os.getenv(
                "GRAPHITI_STORE_ROOT", "https://homeserver.pubky.app/{identity}"
            ),
            namespace=os.getenv("GRAPHITI_NAMESPACE", "pub/graphiti.dev/links"),
            following=parse_following(os.getenv("GRAPHITI_FOLLOWING", "")),
            capabilities=os.getenv("GRAPHITI_CAPABILITIES", "/pub/graphiti.dev/:rw"),
            poll_interval_seconds=float(os.getenv("GRAPHITI_POLL_INTERVAL", "1.0")),
            auth_deadline_seconds=float(os.getenv("GRAPHITI_AUTH_DEADLINE", "180")),
            cache_ttl_seconds=float(os.getenv("GRAPHITI_CACHE_TTL", "30")),
            request_timeout_seconds=float(os.getenv("GRAPHITI_REQUEST_TIMEOUT", "10")),
            db_path=os.getenv("GRAPHITI_DB_PATH", "graphiti.db"),
            debug=os.getenv("GRAPHITI_DEBUG", "false").lower() == "true",
        )

    def with_overrides(self, overrides: Mapping[str, Any]) -> ClientConfig:
        """
        Return a copy with user overrides applied.

        Raises:
            ValueError: for keys that aren't user-editable
        """
        unknown = set(overrides) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        changes: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key == "following":
                changes[key] = parse_following(value)
            elif key == "debug":
                changes[key] = _parse_bool(value)
            elif key == "my_pubkey":
                changes[key] = str(value or "").strip() or None
            else:
                value = str(value or "").strip()
                if not value:
                    raise ValueError(f"{key} cannot be empty")
                changes[key] = value
        return replace(self, **changes)

    def editable(self) -> Dict[str, Any]:
        """The user-editable subset, as persisted."""
        return {
            "my_pubkey": self.my_pubkey,
            "nexus_url": self.nexus_url,
            "relay_url": self.relay_url,
            "following": list(self.following),
            "debug": self.debug,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/display"""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["following"] = list(self.following)
        return data


class ConfigStore:
    """Persists user overrides and merges them over a base config."""

    def __init__(self, kv: KeyValueStore, key: str = CONFIG_KEY):
        self.kv = kv
        self.key = key

    async def load(self, base: ClientConfig) -> ClientConfig:
        stored = await self.kv.get(self.key)
        if not isinstance(stored, dict):
            return base
        overrides = {k: v for k, v in stored.items() if k in EDITABLE_FIELDS}
        dropped = set(stored) - set(overrides)
        if dropped:
            logger.warning(f"Ignoring unknown persisted config keys: {sorted(dropped)}")
        return base.with_overrides(overrides)

    async def save(self, config: ClientConfig) -> None:
        await self.kv.set(self.key, config.editable())
