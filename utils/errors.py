"""
Error taxonomy for the Graphiti client.

Every failure the client surfaces to callers is a GraphitiError subclass with
a stable, searchable code. Transient index/peer failures are never raised;
they are logged and degrade discovery results instead.

Usage:
    from utils.errors import GraphitiError, InvalidUrl

    try:
        await client.publish("not a url", tags=[], note="")
    except GraphitiError as exc:
        print(exc.code, exc.details)
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class GraphitiError(Exception):
    """Base class for all typed client errors."""

    code = "GRAPHITI_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/display"""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidUrl(GraphitiError, ValueError):
    """Input could not be parsed as a URL (or could not be encoded)."""

    code = "INVALID_URL"

    def __init__(self, url: Any, reason: str = "cannot be parsed as a URL"):
        super().__init__(f"Invalid URL {url!r}: {reason}", {"url": url, "reason": reason})
        self.url = url


class AuthorizationError(GraphitiError):
    """Terminal failure of an authorization handshake."""

    code = "AUTH_ERROR"


class RelayUnavailable(AuthorizationError):
    """Relay refused to mint an auth request or returned an incomplete one."""

    code = "RELAY_UNAVAILABLE"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, {"status_code": status_code})
        self.status_code = status_code


class AuthDenied(AuthorizationError):
    """The user denied the request, or the relay expired it."""

    code = "AUTH_DENIED"

    def __init__(self, status: str):
        super().__init__(f"Authorization {status}", {"status": status})
        self.status = status


class AuthTimeout(AuthorizationError):
    """The handshake did not reach a terminal state before its deadline."""

    code = "AUTH_TIMEOUT"

    def __init__(self, deadline_seconds: float):
        super().__init__(
            f"Authorization not approved within {deadline_seconds:g}s",
            {"deadline_seconds": deadline_seconds},
        )
        self.deadline_seconds = deadline_seconds


class IdentityRequired(GraphitiError):
    """A write was attempted with no known identity."""

    code = "IDENTITY_REQUIRED"

    def __init__(self, message: str = "Sign in or configure a pubkey before publishing"):
        super().__init__(message)


class WriteRejected(GraphitiError):
    """The personal store rejected a write (status_code is None on transport failure)."""

    code = "WRITE_REJECTED"

    def __init__(self, status_code: Optional[int], path: str, reason: str = ""):
        label = status_code if status_code is not None else "transport error"
        message = f"Write to {path} rejected ({label})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"status_code": status_code, "path": path})
        self.status_code = status_code
        self.path = path
