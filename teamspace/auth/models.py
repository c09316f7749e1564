from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AuthUser:
    """Authenticated, authorized user carried in the session cookie."""

    provider: str  # github
    username: str  # GitHub login; used verbatim as the teamspace owner
