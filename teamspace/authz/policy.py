from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Outcome of resolving an upstream credential."""

    username: str
    teams: List[str] = field(default_factory=list)
    authorized: bool = False


def is_user_allowed(teams: Sequence[str], allowed_teams: Iterable[str]) -> bool:
    """
    Team allow-list predicate.

    - empty allow-list: everyone who authenticated is allowed (open-door mode)
    - user with no teams: denied
    - otherwise: allowed iff at least one team is on the allow-list
    """
    allowed = set(allowed_teams or [])
    if not allowed:
        logger.debug("No teams configured, allowing all authenticated org members")
        return True
    if not teams:
        logger.debug("User has no teams, denying access")
        return False
    matched = allowed.intersection(teams)
    if matched:
        logger.debug("User is in allowed team(s): %s", ", ".join(sorted(matched)))
        return True
    logger.debug("User's teams don't match any allowed teams, denying access")
    return False


def authorize(username: str, teams: Sequence[str], allowed_teams: Iterable[str]) -> Identity:
    return Identity(username=username, teams=list(teams), authorized=is_user_allowed(teams, allowed_teams))
