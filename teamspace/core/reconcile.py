"""Deletion reconciliation view.

Namespace deletion is asynchronous and has no push signal. A client observes it by
re-listing: an entry with a deletion timestamp is terminating, and an entry that is
gone from the listing is done. A stuck finalization looks exactly like a slow one.

`DeletionTracker` adds the client-side optimistic flag: a name the client just asked
to delete reads as deleting even if the listing has not caught up yet, and keeps
reading that way until the entry disappears.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from teamspace.core.models import Teamspace

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 3.0


@dataclass(frozen=True)
class TeamspaceStatus:
    teamspace: Teamspace
    is_deleting: bool

    def to_api(self) -> Dict[str, Any]:
        out = self.teamspace.to_api()
        out["isDeleting"] = self.is_deleting
        return out


def is_deleting(ts: Teamspace, pending: Optional[Set[str]] = None) -> bool:
    return ts.terminating or (pending is not None and ts.name in pending)


def project(teamspaces: Iterable[Teamspace], pending: Optional[Set[str]] = None) -> List[TeamspaceStatus]:
    return [TeamspaceStatus(teamspace=ts, is_deleting=is_deleting(ts, pending)) for ts in teamspaces]


def any_deleting(statuses: Iterable[TeamspaceStatus]) -> bool:
    return any(s.is_deleting for s in statuses)


class DeletionTracker:
    """Remembers deletes this client has issued but not yet seen complete."""

    def __init__(self) -> None:
        self._pending: Set[str] = set()

    @property
    def pending(self) -> Set[str]:
        return set(self._pending)

    def mark(self, name: str) -> None:
        self._pending.add(name)

    def unmark(self, name: str) -> None:
        """Drop the optimistic flag, e.g. when the delete request itself failed."""
        self._pending.discard(name)

    def apply(self, teamspaces: Iterable[Teamspace]) -> List[TeamspaceStatus]:
        items = list(teamspaces)
        present = {ts.name for ts in items}
        finished = self._pending - present
        if finished:
            logger.debug("Deletion finished for: %s", ", ".join(sorted(finished)))
        # Absence from the listing is the only terminal signal.
        self._pending &= present
        return project(items, self._pending)


def poll_until_settled(
    fetch: Callable[[], List[Teamspace]],
    *,
    interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    max_polls: Optional[int] = None,
    tracker: Optional[DeletionTracker] = None,
    sleep: Callable[[float], None] = time.sleep,
    on_poll: Optional[Callable[[List[TeamspaceStatus]], None]] = None,
) -> Tuple[List[TeamspaceStatus], bool]:
    """
    Re-list on a fixed interval while anything is deleting.

    Returns `(last_statuses, settled)`; `settled` is False only when `max_polls`
    listings were made and something was still deleting. Errors from `fetch`
    propagate; this helper does not retry failed listings.
    """
    tracker = tracker or DeletionTracker()
    polls = 0
    while True:
        statuses = tracker.apply(fetch())
        polls += 1
        if on_poll is not None:
            on_poll(statuses)
        if not any_deleting(statuses):
            return statuses, True
        if max_polls is not None and polls >= max_polls:
            return statuses, False
        sleep(interval)
