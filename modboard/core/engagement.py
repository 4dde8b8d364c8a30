"""
ModBoard Engagement Counters

Sliding-window counts of likes or views per thread, used to rank
"popular today / this week / this month". Events older than the
retention horizon are pruned whenever a request touches them; there is
no background timer.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from ..db.models import EngagementMode, Thread
from ..utils.formatting import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


RETENTION = timedelta(days=31)

WINDOWS = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


@dataclass
class WindowCounts:
    """Event counts for the three ranking windows."""
    day: int = 0
    week: int = 0
    month: int = 0

    def get(self, window: str) -> int:
        return getattr(self, window)

    def to_dict(self) -> dict:
        return {"day": self.day, "week": self.week, "month": self.month}


def _is_live(value: str, cutoff: datetime) -> bool:
    dt = parse_timestamp(value)
    return dt is not None and dt >= cutoff


def prune_views(events: list[str], now: datetime, horizon: timedelta = RETENTION) -> int:
    """
    Drop view events older than the horizon, in place.

    Unparseable timestamps are dropped too. Returns the number removed.
    """
    cutoff = now - horizon
    kept = [e for e in events if _is_live(e, cutoff)]
    removed = len(events) - len(kept)
    events[:] = kept
    return removed


def prune_likes(likes: dict[str, str], now: datetime, horizon: timedelta = RETENTION) -> int:
    """Drop likes older than the horizon, in place. Returns the number removed."""
    cutoff = now - horizon
    stale = [user for user, ts in likes.items() if not _is_live(ts, cutoff)]
    for user in stale:
        del likes[user]
    return len(stale)


def count_within(events: Iterable[str], window: timedelta, now: datetime) -> int:
    """Count events with now - t <= window, skipping unparseable ones."""
    count = 0
    for value in events:
        dt = parse_timestamp(value)
        if dt is None:
            continue
        if now - dt <= window:
            count += 1
    return count


def window_counts(events: Iterable[str], now: datetime) -> WindowCounts:
    """Counts for the day, week and month windows."""
    events = list(events)
    return WindowCounts(
        day=count_within(events, WINDOWS["day"], now),
        week=count_within(events, WINDOWS["week"], now),
        month=count_within(events, WINDOWS["month"], now),
    )


def record_like(
    likes: dict[str, str],
    identity: str,
    now: datetime,
    horizon: timedelta = RETENTION
) -> bool:
    """
    Record a like from identity.

    Returns True if the identity already liked inside the horizon, in
    which case nothing changes (the original timestamp is kept).
    """
    existing = likes.get(identity)
    if existing is not None and _is_live(existing, now - horizon):
        return True

    likes[identity] = format_timestamp(now)
    return False


def record_view(events: list[str], now: datetime):
    """Append an anonymous view event."""
    events.append(format_timestamp(now))


class EngagementTracker:
    """
    Binds the window counters to a thread according to the board's
    engagement mode (likes keyed by identity, or anonymous views).
    """

    def __init__(self, mode: EngagementMode = EngagementMode.VIEWS, retention: timedelta = RETENTION):
        self.mode = mode
        self.retention = retention

    def events(self, thread: Thread) -> Iterable[str]:
        """Timestamps of the thread's events for the active mode."""
        if self.mode is EngagementMode.LIKES:
            return thread.likes.values()
        return thread.view_events

    def prune(self, thread: Thread, now: datetime) -> int:
        """Prune the thread's events. Returns the number removed."""
        if self.mode is EngagementMode.LIKES:
            removed = prune_likes(thread.likes, now, self.retention)
        else:
            removed = prune_views(thread.view_events, now, self.retention)

        if removed:
            logger.debug(f"Pruned {removed} stale {self.mode.value} from thread {thread.id}")
        return removed

    def counts(self, thread: Thread, now: datetime) -> WindowCounts:
        return window_counts(self.events(thread), now)

    def like(self, thread: Thread, identity: str, now: datetime) -> bool:
        """Prune then record a like. Returns True if already liked."""
        self.prune(thread, now)
        return record_like(thread.likes, identity, now, self.retention)

    def view(self, thread: Thread, now: datetime):
        """Record a view then prune."""
        record_view(thread.view_events, now)
        self.prune(thread, now)
