"""
ModBoard Posting Cooldown

Best-effort flood protection: one post per source address per cooldown.
The address map lives in memory only and is never persisted.
"""

import logging
import threading
import time
from typing import Callable, Dict

logger = logging.getLogger(__name__)


class PostCooldown:
    """
    Fixed-cooldown limiter keyed by source address.

    An allowed attempt stamps the address; a denied attempt does not,
    so the wait never extends itself.
    """

    def __init__(self, cooldown_seconds: float = 2.5, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the limiter.

        Args:
            cooldown_seconds: Minimum seconds between posts (0 disables)
            clock: Monotonic seconds source
        """
        self.cooldown = max(0.0, cooldown_seconds)
        self._clock = clock
        self._last_post: Dict[str, float] = {}
        self._lock = threading.Lock()

        logger.debug(f"PostCooldown initialized: {self.cooldown}s")

    @property
    def enabled(self) -> bool:
        return self.cooldown > 0

    def check(self, source: str) -> bool:
        """
        Check whether source may post now, recording the attempt if so.

        Returns:
            True if allowed, False if still cooling down
        """
        if not self.enabled:
            return True

        now = self._clock()
        with self._lock:
            last = self._last_post.get(source)
            if last is not None and now - last < self.cooldown:
                logger.warning(f"Posting cooldown active for {source}")
                return False
            self._last_post[source] = now
        return True

    def time_until_allowed(self, source: str) -> float:
        """Return seconds until source can post again."""
        with self._lock:
            last = self._last_post.get(source)
        if last is None:
            return 0.0
        return max(0.0, self.cooldown - (self._clock() - last))

    def get_stats(self) -> dict:
        """Return limiter statistics."""
        with self._lock:
            tracked = len(self._last_post)
        return {
            "cooldown_seconds": self.cooldown,
            "tracked_sources": tracked,
        }
