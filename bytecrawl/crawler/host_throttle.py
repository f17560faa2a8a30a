"""
Per-host fetch budget.
"""

import logging
import threading
from collections import defaultdict
from typing import Dict

DEFAULT_HOST_FETCH_LIMIT = 100


class HostThrottle:
    """
    Counts fetch attempts per hostname and refuses hosts over the ceiling.

    Entries are created the first time a host is seen and are never removed.
    """

    def __init__(self, ceiling: int = DEFAULT_HOST_FETCH_LIMIT):
        if ceiling < 1:
            raise ValueError("ceiling must be at least 1")
        self.ceiling = ceiling
        self.logger = logging.getLogger(__name__)

        self._counts: Dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def admit(self, hostname: str) -> bool:
        """
        Record one fetch attempt for `hostname`.

        Returns True if the host was still below the ceiling before this
        attempt. Increment and comparison happen under one lock acquisition.
        """
        with self._lock:
            previous = self._counts[hostname]
            self._counts[hostname] = previous + 1

        if previous == self.ceiling:
            self.logger.info(f"Host fetch limit ({self.ceiling}) reached for {hostname}")
        return previous < self.ceiling

    def count(self, hostname: str) -> int:
        """Number of attempts recorded for a host."""
        with self._lock:
            return self._counts.get(hostname, 0)

    def get_stats(self) -> Dict[str, int]:
        """Get throttle statistics."""
        with self._lock:
            return {
                'hosts_seen': len(self._counts),
                'hosts_throttled': sum(1 for c in self._counts.values() if c > self.ceiling)
            }
