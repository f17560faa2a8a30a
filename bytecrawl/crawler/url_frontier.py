"""
URL Frontier: the set of claimed URLs plus the FIFO queue of pending ones.
"""

import asyncio
import logging
import threading
from typing import Dict, Optional, Set, Union

from yarl import URL

from .urls import canonicalize, to_url


class URLFrontier:
    """
    Deduplicates and queues URLs for the crawl workers.

    `try_claim` is the only deduplication authority: it adds the canonical
    URL to the visited set and reports whether it was new in one step. The
    pending queue tracks in-flight work, so `join` returns only once every
    enqueued URL has been dequeued and marked done.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

        self._visited: Set[URL] = set()
        self._visited_lock = threading.Lock()
        self._pending: 'asyncio.Queue[Optional[URL]]' = asyncio.Queue()
        self._closed = False

    def try_claim(self, url: Union[str, URL]) -> bool:
        """
        Claim a URL for fetching.

        Returns True if its canonical form had never been claimed before,
        False if some caller already claimed it.
        """
        canonical = canonicalize(url)
        with self._visited_lock:
            if canonical in self._visited:
                return False
            self._visited.add(canonical)
        return True

    def enqueue(self, url: Union[str, URL]):
        """Append a URL to the pending queue."""
        if self._closed:
            self.logger.debug(f"Frontier closed, dropping: {url}")
            return
        self._pending.put_nowait(to_url(url))

    async def dequeue(self) -> Optional[URL]:
        """
        Wait for the next pending URL.

        Returns None once the frontier has been closed; the caller should stop.
        """
        url = await self._pending.get()
        if url is None:
            self._pending.task_done()
        return url

    def task_done(self):
        """Mark a dequeued URL as fully processed."""
        self._pending.task_done()

    async def join(self):
        """Wait until every enqueued URL has been processed."""
        await self._pending.join()

    def close(self, worker_count: int):
        """Wake up to `worker_count` waiting workers with the shutdown signal."""
        self._closed = True
        for _ in range(worker_count):
            self._pending.put_nowait(None)
        self.logger.debug(f"Frontier closed for {worker_count} workers")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def visited_count(self) -> int:
        return len(self._visited)

    @property
    def pending_count(self) -> int:
        return self._pending.qsize()

    def is_claimed(self, url: Union[str, URL]) -> bool:
        """Check whether a URL has already been claimed."""
        with self._visited_lock:
            return canonicalize(url) in self._visited

    def is_empty(self) -> bool:
        """Check if nothing is waiting in the queue."""
        return self._pending.empty()

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        return {
            'total_queued': self.pending_count,
            'total_claimed': self.visited_count
        }
