"""
Web page fetcher built on an aiohttp session with a pluggable socket factory.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

import aiohttp
from aiohttp import ClientError, ClientSession, ClientTimeout, hdrs
from yarl import URL

HTML_SUBTYPES = frozenset(('html', 'xhtml+xml'))


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    final_url: Optional[str] = None
    content_type: Optional[str] = None
    charset: Optional[str] = None
    body: Optional[bytes] = None
    error: Optional[str] = None
    fetch_time: float = 0.0

    @property
    def is_html(self) -> bool:
        return self.status_code == 200 and is_html(self.content_type)


def is_html(content_type: Optional[str]) -> bool:
    """Check whether a Content-Type header names an HTML document."""
    if not content_type:
        return False
    mimetype = content_type.split(';', 1)[0].strip().lower()
    _, slash, subtype = mimetype.partition('/')
    return bool(slash) and subtype in HTML_SUBTYPES


class WebFetcher:
    """
    Fetches pages over a shared aiohttp session.

    Every socket the session opens is created by `socket_factory`, which is
    how the byte counter sees the traffic. Only 200 HTML responses have their
    body read; anything else is released unread so the connection goes back
    to the pool or gets closed.
    """

    def __init__(self, user_agent: str, request_timeout: Optional[float] = None,
                 max_connections: int = 10,
                 socket_factory: Optional[Callable] = None):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_connections = max_connections
        self.socket_factory = socket_factory

        self.logger = logging.getLogger(__name__)

        # Session management
        self.session: Optional[ClientSession] = None

        # Statistics
        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'skipped_responses': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            # No timeout unless one is configured: a hung fetch hangs its worker.
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {hdrs.USER_AGENT: self.user_agent}

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_connections * 2,
                    limit_per_host=self.max_connections,
                    ttl_dns_cache=300,
                    socket_factory=self.socket_factory
                )
            )
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def fetch(self, url: Union[str, URL]) -> FetchResult:
        """
        Fetch a single URL.

        Transport failures do not raise; they come back as a FetchResult with
        `error` set and a status code of 0.
        """
        if self.session is None:
            raise RuntimeError("WebFetcher.start() must be called before fetch()")

        start_time = time.time()
        self.stats['total_requests'] += 1

        try:
            async with self.session.get(url) as response:
                content_type = response.headers.get(hdrs.CONTENT_TYPE)
                result = FetchResult(
                    url=str(url),
                    status_code=response.status,
                    final_url=str(response.url),
                    content_type=content_type,
                    charset=response.charset
                )

                if not result.is_html:
                    self.logger.debug(f"Skipping {url}: status={response.status} "
                                      f"content_type={content_type}")
                    self.stats['skipped_responses'] += 1
                    response.release()
                    result.fetch_time = time.time() - start_time
                    return result

                result.body = await response.read()
                result.fetch_time = time.time() - start_time

                self.stats['successful_requests'] += 1
                self.stats['total_bytes_downloaded'] += len(result.body)
                self.logger.debug(f"Fetched {url}: {response.status} ({len(result.body)} bytes)")
                return result

        except asyncio.TimeoutError:
            self.stats['failed_requests'] += 1
            error_msg = "Request timeout"
            self.logger.warning(f"Timeout fetching {url}")

        except ClientError as e:
            self.stats['failed_requests'] += 1
            error_msg = f"Client error: {e}"
            self.logger.warning(f"Client error fetching {url}: {e}")

        return FetchResult(
            url=str(url),
            status_code=0,
            error=error_msg,
            fetch_time=time.time() - start_time
        )

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
