"""
Web crawler core components.
"""

from .url_frontier import URLFrontier
from .host_throttle import HostThrottle
from .fetcher import WebFetcher, FetchResult
from .parser import LinkExtractor
from .scheduler import CrawlerScheduler, CrawlStats, WorkerState

__all__ = [
    'URLFrontier', 'HostThrottle',
    'WebFetcher', 'FetchResult',
    'LinkExtractor',
    'CrawlerScheduler', 'CrawlStats', 'WorkerState'
]
