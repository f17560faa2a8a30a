#!/usr/bin/env python3
"""
Main entry point for the crawler.
"""

import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from bytecrawl import __version__
from bytecrawl.counting import ByteCounter
from bytecrawl.crawler.fetcher import WebFetcher
from bytecrawl.crawler.scheduler import CrawlerScheduler
from bytecrawl.utils.config import Config, load_config, validate_config
from bytecrawl.utils.logger import setup_logging, log_system_info
from bytecrawl.utils.monitoring import format_byte_report


class CrawlerApp:
    """Main application class for the crawler."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event: Optional[asyncio.Event] = None

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum, frame):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            loop.call_soon_threadsafe(self._shutdown_event.set)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def run(self, config: Config, max_pages: Optional[int] = None,
                  max_duration: Optional[float] = None, dry_run: bool = False) -> int:
        """Run the crawler."""
        self._shutdown_event = asyncio.Event()
        try:
            setup_logging(config.logging)
            log_system_info()
            self.setup_signal_handlers()

            self.logger.info("=== CRAWLER STARTING ===")
            self.logger.info(f"Seed URLs: {config.crawler.seed_urls}")
            self.logger.info(f"Workers: {config.crawler.worker_count}")
            self.logger.info(f"Host fetch limit: {config.crawler.host_fetch_limit}")

            if dry_run:
                self.logger.info("DRY RUN MODE: fetching the first seed only")
                await self._dry_run(config)
                return 0

            # Initialize scheduler
            self.scheduler = CrawlerScheduler(config)
            await self.scheduler.initialize()

            # Start crawling with shutdown monitoring
            crawl_task = asyncio.create_task(self.scheduler.start_crawling(max_pages))
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())

            # Wait for the crawl, a shutdown signal or the time limit
            done, _ = await asyncio.wait(
                [crawl_task, shutdown_task],
                timeout=max_duration,
                return_when=asyncio.FIRST_COMPLETED
            )

            if crawl_task not in done:
                if shutdown_task in done:
                    self.logger.info("Shutdown requested, stopping crawler...")
                else:
                    self.logger.info(f"Reached max duration: {max_duration} seconds")
                self.scheduler.stop_crawling()

            shutdown_task.cancel()
            await asyncio.gather(shutdown_task, return_exceptions=True)
            await crawl_task

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            # Cleanup
            if self.scheduler:
                await self.scheduler.close()
                self.logger.info(format_byte_report(self.scheduler.byte_counter))
            self.logger.info("=== CRAWLER FINISHED ===")

        return 0

    async def _dry_run(self, config: Config):
        """Fetch the first seed once and report the traffic it took."""
        byte_counter = ByteCounter()
        async with WebFetcher(
            user_agent=config.crawler.user_agent,
            request_timeout=config.crawler.request_timeout,
            max_connections=1,
            socket_factory=byte_counter.socket_factory
        ) as fetcher:
            result = await fetcher.fetch(config.crawler.seed_urls[0])
            if result.error:
                self.logger.warning(f"Test fetch failed: {result.error}")
            else:
                self.logger.info(f"Test fetch successful: {result.status_code} "
                                 f"({result.content_type})")
        self.logger.info(format_byte_report(byte_counter))


def build_config(config_path: str, seeds: List[str], worker_count: Optional[int]) -> Config:
    """Load the config file (if any) and apply command line overrides."""
    if Path(config_path).exists():
        config = load_config(config_path)
    elif seeds:
        config = Config()
    else:
        raise FileNotFoundError(f"Configuration file '{config_path}' not found")

    if seeds:
        config.crawler.seed_urls = list(seeds)
    if worker_count is not None:
        config.crawler.worker_count = worker_count

    validate_config(config)
    return config


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Single-domain web crawler with network byte accounting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                # Run with default config.yaml
  python main.py --config my_config.yaml        # Run with custom config
  python main.py --seed https://www.google.com  # Crawl google.com with defaults
  python main.py --max-pages 1000               # Limit to 1000 fetches
  python main.py --max-duration 3600            # Run for 1 hour max
  python main.py --dry-run                      # Fetch the first seed only
        """
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--seed',
        action='append',
        default=[],
        help='Seed URL; repeat for several (overrides crawler.seed_urls)'
    )

    parser.add_argument(
        '--workers',
        type=int,
        help='Number of crawl workers (overrides crawler.worker_count)'
    )

    parser.add_argument(
        '--max-pages',
        type=int,
        help='Maximum number of pages to fetch'
    )

    parser.add_argument(
        '--max-duration',
        type=float,
        help='Maximum crawl duration in seconds'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Fetch the first seed once and report the bytes it took'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'bytecrawl {__version__}'
    )

    args = parser.parse_args()

    try:
        config = build_config(args.config, args.seed, args.workers)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        print("Create a config.yaml, pass --config, or give a --seed URL")
        return 1

    # Run the crawler
    app = CrawlerApp()
    try:
        return asyncio.run(app.run(
            config=config,
            max_pages=args.max_pages,
            max_duration=args.max_duration,
            dry_run=args.dry_run
        ))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
