#!/usr/bin/env python3
"""
Main entry point for the continuous crawler workers.
"""

import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from src import __version__
from src.utils.config import load_config, Config
from src.utils.logger import setup_logging
from src.crawler.scheduler import CrawlerScheduler


class CrawlerApp:
    """Main application class for the crawler workers."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event = asyncio.Event()

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            self._shutdown_event.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, signal_handler, signum)

    async def run(self, config_path: str, num_workers: Optional[int] = None,
                  seed: bool = True, dry_run: bool = False) -> int:
        """Run the crawler workers until a shutdown signal arrives."""
        try:
            config = load_config(config_path)
            setup_logging(vars(config.logging), enable_json=config.logging.json)
            self.setup_signal_handlers()

            self.logger.info("=== CRAWLER WORKERS STARTING ===")
            self.logger.info(f"Configuration loaded from: {config_path}")
            self.logger.info(f"Crawl id: {config.crawler.crawl_id}")
            self.logger.info(f"Seed URLs: {config.crawler.seed_urls}")
            self.logger.info(f"Max depth: {config.crawler.max_depth}")
            self.logger.info(f"Follow redirects: {config.crawler.follow_redirects}")
            self.logger.info(f"Pull size: {config.crawler.pull_size}, "
                             f"retry delay: {config.crawler.pull_retry_delay}s")
            self.logger.info(f"History type: {config.history.type}")

            if dry_run:
                self.logger.info("DRY RUN MODE: No actual crawling will be performed")
                await self._dry_run(config)
                return 0

            self.scheduler = CrawlerScheduler(config)
            await self.scheduler.initialize()

            if seed and config.crawler.seed_urls:
                await self.scheduler.add_seed_urls()

            crawl_task = asyncio.create_task(self.scheduler.start_crawling(num_workers))
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())

            # Workers only finish on their own if they die
            done, pending = await asyncio.wait(
                [crawl_task, shutdown_task],
                return_when=asyncio.FIRST_COMPLETED
            )

            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            if crawl_task in done:
                self.logger.error("All workers stopped unexpectedly")
            else:
                self.logger.info("Shutdown requested, stopping workers...")
            await self.scheduler.stop_crawling()
            self.logger.info(f"Final stats: {self.scheduler.get_stats()}")

            if crawl_task in done:
                return 1

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            if self.scheduler:
                await self.scheduler.close()
            self.logger.info("=== CRAWLER WORKERS FINISHED ===")

        return 0

    async def _dry_run(self, config: Config):
        """Perform a dry run to test configuration and connections."""
        self.logger.info("Testing Redis connection...")
        try:
            import redis.asyncio as redis
            redis_client = redis.Redis(
                host=config.redis.host,
                port=config.redis.port,
                db=config.redis.db,
                password=config.redis.password
            )
            await redis_client.ping()
            await redis_client.aclose()
            self.logger.info("✓ Redis connection successful")
        except Exception as e:
            self.logger.error(f"✗ Redis connection failed: {e}")

        self.logger.info("Testing history configuration...")
        try:
            from src.storage.history import CrawlHistory
            history = CrawlHistory(config.history)
            await history.initialize()
            await history.close()
            self.logger.info("✓ History initialization successful")
        except Exception as e:
            self.logger.error(f"✗ History initialization failed: {e}")

        self.logger.info("Testing fetcher configuration...")
        try:
            from src.crawler.crawl_url import CrawlUrl
            from src.crawler.fetcher import FetchStatus, PageFetcher
            async with PageFetcher(
                user_agent=config.crawler.user_agent,
                request_timeout=config.crawler.request_timeout
            ) as fetcher:
                if config.crawler.seed_urls:
                    test_url = CrawlUrl.seed(config.crawler.seed_urls[0], config.crawler.crawl_id)
                    result = await fetcher.fetch_header(test_url)
                    await result.release()
                    description = FetchStatus.get_status_description(result.status_code)
                    if FetchStatus.is_custom_code(result.status_code):
                        self.logger.warning(f"Test fetch failed: {description}")
                    else:
                        self.logger.info(f"✓ Test fetch successful: {result.status_code} {description}")
        except Exception as e:
            self.logger.error(f"✗ Fetcher test failed: {e}")

        self.logger.info("Dry run completed")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Continuous crawler workers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                           # Run with default config.yaml
  python main.py --config my_config.yaml  # Run with custom config
  python main.py --workers 8              # Run 8 workers in this process
  python main.py --no-seed                # Join a crawl whose frontier is already seeded
  python main.py --dry-run                # Test configuration only
        """
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--workers',
        type=int,
        help='Number of workers to run (overrides crawler.num_workers)'
    )

    parser.add_argument(
        '--no-seed',
        action='store_true',
        help='Do not push the configured seed URLs to the frontier'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Test configuration without actually crawling'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Continuous Crawler {__version__}'
    )

    args = parser.parse_args()

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        print("Please create a config.yaml file or specify a different path with --config")
        return 1

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(
            config_path=args.config,
            num_workers=args.workers,
            seed=not args.no_seed,
            dry_run=args.dry_run
        ))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
