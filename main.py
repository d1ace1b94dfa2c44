#!/usr/bin/env python3
"""
Main entry point for the web crawler.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from minicrawl import __version__
from minicrawl.crawler.coordinator import CrawlCoordinator
from minicrawl.crawler.fetcher import Fetcher, WebFetcher
from minicrawl.crawler.report import CrawlReport
from minicrawl.utils.config import Config, ConfigError, load_config
from minicrawl.utils.logger import log_system_info, setup_logging
from minicrawl.utils.monitoring import initialize_monitoring


class CrawlerApp:
    """Main application class for the web crawler."""

    def __init__(self, fetcher: Optional[Fetcher] = None):
        self.fetcher = fetcher
        self.logger = logging.getLogger(__name__)
        self.report: Optional[CrawlReport] = None

    def setup_logging(self, config: Config, log_level: Optional[str] = None):
        """Setup logging configuration."""
        logging_config = config.logging
        setup_logging(
            {
                'level': log_level or logging_config.level,
                'file': logging_config.file,
                'format': logging_config.format,
            },
            enable_json=logging_config.json
        )
        log_system_info()

    async def run(self, start_url: str, config: Config, depth: Optional[int] = None,
                  max_concurrency: Optional[int] = None, report_json: Optional[str] = None,
                  sort: bool = False, log_level: Optional[str] = None) -> int:
        """Run the web crawler and print the summary report."""
        self.setup_logging(config, log_level)

        depth = config.crawler.max_depth if depth is None else depth
        max_concurrency = max_concurrency or config.crawler.max_concurrency

        self.logger.info("=== WEB CRAWLER STARTING ===")
        self.logger.info(f"Start URL: {start_url}")
        self.logger.info(f"Max depth: {depth}")
        self.logger.info(f"Max concurrency: {max_concurrency or 'unbounded'}")

        monitor = initialize_monitoring(
            enable_prometheus=config.monitoring.metrics_enabled,
            prometheus_port=config.monitoring.prometheus_port
        )

        owns_fetcher = self.fetcher is None
        fetcher = self.fetcher or WebFetcher(
            user_agent=config.crawler.user_agent,
            request_timeout=config.crawler.request_timeout,
            max_content_size=config.crawler.max_content_size
        )

        try:
            coordinator = CrawlCoordinator(
                fetcher,
                max_concurrency=max_concurrency,
                monitor=monitor
            )
            state = await coordinator.run(start_url, depth)

            self.report = CrawlReport.from_state(state, stats=coordinator.get_stats())
            print(self.report.render(sort=sort))

            if report_json:
                self.report.export_json(report_json)

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            if owns_fetcher:
                await fetcher.close()
            self.logger.info("=== WEB CRAWLER FINISHED ===")

        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Recursive web crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py https://example.com                    # Crawl to the default depth of 3
  python main.py https://example.com --depth 2          # Crawl two levels
  python main.py https://example.com --max-concurrency 8
  python main.py https://example.com --report-json out.json --sort
        """
    )

    parser.add_argument(
        'start_url',
        nargs='?',
        help='Page to start crawling from'
    )

    parser.add_argument(
        '--depth',
        type=int,
        help='Maximum crawl depth (default: crawler.max_depth from config, 3)'
    )

    parser.add_argument(
        '--config',
        help='Path to a YAML configuration file'
    )

    parser.add_argument(
        '--max-concurrency',
        type=int,
        help='Maximum number of fetches in flight (default: unbounded)'
    )

    parser.add_argument(
        '--report-json',
        help='Write the crawl report to this JSON file'
    )

    parser.add_argument(
        '--sort',
        action='store_true',
        help='Print report lines sorted by URL'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Override the configured log level'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'minicrawl {__version__}'
    )

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if not args.start_url:
        print("Please specify start page")
        return 1

    if args.depth is not None and args.depth < 0:
        print("Error: --depth must be non-negative")
        return 1

    if args.max_concurrency is not None and args.max_concurrency < 1:
        print("Error: --max-concurrency must be at least 1")
        return 1

    if args.config and not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        return 1

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(
            start_url=args.start_url,
            config=config,
            depth=args.depth,
            max_concurrency=args.max_concurrency,
            report_json=args.report_json,
            sort=args.sort,
            log_level=args.log_level
        ))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
