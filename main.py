#!/usr/bin/env python3
"""
Main entry point for the crawler.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from spiderman import __version__
from spiderman.crawler.errors import FrontierError
from spiderman.crawler.scheduler import CrawlerScheduler
from spiderman.crawler.url_normalizer import canonicalize_seed
from spiderman.storage.exporter import DocumentExporter, ExportError
from spiderman.utils.config import Config, load_config
from spiderman.utils.logger import setup_logging


class CrawlerApp:
    """Main application class for the crawler."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.exporter: Optional[DocumentExporter] = None
        self.logger = logging.getLogger(__name__)

    def setup_signal_handlers(self):
        """Stop the crawl gracefully on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            if self.scheduler:
                self.scheduler.is_running = False

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except (NotImplementedError, RuntimeError):
                # add_signal_handler is unavailable on some platforms
                pass

    async def run(self, config: Config, json_logs: bool = False) -> int:
        """Run the crawler."""
        setup_logging(config.logging, enable_json=json_logs or None)
        self.setup_signal_handlers()

        self.logger.info("=== CRAWLER STARTING ===")
        self.logger.info(f"Seed URL: {config.crawler.seed_url}")
        self.logger.info(f"Max pages: {config.crawler.max_pages or 'unlimited'}")
        self.logger.info(f"Allowed domains: {config.crawler.allowed_domains or 'any'}")

        try:
            if config.export.enabled:
                self.exporter = DocumentExporter(
                    output_dir=config.export.output_dir,
                    filename=config.export.filename,
                    export_format=config.export.format
                )
                self.exporter.initialize()

            self.scheduler = CrawlerScheduler(config, document_handler=self.exporter)
            await self.scheduler.initialize()
            stats = await self.scheduler.start_crawling()
            self.logger.info(f"Fetched {stats.pages_fetched} pages with {stats.errors} errors")

        except (FrontierError, ExportError) as e:
            self.logger.error(f"Cannot start crawl: {e}")
            return 1

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            if self.scheduler:
                await self.scheduler.close()
            if self.exporter:
                self._close_exporter()
            self.logger.info("=== CRAWLER FINISHED ===")

        return 0

    def _close_exporter(self):
        try:
            self.exporter.close()
        except ExportError as e:
            self.logger.error(f"Failed to finish export: {e}")
        else:
            stats = self.exporter.get_stats()
            self.logger.info(f"Exported {stats['documents_exported']} documents to "
                             f"{self.exporter.output_path()}")


def dry_run(config: Config) -> int:
    """Show the canonical seed and the admission policy without crawling."""
    try:
        seed = canonicalize_seed(config.crawler.seed_url)
        policy = config.crawler.to_policy()
    except (FrontierError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    print(f"Seed URL:        {seed}")
    print(f"Max pages:       {policy.max_pages or 'unlimited'}")
    domains = sorted(policy.allowed_domains) if policy.allowed_domains is not None else 'any'
    print(f"Allowed domains: {domains}")
    if config.export.enabled:
        print(f"Export:          {config.export.output_dir} ({config.export.format})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Web crawl frontier",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                   # Run with default config.yaml
  python main.py --config my_config.yaml           # Run with custom config
  python main.py --seed example.com --max-pages 50 # Run without a config file
  python main.py --allowed-domain example.com      # Restrict to one host
  python main.py --output-dir output               # Export pages as JSON Lines
  python main.py --dry-run                         # Show canonical seed and policy
        """
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--seed',
        help='Seed URL (overrides crawler.seed_url)'
    )

    parser.add_argument(
        '--max-pages',
        type=int,
        help='Maximum number of pages to crawl'
    )

    parser.add_argument(
        '--allowed-domain',
        action='append',
        dest='allowed_domains',
        metavar='HOST',
        help='Restrict admission to this exact host (repeatable)'
    )

    parser.add_argument(
        '--max-duration',
        type=int,
        help='Maximum crawl duration in seconds'
    )

    parser.add_argument(
        '--output-dir',
        help='Export crawled pages into this directory (overrides export.output_dir)'
    )

    parser.add_argument(
        '--json-logs',
        action='store_true',
        help='Emit logs as JSON lines'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show canonical seed and policy without crawling'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'spiderman {__version__}'
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    overrides = {
        'seed_url': args.seed,
        'max_pages': args.max_pages,
        'allowed_domains': args.allowed_domains,
        'max_duration': args.max_duration,
    }

    config_path: Optional[str] = args.config
    if not Path(args.config).exists():
        if not args.seed:
            print(f"Error: Configuration file '{args.config}' not found.")
            print("Create a config.yaml, pass --config, or give a --seed URL")
            return 1
        config_path = None

    try:
        config = load_config(config_path, overrides)
    except ValueError as e:
        print(f"Error: Invalid configuration: {e}")
        return 1

    if args.output_dir:
        config.export.output_dir = args.output_dir

    if args.dry_run:
        return dry_run(config)

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(config, json_logs=args.json_logs))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
