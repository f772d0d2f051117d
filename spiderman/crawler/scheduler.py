"""
Crawler scheduler that drives the fetch loop around the URL frontier.
"""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from .document import Document
from .errors import FrontierError
from .fetcher import FetchResult, WebFetcher
from .parser import ContentParser, ParsedPage
from .url_frontier import URLFrontier
from ..utils.config import Config
from ..utils.logger import LoggingContext, get_crawler_logger


PageHandler = Callable[[str, str], None]
DocumentHandler = Callable[[Document], None]


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float
    pages_fetched: int = 0
    errors: int = 0
    links_extracted: int = 0
    links_admitted: int = 0
    links_refused: int = 0
    inconsistencies: int = 0
    documents_exported: int = 0
    export_errors: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages_fetched / elapsed_minutes if elapsed_minutes > 0 else 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['elapsed_time'] = self.elapsed_time
        data['pages_per_minute'] = self.pages_per_minute
        return data


class CrawlerScheduler:
    """
    Single-driver crawl loop.

    Pops a URL from the frontier, fetches it, hands (url, body) to the
    optional page handler, extracts links and feeds them back through
    admit(). When a document handler is given, each page is then passed on
    as a Document (title, description, metadata, Markdown content).

    Failed fetches are counted and never retried; the URL stays in the
    frontier's seen set.
    """

    def __init__(self, config: Config, fetcher: Optional[WebFetcher] = None,
                 page_handler: Optional[PageHandler] = None,
                 document_handler: Optional[DocumentHandler] = None):
        self.config = config
        self.logger = get_crawler_logger(__name__)

        self.frontier = URLFrontier(
            config.crawler.seed_url,
            config.crawler.to_policy()
        )
        self.parser = ContentParser(include_content=document_handler is not None)
        self.fetcher = fetcher
        self._owns_fetcher = fetcher is None
        self.page_handler = page_handler
        self.document_handler = document_handler

        self.stats = CrawlStats(start_time=time.time())
        self.is_running = False

    async def initialize(self):
        """Create and start the fetcher unless one was supplied."""
        if self.fetcher is None:
            self.fetcher = WebFetcher(
                user_agent=self.config.crawler.user_agent,
                request_timeout=self.config.crawler.request_timeout,
                max_content_bytes=self.config.crawler.max_content_bytes
            )
            self._owns_fetcher = True

        if self._owns_fetcher:
            await self.fetcher.start()

        self.logger.info("Crawler scheduler initialized")

    async def start_crawling(self, max_duration: Optional[int] = None) -> CrawlStats:
        """
        Run the crawl until the frontier is exhausted.

        Args:
            max_duration: Maximum duration in seconds (defaults to the configured value)

        Returns:
            Final crawl statistics
        """
        if self.is_running:
            self.logger.warning("Crawler is already running")
            return self.stats

        if self.fetcher is None:
            await self.initialize()

        if max_duration is None:
            max_duration = self.config.crawler.max_duration
        progress_interval = self.config.crawler.progress_interval

        self.is_running = True
        self.stats = CrawlStats(start_time=time.time())
        self.logger.info(f"Started crawling from {self.frontier.seed_url}")

        try:
            while self.is_running:
                if max_duration and self.stats.elapsed_time >= max_duration:
                    self.logger.info(f"Reached max duration: {max_duration} seconds")
                    break

                url = self.frontier.next()
                if url is None:
                    self.logger.info("Frontier exhausted")
                    break

                await self._process_url(url)

                if progress_interval and self.stats.pages_fetched % progress_interval == 0:
                    self._log_current_stats()
        finally:
            self.is_running = False

        self._log_final_stats()
        return self.stats

    async def _process_url(self, url: str):
        """Fetch one URL and admit the links it contains."""
        with LoggingContext(self.logger, url=url):
            try:
                fetch_result = await self.fetcher.fetch(url)
                self.stats.pages_fetched += 1

                if not self._fetch_succeeded(fetch_result):
                    self.stats.errors += 1
                    return

                if self.page_handler:
                    self.page_handler(url, fetch_result.content)

                parsed_page = self.parser.parse(fetch_result.final_url or url, fetch_result.content)
                self._queue_new_urls(parsed_page)

                if self.document_handler:
                    self._export_document(url, parsed_page, fetch_result.content)

            except Exception as e:
                self.logger.error(f"Error processing {url}: {e}", exc_info=True)
                self.stats.errors += 1

    def _fetch_succeeded(self, fetch_result: FetchResult) -> bool:
        if fetch_result.error or fetch_result.content is None:
            self.logger.log_url_event(
                logging.WARNING, fetch_result.url,
                f"Failed to fetch {fetch_result.url}: {fetch_result.error}"
            )
            return False

        if fetch_result.status_code >= 400:
            self.logger.log_url_event(
                logging.WARNING, fetch_result.url,
                f"HTTP {fetch_result.status_code} for {fetch_result.url}"
            )
            return False

        return True

    def _queue_new_urls(self, parsed_page: ParsedPage):
        """Offer every extracted link to the frontier."""
        self.stats.links_extracted += len(parsed_page.links)

        admitted = 0
        for link in parsed_page.links:
            try:
                if self.frontier.admit(link):
                    admitted += 1
                else:
                    self.stats.links_refused += 1
            except FrontierError as e:
                # Skip the offending link, keep crawling
                self.stats.inconsistencies += 1
                self.logger.error(f"Frontier rejected {link!r} from {parsed_page.url}: {e}")

        self.stats.links_admitted += admitted
        self.logger.debug(f"Queued {admitted} of {len(parsed_page.links)} links from {parsed_page.url}")

    def _export_document(self, url: str, parsed_page: ParsedPage, body: str):
        """Hand the page to the document handler; failures do not stop the crawl."""
        raw_html = body if self.config.export.include_html else None
        document = Document.from_page(parsed_page, url=url, raw_html=raw_html)
        try:
            self.document_handler(document)
            self.stats.documents_exported += 1
        except Exception as e:
            self.stats.export_errors += 1
            self.logger.error(f"Failed to export {url}: {e}")

    def _log_current_stats(self):
        """Log current crawl statistics."""
        seen, pending, completed = self.frontier.stats()
        self.logger.info(
            f"Crawl Progress: "
            f"Fetched={self.stats.pages_fetched}, "
            f"Pending={pending}, "
            f"Seen={seen}, "
            f"Errors={self.stats.errors}, "
            f"Rate={self.stats.pages_per_minute:.1f} pages/min"
        )

    def _log_final_stats(self):
        """Log final crawl statistics."""
        frontier_stats = self.frontier.get_stats()

        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.log_crawler_stat('pages_fetched', self.stats.pages_fetched)
        self.logger.log_crawler_stat('errors', self.stats.errors)
        self.logger.log_crawler_stat('links_extracted', self.stats.links_extracted)
        self.logger.log_crawler_stat('links_admitted', self.stats.links_admitted)
        if self.document_handler:
            self.logger.log_crawler_stat('documents_exported', self.stats.documents_exported)
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"URLs remaining in queue: {frontier_stats['pending']}")
        self.logger.info(f"Frontier stats: {frontier_stats}")

    async def stop_crawling(self):
        """Stop the crawl after the page in progress."""
        self.logger.info("Stopping crawler...")
        self.is_running = False

    async def close(self):
        """Close the fetcher if the scheduler created it."""
        if self.is_running:
            await self.stop_crawling()

        if self.fetcher and self._owns_fetcher:
            await self.fetcher.close()

        self.logger.info("Crawler scheduler closed")

    def get_stats(self) -> Dict[str, Any]:
        """Get combined crawl and frontier statistics."""
        return {
            'crawl': self.stats.to_dict(),
            'frontier': self.frontier.get_stats()
        }
