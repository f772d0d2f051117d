"""Tests for spiderman.crawler.scheduler."""

import json
from unittest.mock import MagicMock, patch

import pytest

from spiderman.crawler.errors import InvalidURLError
from spiderman.crawler.fetcher import FetchResult
from spiderman.crawler.parser import ParsedPage
from spiderman.crawler.scheduler import CrawlerScheduler, CrawlStats
from spiderman.storage.exporter import DocumentExporter
from spiderman.utils.config import Config


class FakeFetcher:
    """In-memory stand-in for WebFetcher."""

    def __init__(self, pages, failures=None, status=None):
        self.pages = pages
        self.failures = failures or set()
        self.status = status or {}
        self.fetched = []
        self.started = False
        self.closed = False

    async def start(self):
        self.started = True

    async def close(self):
        self.closed = True

    async def fetch(self, url):
        self.fetched.append(url)
        if url in self.failures:
            return FetchResult(url=url, status_code=0, error="Client error: refused")
        return FetchResult(
            url=url,
            status_code=self.status.get(url, 200),
            content=self.pages.get(url, "<html></html>"),
            content_type="text/html",
            final_url=url,
        )


def make_config(**crawler):
    crawler.setdefault("seed_url", "example.com")
    crawler.setdefault("progress_interval", 0)
    return Config.from_dict({"crawler": crawler, "logging": {"file": None}})


SITE = {
    "http://example.com/": """
        <a href="/about">About</a>
        <a href="http://external.com">External</a>
        <a href="#x">Fragment</a>
        <a href="../b">Up</a>
    """,
    "http://example.com/about": '<a href="/">Home</a><a href="/team/">Team</a>',
    "http://example.com/b": '<a href="/about#bio">About</a>',
    "http://external.com/": '<a href="/elsewhere">x</a>',
}


class TestCrawlStats:
    def test_rates(self):
        stats = CrawlStats(start_time=0.0, pages_fetched=10)
        assert stats.elapsed_time > 0
        assert stats.pages_per_minute >= 0
        data = stats.to_dict()
        assert data["pages_fetched"] == 10
        assert "pages_per_minute" in data


class TestCrawlerScheduler:
    @pytest.mark.asyncio
    async def test_crawls_in_admission_order(self):
        fetcher = FakeFetcher(SITE)
        scheduler = CrawlerScheduler(make_config(), fetcher=fetcher)

        stats = await scheduler.start_crawling()

        assert fetcher.fetched == [
            "http://example.com/",
            "http://example.com/about",
            "http://external.com/",
            "http://example.com/b",
            "http://example.com/team",
            "http://external.com/elsewhere",
        ]
        assert len(fetcher.fetched) == len(set(fetcher.fetched))
        assert stats.pages_fetched == 6
        assert stats.errors == 0
        assert scheduler.frontier.stats() == (6, 0, 6)

    @pytest.mark.asyncio
    async def test_respects_allowed_domains(self):
        fetcher = FakeFetcher(SITE)
        scheduler = CrawlerScheduler(make_config(allowed_domains=["example.com"]), fetcher=fetcher)

        await scheduler.start_crawling()

        assert "http://external.com/" not in fetcher.fetched
        assert scheduler.frontier.rejections["domain"] == 1

    @pytest.mark.asyncio
    async def test_respects_page_budget(self):
        fetcher = FakeFetcher(SITE)
        scheduler = CrawlerScheduler(make_config(max_pages=2), fetcher=fetcher)

        stats = await scheduler.start_crawling()

        assert fetcher.fetched == ["http://example.com/", "http://example.com/about"]
        assert stats.pages_fetched == 2
        assert scheduler.frontier.next() is None

    @pytest.mark.asyncio
    async def test_failed_fetch_is_counted_and_not_retried(self):
        fetcher = FakeFetcher(SITE, failures={"http://example.com/about"},
                              status={"http://example.com/b": 404})
        scheduler = CrawlerScheduler(make_config(), fetcher=fetcher)

        stats = await scheduler.start_crawling()

        assert fetcher.fetched.count("http://example.com/about") == 1
        assert stats.errors == 2
        assert scheduler.frontier.is_seen("http://example.com/about")
        # Links of failed pages are never extracted
        assert "http://example.com/team" not in fetcher.fetched

    @pytest.mark.asyncio
    async def test_page_handler_receives_url_and_body(self):
        handler = MagicMock()
        fetcher = FakeFetcher({"http://example.com/": "<p>hello</p>"})
        scheduler = CrawlerScheduler(make_config(), fetcher=fetcher, page_handler=handler)

        await scheduler.start_crawling()

        handler.assert_called_once_with("http://example.com/", "<p>hello</p>")

    @pytest.mark.asyncio
    async def test_page_handler_error_does_not_stop_crawl(self):
        handler = MagicMock(side_effect=RuntimeError("disk full"))
        fetcher = FakeFetcher(SITE)
        scheduler = CrawlerScheduler(make_config(), fetcher=fetcher, page_handler=handler)

        stats = await scheduler.start_crawling()

        assert stats.errors == 1
        assert fetcher.fetched == ["http://example.com/"]

    @pytest.mark.asyncio
    async def test_inconsistent_link_is_skipped(self):
        fetcher = FakeFetcher({})
        scheduler = CrawlerScheduler(make_config(), fetcher=fetcher)
        bad_page = ParsedPage(
            url="http://example.com/",
            links=["HTTP://Example.com/bad/", "http://example.com/good"],
        )

        follow_up = ParsedPage(url="http://example.com/good")
        with patch.object(scheduler.parser, "parse", side_effect=[bad_page, follow_up]):
            stats = await scheduler.start_crawling()

        assert stats.inconsistencies == 1
        assert stats.links_admitted == 1
        assert "http://example.com/good" in fetcher.fetched

    @pytest.mark.asyncio
    async def test_stop_crawling(self):
        fetcher = FakeFetcher(SITE)
        scheduler = CrawlerScheduler(make_config(), fetcher=fetcher)

        async def stop_after_first(url):
            await scheduler.stop_crawling()
            return FetchResult(url=url, status_code=200, content=SITE[url], final_url=url)

        fetcher.fetch = stop_after_first
        stats = await scheduler.start_crawling()

        assert stats.pages_fetched == 1
        assert scheduler.frontier.stats().pending == 3

    @pytest.mark.asyncio
    async def test_supplied_fetcher_is_not_closed(self):
        fetcher = FakeFetcher({})
        scheduler = CrawlerScheduler(make_config(), fetcher=fetcher)

        await scheduler.initialize()
        await scheduler.close()

        assert not fetcher.started
        assert not fetcher.closed

    @pytest.mark.asyncio
    async def test_get_stats(self):
        scheduler = CrawlerScheduler(make_config(), fetcher=FakeFetcher(SITE))
        await scheduler.start_crawling()

        stats = scheduler.get_stats()
        assert stats["crawl"]["pages_fetched"] == 6
        assert stats["frontier"]["completed"] == 6
        assert stats["frontier"]["rejected_duplicate"] >= 1

    def test_invalid_seed_raises(self):
        config = make_config(seed_url="ftp://example.com/")
        with pytest.raises(InvalidURLError):
            CrawlerScheduler(config, fetcher=FakeFetcher({}))


class TestDocumentHandler:
    @pytest.mark.asyncio
    async def test_handler_receives_documents(self):
        handler = MagicMock()
        pages = {
            "http://example.com/": "<title>Home</title><h1>Welcome</h1><a href='/about'>About</a>",
            "http://example.com/about": "<title>About</title><p>Us</p>",
        }
        scheduler = CrawlerScheduler(make_config(), fetcher=FakeFetcher(pages),
                                     document_handler=handler)

        stats = await scheduler.start_crawling()

        documents = [call.args[0] for call in handler.call_args_list]
        assert [document.url for document in documents] == [
            "http://example.com/",
            "http://example.com/about",
        ]
        assert documents[0].title == "Home"
        assert documents[0].links == ["http://example.com/about"]
        assert "# Welcome" in documents[0].content
        assert documents[1].content == "Us"
        assert documents[0].raw_html is None
        assert stats.documents_exported == 2

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_crawl(self):
        handler = MagicMock(side_effect=OSError("disk full"))
        fetcher = FakeFetcher(SITE)
        scheduler = CrawlerScheduler(make_config(), fetcher=fetcher, document_handler=handler)

        stats = await scheduler.start_crawling()

        assert stats.export_errors == 6
        assert stats.documents_exported == 0
        assert stats.errors == 0
        assert len(fetcher.fetched) == 6

    @pytest.mark.asyncio
    async def test_raw_html_kept_when_configured(self):
        handler = MagicMock()
        config = Config.from_dict({
            "crawler": {"seed_url": "example.com", "progress_interval": 0},
            "export": {"include_html": True},
            "logging": {"file": None},
        })
        scheduler = CrawlerScheduler(config, fetcher=FakeFetcher({"http://example.com/": "<p>raw</p>"}),
                                     document_handler=handler)

        await scheduler.start_crawling()

        assert handler.call_args.args[0].raw_html == "<p>raw</p>"

    @pytest.mark.asyncio
    async def test_exports_to_jsonl(self, tmp_path):
        exporter = DocumentExporter(str(tmp_path))
        exporter.initialize()
        scheduler = CrawlerScheduler(make_config(), fetcher=FakeFetcher(SITE),
                                     document_handler=exporter)

        await scheduler.start_crawling()
        exporter.close()

        lines = (tmp_path / "documents.jsonl").read_text(encoding="utf-8").splitlines()
        urls = [json.loads(line)["url"] for line in lines]
        assert urls == scheduler.fetcher.fetched
        assert exporter.get_stats()["documents_exported"] == 6
