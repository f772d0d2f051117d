"""
Web page parser for extracting links, the page title and meta tags.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Union

from bs4 import BeautifulSoup

from .html_to_markdown import html_to_markdown
from .url_normalizer import resolve


@dataclass
class ParsedPage:
    """Container for what the crawl needs from one fetched page."""
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    links: List[str] = field(default_factory=list)
    rejected_links: int = 0
    content: Optional[str] = None


class ContentParser:
    """
    Parses HTML content to extract outgoing links and page metadata.

    Every <a href> target is resolved against the page URL. Links are
    returned in document order with duplicates removed by canonical string;
    the first occurrence wins.

    With include_content the page body is also rendered as Markdown.
    """

    def __init__(self, features: str = 'lxml', include_content: bool = False):
        self.features = features
        self.include_content = include_content
        self.logger = logging.getLogger(__name__)
        self.whitespace_pattern = re.compile(r'\s+')

    def parse(self, url: str, document: Union[str, bytes, None]) -> ParsedPage:
        """
        Parse HTML content and extract title, meta tags and links.

        Args:
            url: Absolute URL the document was fetched from
            document: Raw HTML content

        Returns:
            ParsedPage; empty when the markup cannot be parsed at all
        """
        parsed_page = ParsedPage(url=url)

        soup = self._make_soup(url, document)
        if soup is None:
            return parsed_page

        self._extract_title(soup, parsed_page)
        self._extract_meta_tags(soup, parsed_page)
        self._extract_links(soup, parsed_page, url)
        if self.include_content:
            parsed_page.content = html_to_markdown(soup)

        self.logger.debug(f"Parsed {url}: {len(parsed_page.links)} links, "
                          f"{parsed_page.rejected_links} rejected")
        return parsed_page

    def extract_links(self, document: Union[str, bytes, None], base_url: str) -> List[str]:
        """Extract canonical links from a document found at base_url."""
        return self.parse(base_url, document).links

    def _make_soup(self, url: str, document) -> Optional[BeautifulSoup]:
        if not document:
            return None
        try:
            return BeautifulSoup(document, self.features)
        except Exception as e:
            self.logger.warning(f"Could not parse markup from {url}: {e}")
            return None

    def _extract_title(self, soup: BeautifulSoup, parsed_page: ParsedPage):
        """Extract page title."""
        title_tag = soup.find('title')
        if title_tag:
            title = self._clean_text(title_tag.get_text())
            parsed_page.title = title or None

    def _extract_meta_tags(self, soup: BeautifulSoup, parsed_page: ParsedPage):
        """Extract the meta description and other named meta tags."""
        for meta in soup.find_all('meta'):
            name = meta.get('name') or meta.get('property')
            content = meta.get('content')
            if not isinstance(name, str) or not isinstance(content, str):
                continue

            key = name.strip().lower()
            value = self._clean_text(content)
            if not key or not value:
                continue

            if key == 'description':
                parsed_page.description = parsed_page.description or value
            else:
                parsed_page.metadata.setdefault(key, value)

        if parsed_page.description is None:
            parsed_page.description = parsed_page.metadata.get('og:description')

        html_tag = soup.find('html')
        if html_tag:
            language = html_tag.get('lang') or html_tag.get('xml:lang')
            if isinstance(language, str) and language.strip():
                parsed_page.metadata.setdefault('language', language.strip())

    def _clean_text(self, text: str) -> str:
        return self.whitespace_pattern.sub(' ', text).strip()

    def _extract_links(self, soup: BeautifulSoup, parsed_page: ParsedPage, base_url: str):
        """Extract and canonicalize links."""
        seen: Set[str] = set()

        for anchor in soup.find_all('a', href=True):
            href = anchor.get('href')
            if not isinstance(href, str):
                parsed_page.rejected_links += 1
                continue

            canonical_url = resolve(href, base_url)
            if canonical_url is None:
                parsed_page.rejected_links += 1
                continue

            if canonical_url not in seen:
                seen.add(canonical_url)
                parsed_page.links.append(canonical_url)


_default_parser = ContentParser()


def extract_links(document: Union[str, bytes, None], base_url: str) -> List[str]:
    """
    Extract canonical links from an HTML document.

    Never raises on malformed markup: broken anchors are skipped and an
    unparsable document yields an empty list.
    """
    return _default_parser.extract_links(document, base_url)
