"""
Document model for crawled pages.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .parser import ParsedPage


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Document:
    """
    A crawled page as it is exported.

    Attributes:
        url: Canonical URL the page was dispatched under
        title: Page title, empty when the page has none
        description: Meta description, if any
        content: Page body rendered as Markdown
        links: Canonical outbound links in document order
        crawled_at: UTC time the page was crawled
        metadata: Other meta tags (keywords, author, language, ...)
        raw_html: Original markup, only kept when requested
    """
    url: str
    title: str = ''
    description: Optional[str] = None
    content: str = ''
    links: List[str] = field(default_factory=list)
    crawled_at: datetime = field(default_factory=_utc_now)
    metadata: Dict[str, str] = field(default_factory=dict)
    raw_html: Optional[str] = None

    @classmethod
    def from_page(cls, page: ParsedPage, url: Optional[str] = None,
                  raw_html: Optional[str] = None) -> 'Document':
        """
        Build a document from a parsed page.

        Args:
            page: Result of ContentParser.parse
            url: Dispatched URL when it differs from the page URL (redirects);
                the page URL is then kept as the "final_url" metadata entry
            raw_html: Original markup to store alongside the content
        """
        metadata = dict(page.metadata)
        if url and url != page.url:
            metadata['final_url'] = page.url

        return cls(
            url=url or page.url,
            title=page.title or '',
            description=page.description,
            content=page.content or '',
            links=list(page.links),
            metadata=metadata,
            raw_html=raw_html
        )

    @property
    def link_count(self) -> int:
        return len(self.links)

    @property
    def content_length(self) -> int:
        """Length of the Markdown content in UTF-8 bytes."""
        return len(self.content.encode('utf-8'))

    def get_metadata(self, key: str) -> Optional[str]:
        return self.metadata.get(key)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary, leaving out empty optional fields."""
        data = {
            'url': self.url,
            'title': self.title,
            'content': self.content,
            'links': list(self.links),
            'crawled_at': self.crawled_at.isoformat(),
        }
        if self.description is not None:
            data['description'] = self.description
        if self.raw_html is not None:
            data['raw_html'] = self.raw_html
        if self.metadata:
            data['metadata'] = dict(self.metadata)
        return data

    def to_json(self, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Document':
        """
        Restore a document from to_dict() output.

        Raises:
            ValueError: If the data has no url or a malformed timestamp
        """
        if not isinstance(data, dict) or not data.get('url'):
            raise ValueError("Document data must be a mapping with a url")

        crawled_at = data.get('crawled_at')
        if crawled_at is None:
            timestamp = _utc_now()
        else:
            # fromisoformat() only accepts the "Z" suffix on Python 3.11+
            timestamp = datetime.fromisoformat(str(crawled_at).replace('Z', '+00:00'))
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)

        return cls(
            url=data['url'],
            title=data.get('title') or '',
            description=data.get('description'),
            content=data.get('content') or '',
            links=list(data.get('links') or []),
            crawled_at=timestamp,
            metadata=dict(data.get('metadata') or {}),
            raw_html=data.get('raw_html')
        )

    @classmethod
    def from_json(cls, text: str) -> 'Document':
        return cls.from_dict(json.loads(text))
