"""
Web crawler core components.
"""

from .errors import FrontierError, InvalidURLError, NonCanonicalURLError
from .url_normalizer import (
    CanonicalURL, validate, resolve, canonicalize, canonicalize_seed,
    is_canonical, parse_canonical, extract_domain
)
from .url_frontier import URLFrontier, FrontierPolicy, FrontierStats
from .parser import ContentParser, ParsedPage, extract_links
from .html_to_markdown import html_to_markdown
from .document import Document
from .fetcher import WebFetcher, FetchResult

__all__ = [
    'FrontierError', 'InvalidURLError', 'NonCanonicalURLError',
    'CanonicalURL', 'validate', 'resolve', 'canonicalize', 'canonicalize_seed',
    'is_canonical', 'parse_canonical', 'extract_domain',
    'URLFrontier', 'FrontierPolicy', 'FrontierStats',
    'ContentParser', 'ParsedPage', 'extract_links', 'html_to_markdown', 'Document',
    'WebFetcher', 'FetchResult'
]
