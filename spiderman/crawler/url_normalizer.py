"""
URL validation and canonicalization.

Turns raw hyperlink text found in a document into absolute, canonical URLs.
The canonical string is the frontier's deduplication key, so the rules in
this module decide which URLs the crawler treats as the same page:

- scheme and host are lowercased, the path keeps its case
- default ports (80 for http, 443 for https) are dropped
- fragments and userinfo are removed
- "." and ".." segments are resolved and never escape the root
- the path is "/" when empty and otherwise carries no trailing slash
- percent-encoding is normalized (uppercase hex, unreserved characters
  decoded, unsafe characters encoded as UTF-8)
- the query string is kept and takes part in equality
"""

import logging
import re
from typing import NamedTuple, Optional, Tuple
from urllib.parse import quote, urlsplit

from .errors import InvalidURLError, NonCanonicalURLError


logger = logging.getLogger(__name__)

DEFAULT_PORTS = {
    'http': 80,
    'https': 443,
}
SUPPORTED_SCHEMES = frozenset(DEFAULT_PORTS)

# Schemes that never point at a crawlable document
REJECTED_SCHEMES = frozenset(['javascript', 'mailto', 'tel', 'data'])

_SCHEME_PATTERN = re.compile(r'^([A-Za-z][A-Za-z0-9+.\-]*):')
_TAB_OR_NEWLINE_PATTERN = re.compile(r"[\t\r\n]")
_ESCAPE_PATTERN = re.compile(r'%([0-9A-Fa-f]{2})')
_STRAY_PERCENT_PATTERN = re.compile(r'%(?![0-9A-Fa-f]{2})')
_REG_NAME_PATTERN = re.compile(r"^[a-z0-9\-._~!$&'()*+,;=]+$")
_IPV6_PATTERN = re.compile(r'^\[[0-9a-f:.]+\]$')

_UNRESERVED = frozenset(
    'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~'
)
_PATH_SAFE = "/:@!$&'()*+,;=%"
_QUERY_SAFE = _PATH_SAFE + '?'


class CanonicalURL(NamedTuple):
    """Structured form of a canonical URL."""
    scheme: str
    host: str
    port: Optional[int]
    path: str
    query: str = ''

    @property
    def authority(self) -> str:
        if self.port is None:
            return self.host
        return f"{self.host}:{self.port}"

    def geturl(self) -> str:
        """Render the canonical string used as the deduplication key."""
        url = f"{self.scheme}://{self.authority}{self.path}"
        if self.query:
            url = f"{url}?{self.query}"
        return url

    def __str__(self) -> str:
        return self.geturl()


def validate(link_text: Optional[str]) -> bool:
    """
    Check whether link text can point at a crawlable document.

    Rejects empty or whitespace-only text, fragment-only references and the
    javascript:, mailto:, tel: and data: schemes (case-insensitive). Anything
    else is provisionally valid and still has to survive resolve().
    """
    if not link_text:
        return False

    text = _strip_tabs_and_newlines(link_text).strip()
    if not text or text.startswith('#'):
        return False

    match = _SCHEME_PATTERN.match(text)
    if match and match.group(1).lower() in REJECTED_SCHEMES:
        return False

    return True


def resolve(link_text: Optional[str], base_url: str) -> Optional[str]:
    """
    Resolve link text against the URL of the document it was found in.

    Args:
        link_text: Raw hyperlink target as written in the markup
        base_url: Absolute URL of the containing document

    Returns:
        The canonical absolute URL, or None if the link is rejected
    """
    parts = resolve_parts(link_text, base_url)
    if parts is None:
        return None
    return parts.geturl()


def resolve_parts(link_text: Optional[str], base_url: str) -> Optional[CanonicalURL]:
    """Same as resolve() but returns the structured CanonicalURL."""
    if not validate(link_text):
        return None

    absolute = _absolutize(_strip_tabs_and_newlines(link_text).strip(), base_url)
    if absolute is None:
        return None

    return _canonical_parts(absolute)


def canonicalize(url: str) -> Optional[str]:
    """Canonicalize an absolute URL, using the URL as its own base."""
    return resolve(url, url)


def is_canonical(url) -> bool:
    """Return True if url is already in canonical form."""
    return isinstance(url, str) and canonicalize(url) == url


def canonicalize_seed(seed_url: str) -> str:
    """
    Canonicalize a crawl seed, defaulting the scheme to http.

    Raises:
        InvalidURLError: If the seed cannot be canonicalized
    """
    text = (seed_url or '').strip()
    if not text:
        raise InvalidURLError(seed_url, "seed URL is empty")

    if '://' not in text:
        text = f"http://{text.lstrip('/')}"

    canonical = canonicalize(text)
    if canonical is None:
        raise InvalidURLError(seed_url)

    logger.debug(f"Canonicalized seed {seed_url!r} -> {canonical}")
    return canonical


def parse_canonical(url: str) -> CanonicalURL:
    """
    Split an already-canonical URL into its components.

    Raises:
        NonCanonicalURLError: If url is not in canonical form
    """
    parts = resolve_parts(url, url) if isinstance(url, str) else None
    if parts is None or parts.geturl() != url:
        raise NonCanonicalURLError(url)
    return parts


def extract_domain(url: Optional[str]) -> Optional[str]:
    """
    Extract the host component of an absolute URL.

    The host is the authority up to the optional port marker, with any
    userinfo removed. IPv6 literals keep their brackets.

    Returns:
        The lowercased host, or None for a malformed URL
    """
    if not url:
        return None

    _, separator, rest = url.partition('://')
    if not separator:
        return None

    authority = re.split(r'[/?#]', rest, maxsplit=1)[0]
    hostport = authority.rpartition('@')[2]

    if hostport.startswith('['):
        end = hostport.find(']')
        if end == -1:
            return None
        host = hostport[:end + 1]
    else:
        host = hostport.partition(':')[0]

    return host.lower() or None


def _absolutize(text: str, base_url: str) -> Optional[str]:
    """Turn a reference into an absolute URL string (not yet canonical)."""
    match = _SCHEME_PATTERN.match(text)
    if match and text[match.end():].startswith('//'):
        return text

    # Anything without "<scheme>://" is relative, including "page:1" and
    # "localhost:8080/p".
    base = _split_base(base_url)
    if base is None:
        return None
    scheme, authority, base_path = base

    if text.startswith('//'):
        return f"{scheme}:{text}"

    if text.startswith('/'):
        return f"{scheme}://{authority}{text}"

    if text.startswith('?'):
        return f"{scheme}://{authority}{base_path}{text}"

    directory = base_path[:base_path.rfind('/') + 1] or '/'
    return f"{scheme}://{authority}{directory}{text}"


def _split_base(base_url: str) -> Optional[Tuple[str, str, str]]:
    """Split a base URL into (scheme, authority, path)."""
    if not base_url:
        return None

    try:
        parsed = urlsplit(base_url.strip())
    except ValueError:
        return None

    if not parsed.scheme or not parsed.netloc:
        return None

    return parsed.scheme.lower(), parsed.netloc, parsed.path or '/'


def _canonical_parts(absolute: str) -> Optional[CanonicalURL]:
    try:
        parsed = urlsplit(absolute)
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        return None

    host_and_port = _parse_authority(parsed.netloc, scheme)
    if host_and_port is None:
        return None
    host, port = host_and_port

    path = _remove_dot_segments(_normalize_escapes(parsed.path, _PATH_SAFE))
    # Stripping every trailing slash keeps canonicalization idempotent for
    # paths such as "/a//".
    path = path.rstrip('/') or '/'

    query = _normalize_escapes(parsed.query, _QUERY_SAFE)

    return CanonicalURL(scheme=scheme, host=host, port=port, path=path, query=query)


def _parse_authority(netloc: str, scheme: str) -> Optional[Tuple[str, Optional[int]]]:
    """Return (host, port) with userinfo and the default port removed."""
    hostport = netloc.rpartition('@')[2]

    if hostport.startswith('['):
        end = hostport.find(']')
        if end == -1:
            return None
        host = hostport[:end + 1].lower()
        rest = hostport[end + 1:]
        if rest and not rest.startswith(':'):
            return None
        port_text = rest[1:]
        if not _IPV6_PATTERN.match(host):
            return None
    else:
        host, _, port_text = hostport.partition(':')
        host = host.lower()
        if host.endswith('.'):
            host = host[:-1]
            if host.endswith('.'):
                return None
        if not host.isascii():
            try:
                host = host.encode('idna').decode('ascii')
            except UnicodeError:
                return None
        if not host or not _REG_NAME_PATTERN.match(host):
            return None

    port = None
    if port_text:
        if not (port_text.isascii() and port_text.isdigit()):
            return None
        port = int(port_text)
        if port > 65535:
            return None
        if port == DEFAULT_PORTS[scheme]:
            port = None

    return host, port


def _normalize_escapes(component: str, safe: str) -> str:
    """Give a path or query one consistent percent-encoding."""
    if not component:
        return ''

    component = _STRAY_PERCENT_PATTERN.sub('%25', component)

    def _fix_escape(match):
        char = chr(int(match.group(1), 16))
        if char in _UNRESERVED:
            return char
        return '%' + match.group(1).upper()

    component = _ESCAPE_PATTERN.sub(_fix_escape, component)
    return quote(component, safe=safe)


def _remove_dot_segments(path: str) -> str:
    """
    Resolve "." and ".." segments with an output stack.

    ".." pops the previous segment when there is one and is dropped
    otherwise, so the result never climbs above the root.
    """
    if not path:
        return '/'

    output = []
    for segment in path.split('/')[1:]:
        if segment == '.':
            continue
        if segment == '..':
            if output:
                output.pop()
            continue
        output.append(segment)

    return '/' + '/'.join(output)


def _strip_tabs_and_newlines(text: str) -> str:
    """Drop ASCII tab and newline characters the way browsers do."""
    return _TAB_OR_NEWLINE_PATTERN.sub('', text)
