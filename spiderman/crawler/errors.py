"""
Exceptions raised by the crawl frontier.

Rejected links and refused admissions are normal outcomes and never raise.
Only values that break the frontier's canonical-form contract end up here.
"""


class FrontierError(Exception):
    """Base exception for frontier and URL algebra failures."""
    pass


class InvalidURLError(FrontierError, ValueError):
    """Raised when a seed URL cannot be turned into a canonical URL."""

    def __init__(self, url: str, reason: str = "cannot be canonicalized"):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL {url!r}: {reason}")


class NonCanonicalURLError(FrontierError, ValueError):
    """Raised when a value that must already be canonical is not."""

    def __init__(self, url):
        self.url = url
        super().__init__(f"URL is not in canonical form: {url!r}")
