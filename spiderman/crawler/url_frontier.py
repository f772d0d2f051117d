"""
URL Frontier implementation for managing URLs to crawl.
Implements admission policy (domain allow-list, page budget) and FIFO dispatch.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, FrozenSet, Iterable, NamedTuple, Optional, Set

from .errors import NonCanonicalURLError
from .url_normalizer import canonicalize_seed, extract_domain, is_canonical


class FrontierStats(NamedTuple):
    """Snapshot of frontier counters."""
    seen: int
    pending: int
    completed: int


@dataclass(frozen=True)
class FrontierPolicy:
    """
    Admission policy, fixed for the life of a crawl.

    Attributes:
        max_pages: Cap on URLs dispatched by next() (None for unlimited)
        allowed_domains: Exact hosts that may be admitted (None for any).
            "www.example.com" and "example.com" are distinct entries.
    """
    max_pages: Optional[int] = None
    allowed_domains: Optional[FrozenSet[str]] = None

    def __post_init__(self):
        if self.max_pages is not None:
            if (isinstance(self.max_pages, bool) or not isinstance(self.max_pages, int)
                    or self.max_pages < 1):
                raise ValueError(f"max_pages must be a positive integer, got {self.max_pages!r}")

        if self.allowed_domains is not None:
            if isinstance(self.allowed_domains, str):
                raise ValueError("allowed_domains must be a collection of hosts, not a string")
            domains = frozenset(
                domain.strip().lower() for domain in self.allowed_domains if domain and domain.strip()
            )
            # An allow-list with no usable hosts means no filter
            object.__setattr__(self, 'allowed_domains', domains or None)

    @classmethod
    def create(cls, max_pages: Optional[int] = None,
               allowed_domains: Optional[Iterable[str]] = None) -> 'FrontierPolicy':
        """Build a policy from config values, which may be any iterable of hosts."""
        return cls(max_pages=max_pages, allowed_domains=allowed_domains)

    def allows_domain(self, host: str) -> bool:
        if self.allowed_domains is None:
            return True
        return host.lower() in self.allowed_domains

    def budget_reached(self, count: int) -> bool:
        return self.max_pages is not None and count >= self.max_pages


class URLFrontier:
    """
    Queue plus visited set governing crawl order and admission.

    Every URL handed to admit() must already be canonical; the frontier only
    checks the form and never re-normalizes. Membership in the seen set is
    permanent, so a URL is dispatched at most once even if its fetch fails
    or is cancelled.

    admit() and next() each run as one critical section, so several workers
    may share one frontier and exactly one of them wins a given URL.
    """

    def __init__(self, seed_url: str, policy: Optional[FrontierPolicy] = None):
        self.policy = policy or FrontierPolicy()
        self.logger = logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._pending: Deque[str] = deque()
        self._seen: Set[str] = set()
        self._completed = 0

        # Refused admissions by reason
        self.rejections: Dict[str, int] = {
            'duplicate': 0,
            'domain': 0,
            'budget': 0
        }

        self.seed_url = canonicalize_seed(seed_url)
        self._pending.append(self.seed_url)
        self._seen.add(self.seed_url)

        self.logger.info(f"Initialized URL frontier with seed {self.seed_url}")
        if self.policy.max_pages is not None:
            self.logger.info(f"Page budget: {self.policy.max_pages}")
        if self.policy.allowed_domains is not None:
            self.logger.info(f"Allowed domains: {sorted(self.policy.allowed_domains)}")

    def admit(self, url: str) -> bool:
        """
        Offer a canonical URL to the frontier.

        Returns True if the URL was appended to the pending queue, False if it
        was already seen, its host is not allowed, or the page budget is
        already committed. A refused URL leaves the frontier untouched.

        Raises:
            NonCanonicalURLError: If url is not in canonical form
        """
        if not is_canonical(url):
            raise NonCanonicalURLError(url)

        host = extract_domain(url)
        if host is None:
            raise NonCanonicalURLError(url)

        with self._lock:
            if url in self._seen:
                return self._reject(url, 'duplicate')

            if not self.policy.allows_domain(host):
                return self._reject(url, 'domain')

            if self.policy.budget_reached(self._completed + len(self._pending)):
                return self._reject(url, 'budget')

            self._seen.add(url)
            self._pending.append(url)

        self.logger.debug(f"Admitted URL to frontier: {url}")
        return True

    def admit_many(self, urls: Iterable[str]) -> int:
        """Admit several URLs in order. Returns count of admitted URLs."""
        return sum(1 for url in urls if self.admit(url))

    def next(self) -> Optional[str]:
        """
        Dispatch the oldest pending URL.

        Returns None when nothing is pending or the page budget has been
        reached. An exhausted budget leaves the pending queue as it is.
        """
        with self._lock:
            if not self._pending:
                return None

            if self.policy.budget_reached(self._completed):
                self.logger.debug(
                    f"Page budget of {self.policy.max_pages} reached, "
                    f"{len(self._pending)} URLs left pending"
                )
                return None

            url = self._pending.popleft()
            self._completed += 1

        self.logger.debug(f"Retrieved URL from frontier: {url}")
        return url

    def has_next(self) -> bool:
        """Check whether next() would return a URL."""
        with self._lock:
            return bool(self._pending) and not self.policy.budget_reached(self._completed)

    def is_seen(self, url: str) -> bool:
        """Check whether a canonical URL has ever been admitted."""
        with self._lock:
            return url in self._seen

    def stats(self) -> FrontierStats:
        """Return (seen, pending, completed) counts."""
        with self._lock:
            return FrontierStats(
                seen=len(self._seen),
                pending=len(self._pending),
                completed=self._completed
            )

    @property
    def seen_count(self) -> int:
        return self.stats().seen

    @property
    def pending_count(self) -> int:
        return self.stats().pending

    @property
    def completed_count(self) -> int:
        return self.stats().completed

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics for reporting."""
        seen, pending, completed = self.stats()
        with self._lock:
            rejections = dict(self.rejections)
        return {
            'seen': seen,
            'pending': pending,
            'completed': completed,
            'rejected_duplicate': rejections['duplicate'],
            'rejected_domain': rejections['domain'],
            'rejected_budget': rejections['budget']
        }

    def _reject(self, url: str, reason: str) -> bool:
        # Caller holds the lock
        self.rejections[reason] += 1
        self.logger.debug(f"Refused URL ({reason}): {url}")
        return False
