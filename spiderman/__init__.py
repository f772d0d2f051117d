"""
Spiderman

A single-process web crawl frontier: URL canonicalization, link discovery,
and exactly-once FIFO admission and dispatch.
"""

__version__ = "1.0.0"
__description__ = "Web crawl frontier with canonical URL deduplication"
