"""
Shared crawl state.

One CrawlState per spider run holds the budget counters and the dedup set.
Every check-then-act sequence (budget guard, URL admission) is a single
method guarded by a lock, so handlers never read a counter and write it
back in two steps.
"""

from __future__ import annotations

import sys
import threading
from dataclasses import dataclass, field

from pricewatch_scraper.urls import DedupSet

UNBOUNDED = sys.maxsize


@dataclass
class CrawlState:
    results_wanted: int = 100
    max_pages: int = 20
    saved: int = 0
    pages_visited: int = 0
    dropped_invalid: int = 0
    extraction_errors: int = 0
    transport_errors: int = 0
    skipped_late: int = 0
    dedup: DedupSet = field(default_factory=DedupSet)

    def __post_init__(self):
        self._lock = threading.Lock()

    # ---- budget ----

    def remaining(self) -> int:
        with self._lock:
            return max(0, self.results_wanted - self.saved)

    def budget_met(self) -> bool:
        with self._lock:
            return self.saved >= self.results_wanted

    def claim(self, n: int = 1) -> int:
        """
        Compare-and-increment: reserve up to `n` result slots and return
        how many were granted (0 once the budget is met).
        """
        if n <= 0:
            return 0
        with self._lock:
            granted = min(n, max(0, self.results_wanted - self.saved))
            self.saved += granted
            return granted

    def visit_page(self) -> int:
        with self._lock:
            self.pages_visited += 1
            return self.pages_visited

    def count(self, counter: str) -> None:
        # Diagnostic counters only; budget counters go through claim/visit_page.
        if counter not in ("dropped_invalid", "extraction_errors", "transport_errors", "skipped_late"):
            raise KeyError(counter)
        with self._lock:
            setattr(self, counter, getattr(self, counter) + 1)

    # ---- pagination ----

    def may_paginate(self, page_number: int) -> bool:
        with self._lock:
            return self.saved < self.results_wanted and page_number < self.max_pages

    # ---- dedup ----

    def admit(self, url: str) -> bool:
        return self.dedup.admit(url)

    def summary(self) -> dict:
        with self._lock:
            return {
                "products_saved": self.saved,
                "pages_visited": self.pages_visited,
                "target": None if self.results_wanted == UNBOUNDED else self.results_wanted,
                "max_pages": self.max_pages,
                "dropped_invalid": self.dropped_invalid,
                "extraction_errors": self.extraction_errors,
                "transport_errors": self.transport_errors,
                "skipped_late": self.skipped_late,
                "urls_scheduled": len(self.dedup),
            }
