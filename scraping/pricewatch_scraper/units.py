"""
Crawl units and the page classifier.

Every request carries its role (LIST or DETAIL), listing page number and
referrer in `Request.meta`. The classifier reads that routing metadata back
when the response arrives; it never guesses from the markup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import scrapy

LIST = "LIST"
DETAIL = "DETAIL"
ROLES = (LIST, DETAIL)

META_KEY = "crawl_unit"


@dataclass(frozen=True)
class CrawlUnit:
    url: str
    role: str = LIST
    page_number: int = 1
    referrer: Optional[str] = None

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"unknown crawl unit role: {self.role!r}")
        if self.page_number < 1:
            raise ValueError("page_number must be >= 1")

    @property
    def is_list(self) -> bool:
        return self.role == LIST

    def next_page(self, url: str) -> "CrawlUnit":
        return CrawlUnit(url=url, role=LIST, page_number=self.page_number + 1, referrer=self.url)

    def detail(self, url: str) -> "CrawlUnit":
        return CrawlUnit(url=url, role=DETAIL, page_number=self.page_number, referrer=self.url)

    def to_request(self, callback, errback=None, **kwargs) -> scrapy.Request:
        meta = dict(kwargs.pop("meta", None) or {})
        meta[META_KEY] = self
        return scrapy.Request(self.url, callback=callback, errback=errback, meta=meta, **kwargs)


def classify(response) -> CrawlUnit:
    """
    CrawlUnit for a response. Responses without routing metadata (e.g. a
    start URL handed to Scrapy directly) are treated as listing page 1.
    """
    try:
        unit = response.meta.get(META_KEY)
    except AttributeError:
        # response not tied to a request
        unit = None
    if isinstance(unit, CrawlUnit):
        return unit
    return CrawlUnit(url=response.url, role=LIST, page_number=1)


def unit_of_request(request) -> CrawlUnit | None:
    unit = request.meta.get(META_KEY) if request is not None else None
    return unit if isinstance(unit, CrawlUnit) else None
