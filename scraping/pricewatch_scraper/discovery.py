"""
Link and pagination discovery on listing pages.

Detail links: a narrow selector scoped to listing-item containers first
(fewer ads and navigation links), then every link on the page filtered by
the product URL shape when the narrow selector found nothing.

Next page, first success wins:
  1. a "next" link inside a pagination container
  2. the current URL with its page parameter set to current + 1
  3. a rel="next" link
"""

from __future__ import annotations

import re
from typing import List, Optional

from pricewatch_scraper.parsing import clean, node_text
from pricewatch_scraper.urls import PAGE_PARAM, is_product_url, normalize, page_param_value, with_page_param

DETAIL_LINK_SELECTORS = [
    ".productlist__item a[href]",
    ".listview__item a[href]",
    ".galleryview__item a[href]",
]

PAGINATION_LINK_SELECTORS = [
    ".gpagenav a",
    ".pagination a",
    'nav[aria-label*="agin"] a',
]

NEXT_PAGE_WORDS = ("nächste", "weiter", "next")
NEXT_PAGE_SYMBOLS = ("»", "›")
LAST_PAGE_WORDS = ("letzte", "last")


def _product_links(response, anchors) -> List[str]:
    out: List[str] = []
    for a in anchors:
        href = a.attrib.get("href")
        if not href or not is_product_url(href):
            continue
        u = normalize(href, response.url)
        if u and u not in out:
            out.append(u)
    return out


def find_detail_links(response) -> List[str]:
    """Candidate product URLs on a listing page, in page order, unique."""
    narrow = response.css(", ".join(DETAIL_LINK_SELECTORS))
    links = _product_links(response, narrow)
    if links:
        return links
    return _product_links(response, response.css("a[href]"))


def looks_like_next(text: Optional[str], title: Optional[str] = None) -> bool:
    """
    True for a "next page" link: a whole next-word or a single trailing
    arrow in its text or title. Links naming the last page never match.
    """
    labels = [(clean(raw) or "").lower() for raw in (text, title)]
    words = {w for s in labels for w in re.findall(r"\w+", s)}
    if words & set(LAST_PAGE_WORDS):
        return False
    if words & set(NEXT_PAGE_WORDS):
        return True
    return any(s.split()[-1] in NEXT_PAGE_SYMBOLS for s in labels if s)


def next_from_pagination_links(response) -> Optional[str]:
    for sel in PAGINATION_LINK_SELECTORS:
        for a in response.css(sel):
            if not looks_like_next(node_text(a), a.attrib.get("title") or a.attrib.get("aria-label")):
                continue
            u = normalize(a.attrib.get("href"), response.url)
            if u:
                return u
    return None


def next_from_page_param(url: str, current_page: int) -> Optional[str]:
    # The parameter may be ahead of our own counter (start URL already on pg=3).
    current = page_param_value(url, PAGE_PARAM) or current_page
    return with_page_param(url, current + 1, PAGE_PARAM)


def next_from_rel(response) -> Optional[str]:
    href = response.css('a[rel="next"]::attr(href), link[rel="next"]::attr(href)').get()
    return normalize(href, response.url)


def find_next_page(response, current_page: int) -> Optional[str]:
    strategies = (
        lambda: next_from_pagination_links(response),
        lambda: next_from_page_param(response.url, current_page),
        lambda: next_from_rel(response),
    )
    for strategy in strategies:
        u = strategy()
        if u and u != response.url:
            return u
    return None
