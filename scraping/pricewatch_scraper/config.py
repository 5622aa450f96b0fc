"""
Crawl options.

Spider arguments arrive as strings (`scrapy crawl geizhals_products -a
results_wanted=50`) or as Python values (`process.crawl(Spider,
results_wanted=50)`). They are parsed once here into a CrawlOptions.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, List, Optional
from urllib.parse import urlencode

from pricewatch_scraper.state import UNBOUNDED
from pricewatch_scraper.urls import normalize

DEFAULT_CATEGORY = "hvent"
DEFAULT_RESULTS_WANTED = 100
DEFAULT_MAX_PAGES = 20

COUNTRY_DOMAINS = {
    "eu": "geizhals.eu",
    "de": "geizhals.de",
    "at": "geizhals.at",
}

_TRUE = {"1", "true", "yes", "on", "y"}
_FALSE = {"0", "false", "no", "off", "n", ""}


class ConfigurationError(ValueError):
    """Raised before crawling when the options leave nothing to crawl."""


def parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ConfigurationError(f"not a boolean: {value!r}")


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(str(value).strip())
    except ValueError:
        return None
    return n if math.isfinite(n) else None


def parse_results_wanted(value: Any) -> int:
    # Non-finite or unparsable means "no limit"; anything else is at least 1.
    if value is None:
        return DEFAULT_RESULTS_WANTED
    n = _as_number(value)
    if n is None:
        return UNBOUNDED
    return max(1, int(n))


def parse_max_pages(value: Any) -> int:
    if value is None:
        return DEFAULT_MAX_PAGES
    n = _as_number(value)
    if n is None:
        return DEFAULT_MAX_PAGES
    return max(1, int(n))


def _split_urls(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [u.strip() for u in value.split(",") if u.strip()]
    out = []
    for v in value:
        # Apify-style {"url": "..."} entries are accepted as well
        if isinstance(v, dict):
            v = v.get("url")
        if v and str(v).strip():
            out.append(str(v).strip())
    return out


def build_start_url(
    category: Optional[str],
    query: Optional[str],
    min_price: Any = None,
    max_price: Any = None,
    country: str = "eu",
) -> str:
    """
    Listing URL for a category and/or free-text search, optionally narrowed
    to a price range (plz/plh are Geizhals' lower/upper price filters).
    """
    domain = COUNTRY_DOMAINS.get((country or "eu").strip().lower(), COUNTRY_DOMAINS["eu"])
    params = []
    if category and str(category).strip():
        params.append(("cat", str(category).strip()))
    if query and str(query).strip():
        params.append(("fs", str(query).strip()))
    if min_price not in (None, ""):
        params.append(("v", "e"))
        params.append(("plz", str(min_price).strip()))
    if max_price not in (None, ""):
        params.append(("plh", str(max_price).strip()))
    url = f"https://{domain}/"
    if params:
        url += "?" + urlencode(params)
    return url


@dataclass
class CrawlOptions:
    category: str = DEFAULT_CATEGORY
    search_query: str = ""
    min_price: Optional[str] = None
    max_price: Optional[str] = None
    country: str = "eu"
    results_wanted: int = DEFAULT_RESULTS_WANTED
    max_pages: int = DEFAULT_MAX_PAGES
    collect_details: bool = True
    start_urls: List[str] = field(default_factory=list)

    @classmethod
    def from_spider_kwargs(cls, kwargs: dict) -> "CrawlOptions":
        country = str(kwargs.get("country") or "eu").strip().lower()
        if country not in COUNTRY_DOMAINS:
            raise ConfigurationError(f"unknown country {country!r}; expected one of {sorted(COUNTRY_DOMAINS)}")

        explicit = []
        explicit.extend(_split_urls(kwargs.get("start_urls")))
        explicit.extend(_split_urls(kwargs.get("start_url")))
        explicit.extend(_split_urls(kwargs.get("url")))

        opts = cls(
            category=str(kwargs.get("category", DEFAULT_CATEGORY) or "").strip(),
            search_query=str(kwargs.get("search_query") or kwargs.get("searchQuery") or "").strip(),
            min_price=kwargs.get("min_price"),
            max_price=kwargs.get("max_price"),
            country=country,
            results_wanted=parse_results_wanted(kwargs.get("results_wanted")),
            max_pages=parse_max_pages(kwargs.get("max_pages")),
            collect_details=parse_bool(kwargs.get("collect_details"), True),
        )
        opts.start_urls = opts.resolve_start_urls(explicit)
        return opts

    def resolve_start_urls(self, explicit: List[str]) -> List[str]:
        base = f"https://{COUNTRY_DOMAINS[self.country]}/"
        if explicit:
            candidates = explicit
        else:
            candidates = [
                build_start_url(self.category, self.search_query, self.min_price, self.max_price, self.country)
            ]

        urls = []
        for raw in candidates:
            u = normalize(raw, base)
            if u and u not in urls:
                urls.append(u)
        if not urls:
            raise ConfigurationError(f"no usable start URL in {candidates!r}")
        return urls

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "search_query": self.search_query,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "country": self.country,
            "results_wanted": None if self.results_wanted == UNBOUNDED else self.results_wanted,
            "max_pages": self.max_pages,
            "collect_details": self.collect_details,
            "start_urls": list(self.start_urls),
        }
