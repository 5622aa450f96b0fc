"""
URL helpers.

Responsibilities:
- Resolve (possibly relative) links against the page they were found on
- Track which absolute URLs were already scheduled in this run
- Recognize product URLs and read their numeric product id
- Synthesize listing URLs for a given page number
"""

from __future__ import annotations

import re
import threading
from urllib.parse import parse_qsl, urldefrag, urlencode, urljoin, urlparse, urlunparse

# Geizhals product pages look like /some-product-name-a1234567.html
PRODUCT_URL_RX = re.compile(r"-a(\d+)\.html?", re.IGNORECASE)

PAGE_PARAM = "pg"

_SKIP_SCHEMES = ("javascript:", "mailto:", "tel:", "data:")


def normalize(href, base_url) -> str | None:
    """
    Absolute URL for `href` as seen from `base_url`, or None when the
    reference cannot be resolved into an http(s) URL. Never raises.
    """
    if not href or not isinstance(href, str):
        return None
    href = href.strip()
    if not href or href.startswith("#") or href.lower().startswith(_SKIP_SCHEMES):
        return None
    try:
        absolute = urljoin(base_url or "", href)
        absolute, _frag = urldefrag(absolute)
        u = urlparse(absolute)
        # Accessing .port validates the netloc (raises on "host:99999" etc.)
        u.port
    except (ValueError, TypeError):
        return None
    if u.scheme not in ("http", "https") or not u.hostname:
        return None
    if re.search(r"\s", u.netloc):
        return None
    return absolute


class DedupSet:
    """
    Absolute URLs already enqueued in this run. Grows monotonically.

    `admit` is a check-and-insert under one lock, so two handlers can never
    both schedule the same URL.
    """

    def __init__(self, urls=None):
        self._urls: set[str] = set(urls or ())
        self._lock = threading.Lock()

    def admit(self, url: str) -> bool:
        if not url:
            return False
        with self._lock:
            if url in self._urls:
                return False
            self._urls.add(url)
            return True

    def seen(self, url: str) -> bool:
        with self._lock:
            return url in self._urls

    def __contains__(self, url) -> bool:
        return self.seen(url)

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)


def is_product_url(url: str | None) -> bool:
    if not url:
        return False
    return bool(PRODUCT_URL_RX.search(urlparse(url).path))


def product_id_from_url(url: str | None) -> str | None:
    # The numeric token is the stable Geizhals article id.
    if not url:
        return None
    m = PRODUCT_URL_RX.search(urlparse(url).path)
    return m.group(1) if m else None


def page_param_value(url: str, param: str = PAGE_PARAM) -> int | None:
    for k, v in parse_qsl(urlparse(url).query, keep_blank_values=True):
        if k == param:
            try:
                return int(v)
            except ValueError:
                return None
    return None


def with_page_param(url: str, page: int, param: str = PAGE_PARAM) -> str:
    """
    Replace the page-number query parameter, or append it when missing.
    Other query parameters keep their order.
    """
    u = urlparse(url)
    q = parse_qsl(u.query, keep_blank_values=True)
    replaced = False
    q2 = []
    for k, v in q:
        if k == param:
            if replaced:
                continue
            q2.append((k, str(page)))
            replaced = True
        else:
            q2.append((k, v))
    if not replaced:
        q2.append((param, str(page)))
    return urlunparse((u.scheme, u.netloc, u.path or "/", u.params, urlencode(q2), ""))
