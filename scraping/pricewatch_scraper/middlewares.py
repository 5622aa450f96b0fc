"""
Scrapy downloader middlewares.

- RequestHintsMiddleware: per-request politeness hints for the target
  locale (Accept-Language) and the Referer of the listing page a unit was
  found on
- ProxyMiddleware: sets request.meta["proxy"] from PRICEWATCH_PROXY_* env vars

Retries, timeouts, cookies and concurrency are plain Scrapy settings.
"""

from __future__ import annotations

import os
from urllib.parse import urlparse

from pricewatch_scraper.units import unit_of_request

ACCEPT_LANGUAGE = {
    "geizhals.de": "de-DE,de;q=0.9,en-US;q=0.8,en;q=0.7",
    "geizhals.at": "de-AT,de;q=0.9,en-US;q=0.8,en;q=0.7",
    "geizhals.eu": "de-DE,de;q=0.9,en-US;q=0.8,en;q=0.7",
}
DEFAULT_ACCEPT_LANGUAGE = ACCEPT_LANGUAGE["geizhals.de"]


def _build_proxy_url() -> str | None:
    explicit = os.getenv("PRICEWATCH_PROXY")
    if explicit:
        return explicit

    username = os.getenv("PRICEWATCH_PROXY_USERNAME")
    password = os.getenv("PRICEWATCH_PROXY_PASSWORD")
    host = os.getenv("PRICEWATCH_PROXY_HOST")
    port = os.getenv("PRICEWATCH_PROXY_PORT", "8000")

    if username and password and host:
        return f"http://{username}:{password}@{host}:{port}"

    return None


class ProxyMiddleware:
    def __init__(self, proxy_url: str | None):
        self.proxy_url = proxy_url

    @classmethod
    def from_crawler(cls, crawler):
        return cls(crawler.settings.get("PRICEWATCH_PROXY") or _build_proxy_url())

    def process_request(self, request, spider):
        if self.proxy_url:
            request.meta.setdefault("proxy", self.proxy_url)
        return None


class RequestHintsMiddleware:
    def __init__(self, accept_language: dict | None = None):
        self.accept_language = accept_language or ACCEPT_LANGUAGE

    @classmethod
    def from_crawler(cls, crawler):
        return cls(crawler.settings.getdict("PRICEWATCH_ACCEPT_LANGUAGE") or None)

    def _language_for(self, url: str) -> str:
        host = (urlparse(url).hostname or "").lower()
        for domain, value in self.accept_language.items():
            if host == domain or host.endswith("." + domain):
                return value
        return DEFAULT_ACCEPT_LANGUAGE

    def process_request(self, request, spider):
        request.headers.setdefault("Accept-Language", self._language_for(request.url))

        unit = unit_of_request(request)
        if unit is not None and unit.referrer:
            request.headers.setdefault("Referer", unit.referrer)
        return None
