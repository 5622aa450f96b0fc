"""Shared helpers: build Scrapy responses from inline HTML."""

from __future__ import annotations

import html
import json

import pytest
import scrapy
from scrapy.http import HtmlResponse

from pricewatch_scraper.units import META_KEY, CrawlUnit

BASE = "https://geizhals.eu/"


def make_response(url: str, body: str, unit: CrawlUnit | None = None) -> HtmlResponse:
    meta = {META_KEY: unit} if unit is not None else {}
    request = scrapy.Request(url, meta=meta)
    return HtmlResponse(url=url, body=body.encode("utf-8"), encoding="utf-8", request=request)


def jsonld(obj) -> str:
    return f'<script type="application/ld+json">{json.dumps(obj)}</script>'


def listing_html(hrefs, next_href=None, extra="") -> str:
    items = "".join(
        f'<div class="productlist__item"><a href="{html.escape(h)}">Product {i} name</a>'
        f'<span class="gh_price">€ {i + 10},99</span></div>'
        for i, h in enumerate(hrefs)
    )
    nav = ""
    if next_href:
        nav = f'<div class="gpagenav"><a href="{html.escape(next_href)}" title="nächste Seite">»</a></div>'
    return f"<html><head><title>Listing</title></head><body>{items}{nav}{extra}</body></html>"


@pytest.fixture
def response_factory():
    return make_response
