"""
Product spider (Geizhals price comparison).

Responsibilities:
- Start from category / search listing pages (built from spider arguments
  or given directly) and follow pagination up to `max_pages` per branch
- Visit each product detail page once, merge its JSON-LD and DOM fields
  into one ProductItem and emit it while the result budget lasts
- In listing-only mode (collect_details=false) emit lightweight records
  straight from the listing rows
- Never let one page's failure stop the run: extraction errors, invalid
  records and failed requests are logged and counted

Run:
  scrapy crawl geizhals_products -a category=hvent -a results_wanted=50
  scrapy crawl geizhals_products -a search_query="rtx 4070" -a country=de -a collect_details=false
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import scrapy

from pricewatch_scraper.config import CrawlOptions
from pricewatch_scraper.discovery import find_detail_links, find_next_page
from pricewatch_scraper.extractors import extract_dom, extract_listing_item, listing_item_nodes
from pricewatch_scraper.merge import build_listing_record, merge_product, validate_record
from pricewatch_scraper.state import CrawlState
from pricewatch_scraper.structured import extract_structured
from pricewatch_scraper.units import LIST, CrawlUnit, classify, unit_of_request


class GeizhalsProductsSpider(scrapy.Spider):
    name = "geizhals_products"
    allowed_domains = ["geizhals.eu", "geizhals.de", "geizhals.at"]

    custom_settings = {
        "CONCURRENT_REQUESTS": 5,
        "RETRY_TIMES": 5,
        "DOWNLOAD_TIMEOUT": 90,
        "COOKIES_ENABLED": True,
    }

    crawler_version = "geizhals_products/1.0"

    def __init__(self, *args, **kwargs):
        self.options = CrawlOptions.from_spider_kwargs(kwargs)
        # Scrapy copies kwargs onto the spider; start URLs are resolved above.
        for key in ("start_urls", "start_url", "url"):
            kwargs.pop(key, None)
        super().__init__(*args, **kwargs)

        self.start_urls = list(self.options.start_urls)
        self.state = CrawlState(
            results_wanted=self.options.results_wanted,
            max_pages=self.options.max_pages,
        )
        self.scrape_run_id = str(uuid.uuid4())
        self.started_at = datetime.now(timezone.utc).isoformat()

        self.logger.info("START run=%s options=%s", self.scrape_run_id, self.options.to_dict())

    def start_requests(self):
        for url in self.start_urls:
            if not self.state.admit(url):
                continue
            unit = CrawlUnit(url=url, role=LIST, page_number=1)
            yield unit.to_request(self.parse, errback=self.on_request_error)

    # -------------------------
    # dispatch
    # -------------------------

    def parse(self, response):
        unit = classify(response)
        self.logger.debug("PROCESS role=%s page=%s url=%s", unit.role, unit.page_number, response.url)
        if unit.is_list:
            yield from self.parse_listing(response, unit)
        else:
            yield from self.parse_detail(response, unit)

    # -------------------------
    # LIST
    # -------------------------

    def parse_listing(self, response, unit: CrawlUnit):
        self.state.visit_page()

        links = find_detail_links(response)
        new_links = [u for u in links if not self.state.dedup.seen(u)]
        self.logger.info(
            "LISTING page=%s found=%s new=%s saved=%s/%s url=%s",
            unit.page_number, len(links), len(new_links),
            self.state.saved, self.state.results_wanted, response.url,
        )

        if not new_links:
            self.logger.warning("NO PRODUCT LINKS page=%s url=%s (selectors may need adjustment)", unit.page_number, response.url)
            self.logger.debug("page title=%r", response.css("title::text").get())

        if self.options.collect_details:
            yield from self.enqueue_details(unit, new_links)
        else:
            yield from self.emit_listing_records(response, unit)

        # Pagination only after this page's own work has been scheduled.
        if not new_links:
            self.logger.info("PAGINATION END page=%s (empty page)", unit.page_number)
            return
        if not self.state.may_paginate(unit.page_number):
            if self.state.budget_met():
                self.logger.info("TARGET REACHED %s/%s", self.state.saved, self.state.results_wanted)
            else:
                self.logger.info("MAX PAGES reached %s/%s", unit.page_number, self.state.max_pages)
            return

        next_url = find_next_page(response, unit.page_number)
        if next_url and self.state.admit(next_url):
            self.logger.info("NEXT PAGE page=%s url=%s", unit.page_number + 1, next_url)
            yield unit.next_page(next_url).to_request(self.parse, errback=self.on_request_error)
        else:
            self.logger.info("PAGINATION COMPLETE page=%s (no further page)", unit.page_number)

    def enqueue_details(self, unit: CrawlUnit, links):
        remaining = self.state.remaining()
        enqueued = 0
        for url in links:
            if enqueued >= remaining:
                break
            if not self.state.admit(url):
                continue
            enqueued += 1
            yield unit.detail(url).to_request(self.parse, errback=self.on_request_error)
        if enqueued:
            self.logger.info("ENQUEUED %s detail pages from page=%s", enqueued, unit.page_number)

    def emit_listing_records(self, response, unit: CrawlUnit):
        emitted = 0
        for node in listing_item_nodes(response):
            if self.state.budget_met():
                break
            try:
                row = extract_listing_item(node, response.url)
            except Exception as exc:
                self.state.count("extraction_errors")
                self.logger.debug("listing row failed url=%s err=%r", response.url, exc)
                continue
            if not row or not row.get("name"):
                continue

            item = build_listing_record(row, referrer=response.url, page_number=unit.page_number)
            if not validate_record(item):
                self.state.count("dropped_invalid")
                continue
            # a rejected row must not use up its URL
            if not self.state.admit(row["url"]):
                continue
            if not self.state.claim(1):
                break
            emitted += 1
            yield item

        if emitted:
            self.logger.info("SAVED %s products from listing page=%s (total %s)", emitted, unit.page_number, self.state.saved)

    # -------------------------
    # DETAIL
    # -------------------------

    def parse_detail(self, response, unit: CrawlUnit):
        if self.state.budget_met():
            self.state.count("skipped_late")
            self.logger.debug("SKIP DETAIL target reached url=%s", response.url)
            return

        try:
            item = merge_product(
                extract_structured(response),
                extract_dom(response),
                response.url,
                referrer=unit.referrer,
                page_number=unit.page_number,
            )
        except Exception:
            self.state.count("extraction_errors")
            self.logger.exception("DETAIL extraction failed url=%s", response.url)
            return

        if not validate_record(item):
            self.state.count("dropped_invalid")
            self.logger.warning("INVALID product data url=%s", response.url)
            return

        if not self.state.claim(1):
            self.state.count("skipped_late")
            return

        self.logger.info("SAVED %s (%s/%s)", item["name"], self.state.saved, self.state.results_wanted)
        yield item

    # -------------------------
    # failures / shutdown
    # -------------------------

    def on_request_error(self, failure):
        request = getattr(failure, "request", None)
        unit = unit_of_request(request)
        self.state.count("transport_errors")
        self.logger.error(
            "REQUEST FAILED url=%s role=%s err=%s",
            getattr(request, "url", None),
            unit.role if unit else None,
            failure.getErrorMessage(),
        )

    def closed(self, reason):
        summary = self.state.summary()
        self.logger.info("FINISHED reason=%s run=%s summary=%s", reason, self.scrape_run_id, summary)
        if summary["products_saved"] == 0:
            self.logger.error("No products were scraped! This may indicate:")
            self.logger.error("  1. Selectors need updating (website structure changed)")
            self.logger.error("  2. Proxy issues or IP blocking")
            self.logger.error("  3. Category code is invalid")
            self.logger.error("  4. Network/connectivity problems")
