import scrapy
from twisted.python.failure import Failure

from pricewatch_scraper.config import ConfigurationError
from pricewatch_scraper.items import ProductItem
from pricewatch_scraper.spiders.geizhals_products import GeizhalsProductsSpider
from pricewatch_scraper.units import DETAIL, LIST, META_KEY, CrawlUnit
from tests.conftest import jsonld, listing_html, make_response

import pytest

LIST_URL = "https://geizhals.eu/?cat=hvent"


def split(results):
    requests = [r for r in results if isinstance(r, scrapy.Request)]
    items = [r for r in results if isinstance(r, ProductItem)]
    return requests, items


def list_unit(page=1, url=LIST_URL):
    return CrawlUnit(url=url, role=LIST, page_number=page)


def detail_response(url, body, referrer=LIST_URL):
    return make_response(url, body, CrawlUnit(url=url, role=DETAIL, page_number=1, referrer=referrer))


def detail_body(name):
    return "<html><head>" + jsonld(
        {"@type": "Product", "name": name, "offers": {"@type": "Offer", "price": "99.00", "priceCurrency": "EUR"}}
    ) + "</head><body></body></html>"


def test_start_requests_are_list_units():
    spider = GeizhalsProductsSpider(category="hvent", search_query="wifi 7")
    requests = list(spider.start_requests())
    assert len(requests) == 1
    unit = requests[0].meta[META_KEY]
    assert unit.role == LIST and unit.page_number == 1
    assert requests[0].url == "https://geizhals.eu/?cat=hvent&fs=wifi+7"


def test_configuration_error_before_crawling():
    with pytest.raises(ConfigurationError):
        GeizhalsProductsSpider(start_url="mailto:nobody@example.com")


def test_list_page_enqueues_only_remaining_budget():
    spider = GeizhalsProductsSpider(results_wanted=2)
    html = listing_html(["/a-a1.html", "/b-a2.html", "/c-a3.html"])
    requests, items = split(list(spider.parse(make_response(LIST_URL, html, list_unit()))))

    details = [r for r in requests if r.meta[META_KEY].role == DETAIL]
    lists = [r for r in requests if r.meta[META_KEY].role == LIST]
    assert [r.url for r in details] == ["https://geizhals.eu/a-a1.html", "https://geizhals.eu/b-a2.html"]
    assert all(r.meta[META_KEY].referrer == LIST_URL for r in details)
    assert items == []
    assert len(lists) == 1
    assert lists[0].meta[META_KEY].page_number == 2
    assert lists[0].url == "https://geizhals.eu/?cat=hvent&pg=2"
    assert spider.state.pages_visited == 1


def test_detail_urls_are_visited_once_across_list_pages():
    spider = GeizhalsProductsSpider(results_wanted=10)
    first = list(spider.parse(make_response(LIST_URL, listing_html(["/a-a1.html", "/b-a2.html"]), list_unit())))
    page2 = "https://geizhals.eu/?cat=hvent&pg=2"
    second = list(spider.parse(make_response(page2, listing_html(["/b-a2.html", "/c-a3.html"]), list_unit(2, page2))))

    detail_urls = [r.url for r in first + second if r.meta[META_KEY].role == DETAIL]
    assert detail_urls == [
        "https://geizhals.eu/a-a1.html",
        "https://geizhals.eu/b-a2.html",
        "https://geizhals.eu/c-a3.html",
    ]


def test_empty_list_page_stops_pagination():
    spider = GeizhalsProductsSpider(results_wanted=10, max_pages=20)
    html = listing_html([], next_href="/?cat=hvent&pg=2")
    requests, items = split(list(spider.parse(make_response(LIST_URL, html, list_unit()))))
    assert requests == []
    assert items == []
    assert spider.state.pages_visited == 1


def test_page_ceiling_stops_pagination():
    spider = GeizhalsProductsSpider(results_wanted=10, max_pages=3)
    url = "https://geizhals.eu/?cat=hvent&pg=3"
    requests, _ = split(list(spider.parse(make_response(url, listing_html(["/a-a1.html"]), list_unit(3, url)))))
    assert [r.meta[META_KEY].role for r in requests] == [DETAIL]


def test_detail_page_emits_one_record():
    spider = GeizhalsProductsSpider(results_wanted=5)
    url = "https://geizhals.eu/router-a42.html"
    _, items = split(list(spider.parse(detail_response(url, detail_body("Router 42")))))
    assert len(items) == 1
    item = items[0]
    assert item["name"] == "Router 42"
    assert item["product_id"] == "42"
    assert item["price"] == 99.0
    assert item["referrer"] == LIST_URL
    assert spider.state.saved == 1


def test_detail_without_any_name_emits_nothing_and_run_continues():
    spider = GeizhalsProductsSpider(results_wanted=5)
    bad = detail_response("https://geizhals.eu/x-a1.html", "<html><body><p>Access denied</p></body></html>")
    assert list(spider.parse(bad)) == []
    assert spider.state.dropped_invalid == 1

    good = detail_response("https://geizhals.eu/y-a2.html", detail_body("Good product"))
    _, items = split(list(spider.parse(good)))
    assert len(items) == 1


def test_extraction_error_is_contained(monkeypatch):
    spider = GeizhalsProductsSpider(results_wanted=5)

    def boom(response):
        raise RuntimeError("unexpected markup")

    monkeypatch.setattr("pricewatch_scraper.spiders.geizhals_products.extract_dom", boom)
    assert list(spider.parse(detail_response("https://geizhals.eu/x-a1.html", detail_body("Name")))) == []
    assert spider.state.extraction_errors == 1


def test_budget_is_never_exceeded_by_late_details():
    spider = GeizhalsProductsSpider(results_wanted=2)
    emitted = []
    for i in range(5):
        url = f"https://geizhals.eu/p-a{i}.html"
        _, items = split(list(spider.parse(detail_response(url, detail_body(f"Product {i}")))))
        emitted.extend(items)
    assert len(emitted) == 2
    assert spider.state.saved == 2
    assert spider.state.skipped_late == 3


def test_listing_mode_emits_records_up_to_budget():
    spider = GeizhalsProductsSpider(results_wanted=2, collect_details="false")
    html = listing_html(["/a-a1.html", "/b-a2.html", "/c-a3.html"])
    requests, items = split(list(spider.parse(make_response(LIST_URL, html, list_unit()))))
    assert [i["product_id"] for i in items] == ["1", "2"]
    assert all(i["scraped_from"] == "listing" for i in items)
    assert items[0]["price"] == 10.99
    # budget met: no detail requests and no next page
    assert requests == []


def test_listing_mode_paginates_while_budget_remains():
    spider = GeizhalsProductsSpider(results_wanted=10, collect_details=False)
    html = listing_html(["/a-a1.html"], next_href="/?cat=hvent&pg=2")
    requests, items = split(list(spider.parse(make_response(LIST_URL, html, list_unit()))))
    assert len(items) == 1
    assert [r.url for r in requests] == ["https://geizhals.eu/?cat=hvent&pg=2"]


def test_transport_failure_is_logged_and_counted():
    spider = GeizhalsProductsSpider()
    request = CrawlUnit(url="https://geizhals.eu/x-a1.html", role=DETAIL).to_request(spider.parse)
    failure = Failure(IOError("connection refused"))
    failure.request = request
    spider.on_request_error(failure)
    assert spider.state.transport_errors == 1


def test_closed_reports_summary():
    spider = GeizhalsProductsSpider()
    spider.closed("finished")
    assert spider.state.summary()["products_saved"] == 0


def test_listing_row_with_short_name_keeps_its_url_available():
    spider = GeizhalsProductsSpider(results_wanted=5, collect_details=False)
    html = (
        '<html><body><div class="productlist__item"><a href="/x-a7.html">Ab</a>'
        '<span class="gh_price">€ 5,00</span></div></body></html>'
    )
    _, items = split(list(spider.parse(make_response(LIST_URL, html, list_unit()))))
    assert items == []
    assert spider.state.dropped_invalid == 1
    assert not spider.state.dedup.seen("https://geizhals.eu/x-a7.html")
