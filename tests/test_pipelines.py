import json
import sqlite3

import pytest
from scrapy.exceptions import DropItem

from pricewatch_scraper.config import CrawlOptions
from pricewatch_scraper.items import ProductItem
from pricewatch_scraper.pipelines import SqlitePipeline, ValidateProductPipeline
from pricewatch_scraper.state import CrawlState


class FakeSpider:
    scrape_run_id = "run-1"
    started_at = "2024-01-01T00:00:00+00:00"
    crawler_version = "geizhals_products/test"

    def __init__(self):
        self.options = CrawlOptions.from_spider_kwargs({"category": "hvent"})
        self.state = CrawlState(results_wanted=5, max_pages=2)


def product(**overrides):
    item = ProductItem(
        product_id="1234567",
        url="https://geizhals.eu/avm-fritz-box-7590-a1234567.html",
        name="AVM FRITZ!Box 7590",
        price=189.9,
        currency="EUR",
        lowest_price=179.0,
        offers=[
            {"merchant": "Alternate", "price": 189.9, "currency": "EUR"},
            {"merchant": "Cyberport", "price": 179.0, "currency": "EUR"},
        ],
        offers_count=2,
        specifications={"Typ": "VDSL-Router", "WLAN": "802.11ac"},
        scraped_from="detail",
        scraped_at="2024-01-01T00:00:01+00:00",
    )
    item.update(overrides)
    return item


def test_validate_pipeline_drops_nameless_items():
    pipeline = ValidateProductPipeline()
    ok = product()
    assert pipeline.process_item(ok, spider=None) is ok
    with pytest.raises(DropItem):
        pipeline.process_item(product(name="  "), spider=None)
    with pytest.raises(DropItem):
        pipeline.process_item(product(name=None), spider=None)


def test_sqlite_pipeline_stores_run_product_offers_and_specs(tmp_path):
    db_path = str(tmp_path / "out" / "pricewatch.sqlite")
    spider = FakeSpider()
    pipeline = SqlitePipeline(db_path)

    pipeline.open_spider(spider)
    pipeline.process_item(product(), spider)
    pipeline.process_item(product(product_id="2", offers=None, specifications=None, scraped_from="listing"), spider)
    spider.state.claim(2)
    pipeline.close_spider(spider)

    conn = sqlite3.connect(db_path)
    try:
        products = conn.execute("SELECT name, price, scraped_from FROM product ORDER BY record_id").fetchall()
        assert products == [("AVM FRITZ!Box 7590", 189.9, "detail"), ("AVM FRITZ!Box 7590", 189.9, "listing")]

        offers = conn.execute("SELECT position, merchant, price FROM offer ORDER BY position").fetchall()
        assert offers == [(0, "Alternate", 189.9), (1, "Cyberport", 179.0)]

        specs = dict(conn.execute("SELECT label, value FROM specification").fetchall())
        assert specs == {"Typ": "VDSL-Router", "WLAN": "802.11ac"}

        run = conn.execute("SELECT options_json, summary_json, finished_at FROM scraperun WHERE scrape_run_id = 'run-1'").fetchone()
        assert json.loads(run[0])["category"] == "hvent"
        assert json.loads(run[1])["products_saved"] == 2
        assert run[2] is not None
    finally:
        conn.close()
