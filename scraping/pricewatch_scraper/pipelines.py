"""
Item pipelines.

Responsibilities:
- Last guard against records without a usable name
- Store runs, products, offers and specifications in SQLite
"""

# scraping/pricewatch_scraper/pipelines.py
from __future__ import annotations

from datetime import datetime, timezone

from itemadapter import ItemAdapter
from scrapy.exceptions import DropItem

from pricewatch_scraper.db import connect, finish_run, init_db, insert_product, insert_run
from pricewatch_scraper.merge import MIN_NAME_LEN


class ValidateProductPipeline:
    def process_item(self, item, spider):
        adapter = ItemAdapter(item)
        name = adapter.get("name")
        if not name or len(str(name).strip()) < MIN_NAME_LEN:
            raise DropItem(f"Product missing valid name: {adapter.get('url')}")
        return item


class SqlitePipeline:
    def __init__(self, db_path: str | None = None):
        self.db_path = db_path
        self.conn = None
        self.stored = 0

    @classmethod
    def from_crawler(cls, crawler):
        return cls(crawler.settings.get("PRICEWATCH_DB_PATH"))

    def open_spider(self, spider):
        self.conn = connect(self.db_path)
        init_db(self.conn)
        self.run_id = getattr(spider, "scrape_run_id", None) or datetime.now(timezone.utc).isoformat()
        options = spider.options.to_dict() if hasattr(spider, "options") else None
        insert_run(
            self.conn,
            self.run_id,
            getattr(spider, "started_at", None) or datetime.now(timezone.utc).isoformat(),
            getattr(spider, "crawler_version", None),
            options,
        )
        self.conn.commit()

    def close_spider(self, spider):
        if self.conn is None:
            return
        try:
            state = getattr(spider, "state", None)
            summary = state.summary() if state is not None else {"stored": self.stored}
            finish_run(self.conn, self.run_id, datetime.now(timezone.utc).isoformat(), summary)
            self.conn.commit()
        finally:
            self.conn.close()
            self.conn = None

    def process_item(self, item, spider):
        insert_product(self.conn, self.run_id, ItemAdapter(item).asdict())
        self.conn.commit()
        self.stored += 1
        return item
