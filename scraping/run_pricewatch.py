# =========================
# Geizhals catalog crawl runner
# Runs the spider in-process with the project settings, then exports the
# SQLite tables of the finished run to JSON next to the JSONL feed.
#
#   python run_pricewatch.py category=hvent results_wanted=50 max_pages=5
#   python run_pricewatch.py search_query="rtx 4070" collect_details=false
# =========================

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd
from scrapy.crawler import CrawlerProcess
from scrapy.utils.project import get_project_settings

from pricewatch_scraper.db import TABLES, connect
from pricewatch_scraper.settings import RAW_DATA_DIR
from pricewatch_scraper.spiders.geizhals_products import GeizhalsProductsSpider


def parse_cli_args(argv):
    # key=value pairs, same names as the spider's -a arguments
    out = {}
    for arg in argv:
        if "=" not in arg:
            raise SystemExit(f"expected key=value, got {arg!r}")
        k, v = arg.split("=", 1)
        out[k.strip()] = v.strip()
    return out


def export_db_json(run_id, out_path):
    export = {}
    with connect() as con:
        for table in TABLES:
            try:
                if table == "scraperun":
                    df = pd.read_sql_query("SELECT * FROM scraperun WHERE scrape_run_id = ?", con, params=(run_id,))
                elif table == "product":
                    df = pd.read_sql_query("SELECT * FROM product WHERE scrape_run_id = ?", con, params=(run_id,))
                else:
                    df = pd.read_sql_query(
                        f"SELECT t.* FROM {table} t JOIN product p ON p.record_id = t.record_id "
                        "WHERE p.scrape_run_id = ?",
                        con,
                        params=(run_id,),
                    )
                export[table] = df.to_dict(orient="records")
            except Exception as e:
                export[table] = {"_error": str(e)}

    out_path.write_text(json.dumps(export, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
    return out_path


def run_scrape(spider_kwargs):
    process = CrawlerProcess(settings=get_project_settings())
    crawler = process.create_crawler(GeizhalsProductsSpider)
    process.crawl(crawler, **spider_kwargs)
    process.start()

    spider = crawler.spider
    print("\nScrape finished.")
    print("Summary:", spider.state.summary())
    print("JSONL:", Path(RAW_DATA_DIR) / f"{spider.name}.jsonl")

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    out = export_db_json(spider.scrape_run_id, Path(RAW_DATA_DIR) / f"{spider.name}_{stamp}_db.json")
    print("DB export JSON:", out)
    return 0 if spider.state.saved else 1


if __name__ == "__main__":
    raise SystemExit(run_scrape(parse_cli_args(sys.argv[1:])))
