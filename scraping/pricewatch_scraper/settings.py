import os
from pathlib import Path

BOT_NAME = "pricewatch_scraper"

PROJECT_ROOT = Path(__file__).resolve().parents[2]
RAW_DATA_DIR = PROJECT_ROOT / "data" / "raw"
RAW_DATA_DIR.mkdir(parents=True, exist_ok=True)

SPIDER_MODULES = ["pricewatch_scraper.spiders"]
NEWSPIDER_MODULE = "pricewatch_scraper.spiders"

# --------------------
# Crawling behaviour
# --------------------
ROBOTSTXT_OBEY = False

DOWNLOAD_DELAY = 1
RANDOMIZE_DOWNLOAD_DELAY = True
CONCURRENT_REQUESTS = 5
CONCURRENT_REQUESTS_PER_DOMAIN = 5

AUTOTHROTTLE_ENABLED = True
AUTOTHROTTLE_START_DELAY = 1.0
AUTOTHROTTLE_MAX_DELAY = 10.0

DOWNLOAD_TIMEOUT = 90

LOG_LEVEL = os.getenv("PRICEWATCH_LOG_LEVEL", "INFO")

# --------------------
# Identity
# --------------------
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0 Safari/537.36"
)

DEFAULT_REQUEST_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Cache-Control": "max-age=0",
    "Upgrade-Insecure-Requests": "1",
}

COOKIES_ENABLED = True

# --------------------
# Retries (the crawl itself never re-requests a failed unit)
# --------------------
RETRY_ENABLED = True
RETRY_TIMES = 5
RETRY_HTTP_CODES = [403, 429, 500, 502, 503, 504]

# --------------------
# Middlewares
# --------------------
DOWNLOADER_MIDDLEWARES = {
    "pricewatch_scraper.middlewares.RequestHintsMiddleware": 450,
    "pricewatch_scraper.middlewares.ProxyMiddleware": 610,

    "scrapy.downloadermiddlewares.retry.RetryMiddleware": 550,
    "scrapy.downloadermiddlewares.redirect.RedirectMiddleware": 600,

    # Keep if your proxy middleware sets request.meta["proxy"]
    "scrapy.downloadermiddlewares.httpproxy.HttpProxyMiddleware": 750,
}

# --------------------
# Pipelines
# --------------------
ITEM_PIPELINES = {
    "pricewatch_scraper.pipelines.ValidateProductPipeline": 100,
    "pricewatch_scraper.pipelines.SqlitePipeline": 300,
}

PRICEWATCH_DB_PATH = os.getenv("PRICEWATCH_DB_PATH")

FEEDS = {
    str(RAW_DATA_DIR / "%(name)s.jsonl"): {
        "format": "jsonlines",
        "encoding": "utf-8",
    }
}

FEED_EXPORT_ENCODING = "utf-8"
