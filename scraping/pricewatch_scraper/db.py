# scraping/pricewatch_scraper/db.py
from __future__ import annotations

import json
import os
import sqlite3
from typing import Optional

TABLES = ["scraperun", "product", "offer", "specification"]


def get_db_path() -> str:
    """
    Returns absolute path to db/pricewatch.sqlite from within scraping/pricewatch_scraper/.
    """
    here = os.path.dirname(__file__)  # .../scraping/pricewatch_scraper
    repo_root = os.path.abspath(os.path.join(here, "..", ".."))
    return os.path.join(repo_root, "db", "pricewatch.sqlite")


def connect(db_path: Optional[str] = None) -> sqlite3.Connection:
    path = db_path or os.getenv("PRICEWATCH_DB_PATH") or get_db_path()
    if path != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    create_tables(conn)
    conn.commit()


def create_tables(conn: sqlite3.Connection) -> None:
    """
    Creates tables:
      - scraperun      one row per spider run
      - product        one row per emitted record
      - offer          merchant offers of a product record
      - specification  label/value pairs of a product record
    """
    conn.executescript(
        """
        -- SCRAPERUN
        CREATE TABLE IF NOT EXISTS scraperun (
          scrape_run_id    VARCHAR(36) PRIMARY KEY,
          started_at       TIMESTAMP NOT NULL,
          finished_at      TIMESTAMP,
          crawler_version  VARCHAR(50),
          options_json     TEXT,
          summary_json     TEXT
        );

        -- PRODUCT
        CREATE TABLE IF NOT EXISTS product (
          record_id      INTEGER PRIMARY KEY AUTOINCREMENT,
          scrape_run_id  VARCHAR(36) NOT NULL REFERENCES scraperun(scrape_run_id),
          product_id     VARCHAR(20),
          url            VARCHAR(500) NOT NULL,
          name           VARCHAR(300) NOT NULL,
          description    TEXT,
          brand          VARCHAR(100),
          image          VARCHAR(500),
          sku            VARCHAR(100),
          price          DECIMAL(10,2),
          currency       VARCHAR(3),
          lowest_price   DECIMAL(10,2),
          availability   VARCHAR(100),
          rating         DECIMAL(3,1),
          review_count   INTEGER,
          offers_count   INTEGER,
          scraped_from   TEXT,              -- listing | detail
          scraped_at     TIMESTAMP NOT NULL,
          referrer       VARCHAR(500),
          page_number    INTEGER
        );

        -- OFFER
        CREATE TABLE IF NOT EXISTS offer (
          offer_id    INTEGER PRIMARY KEY AUTOINCREMENT,
          record_id   INTEGER NOT NULL REFERENCES product(record_id),
          position    INTEGER NOT NULL,
          merchant    VARCHAR(200) NOT NULL,
          price       DECIMAL(10,2),
          currency    VARCHAR(3)
        );

        -- SPECIFICATION
        CREATE TABLE IF NOT EXISTS specification (
          record_id  INTEGER NOT NULL REFERENCES product(record_id),
          label      VARCHAR(200) NOT NULL,
          value      TEXT,
          PRIMARY KEY (record_id, label)
        );

        CREATE INDEX IF NOT EXISTS idx_product_run        ON product(scrape_run_id);
        CREATE INDEX IF NOT EXISTS idx_product_product_id ON product(product_id);
        CREATE INDEX IF NOT EXISTS idx_offer_record       ON offer(record_id);
        """
    )


def insert_run(conn: sqlite3.Connection, run_id: str, started_at: str, crawler_version: str | None, options: dict | None) -> None:
    conn.execute(
        """
        INSERT OR IGNORE INTO scraperun (scrape_run_id, started_at, crawler_version, options_json)
        VALUES (?, ?, ?, ?)
        """,
        (run_id, started_at, crawler_version, json.dumps(options or {}, ensure_ascii=False)),
    )


def finish_run(conn: sqlite3.Connection, run_id: str, finished_at: str, summary: dict | None) -> None:
    conn.execute(
        "UPDATE scraperun SET finished_at = ?, summary_json = ? WHERE scrape_run_id = ?",
        (finished_at, json.dumps(summary or {}, ensure_ascii=False), run_id),
    )


PRODUCT_COLUMNS = [
    "product_id", "url", "name", "description", "brand", "image", "sku",
    "price", "currency", "lowest_price", "availability", "rating",
    "review_count", "offers_count", "scraped_from", "scraped_at",
    "referrer", "page_number",
]


def insert_product(conn: sqlite3.Connection, run_id: str, record: dict) -> int:
    cols = ["scrape_run_id"] + PRODUCT_COLUMNS
    values = [run_id] + [record.get(c) for c in PRODUCT_COLUMNS]
    cur = conn.execute(
        f"INSERT INTO product ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
        values,
    )
    record_id = cur.lastrowid

    offers = record.get("offers") or []
    conn.executemany(
        "INSERT INTO offer (record_id, position, merchant, price, currency) VALUES (?, ?, ?, ?, ?)",
        [(record_id, i, o.get("merchant"), o.get("price"), o.get("currency")) for i, o in enumerate(offers)],
    )

    specs = record.get("specifications") or {}
    conn.executemany(
        "INSERT OR IGNORE INTO specification (record_id, label, value) VALUES (?, ?, ?)",
        [(record_id, k, v) for k, v in specs.items()],
    )
    return record_id


if __name__ == "__main__":
    conn = connect()
    init_db(conn)

    # Print tables
    rows = conn.execute("""
        SELECT name
        FROM sqlite_master
        WHERE type='table' AND name NOT LIKE 'sqlite_%'
        ORDER BY name;
    """).fetchall()

    print("Database initialized at:", get_db_path())
    print("Tables:", [r[0] for r in rows])

    conn.close()
