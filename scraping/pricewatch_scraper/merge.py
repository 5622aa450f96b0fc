"""
Record merger.

Responsibilities:
- Reconcile the structured-data and DOM candidates field by field
  (structured wins, DOM fills the gaps)
- Combine merchant offers from both passes (deduplicated, capped)
- Derive product_id, lowest_price and provenance
- Validate a record before it is emitted
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from pricewatch_scraper.extractors import MAX_OFFERS, DomProduct, merchant_key
from pricewatch_scraper.items import ProductItem
from pricewatch_scraper.parsing import clean, first_present
from pricewatch_scraper.structured import Offer, StructuredProduct
from pricewatch_scraper.urls import normalize, product_id_from_url

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "EUR"
MIN_NAME_LEN = 3

SCRAPED_FROM_DETAIL = "detail"
SCRAPED_FROM_LISTING = "listing"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def combine_offers(*sources: Iterable[Offer], limit: int = MAX_OFFERS) -> List[Offer]:
    """
    Offers from each source in turn, skipping merchants already listed.
    Order is first-seen; the list is cut at `limit`.
    """
    out: List[Offer] = []
    seen = set()
    for source in sources:
        for offer in source or ():
            if not offer or not clean(offer.merchant):
                continue
            key = merchant_key(offer.merchant)
            if key in seen:
                continue
            seen.add(key)
            out.append(offer)
            if len(out) >= limit:
                return out
    return out


def lowest_price(offers: List[dict], price: Optional[float]) -> Optional[float]:
    prices = [o["price"] for o in offers if o.get("price") is not None]
    if prices:
        return min(prices)
    return price


def merge_product(
    structured: Optional[StructuredProduct],
    dom: Optional[DomProduct],
    url: str,
    referrer: Optional[str] = None,
    page_number: Optional[int] = None,
) -> ProductItem:
    s = structured or StructuredProduct()
    d = dom or DomProduct()

    currency = first_present(s.currency, d.currency) or DEFAULT_CURRENCY
    offers = [o.to_dict(currency) for o in combine_offers(s.offers, d.offers)]
    price = first_present(s.price, d.price)

    image = first_present(s.image, d.image)
    if image:
        image = normalize(image, url) or image

    item = ProductItem()
    item["product_id"] = product_id_from_url(url)
    item["url"] = url
    item["name"] = first_present(s.name, d.name)
    item["description"] = first_present(s.description, d.description)
    item["brand"] = first_present(s.brand, d.brand)
    item["image"] = image
    item["sku"] = first_present(s.sku, d.sku)
    item["price"] = price
    item["currency"] = currency
    item["availability"] = s.availability
    item["rating"] = first_present(s.rating, d.rating)
    item["review_count"] = first_present(s.review_count, d.review_count)
    item["specifications"] = dict(d.specifications) or None
    item["offers"] = offers or None
    item["offers_count"] = len(offers) or None
    item["lowest_price"] = lowest_price(offers, price)
    item["scraped_from"] = SCRAPED_FROM_DETAIL
    item["scraped_at"] = utc_now_iso()
    item["referrer"] = referrer
    item["page_number"] = page_number
    return item


def build_listing_record(row: dict, referrer: Optional[str] = None, page_number: Optional[int] = None) -> ProductItem:
    item = ProductItem()
    item["product_id"] = product_id_from_url(row.get("url"))
    item["url"] = row.get("url")
    item["name"] = clean(row.get("name"))
    item["brand"] = clean(row.get("brand"))
    item["image"] = row.get("image")
    item["price"] = row.get("price")
    item["currency"] = DEFAULT_CURRENCY
    item["lowest_price"] = row.get("price")
    item["scraped_from"] = SCRAPED_FROM_LISTING
    item["scraped_at"] = utc_now_iso()
    item["referrer"] = referrer
    item["page_number"] = page_number
    return item


def validate_record(item) -> bool:
    name = item.get("name")
    if not name or len(str(name).strip()) < MIN_NAME_LEN:
        logger.warning("Product missing valid name url=%s name=%r", item.get("url"), name)
        return False
    return True
