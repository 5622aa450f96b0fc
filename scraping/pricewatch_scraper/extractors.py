"""
DOM-fallback pass.

Responsibilities:
- Extract every product field from the rendered markup with an ordered
  selector list per field (site-specific first, generic last)
- Parse specification tables into a label -> value mapping
- Extract merchant offers (deduplicated, capped)
- Extract lightweight records from listing-item containers

Used on its own when a page has no JSON-LD, and as the fallback for every
field JSON-LD leaves empty.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pricewatch_scraper.parsing import (
    clean,
    first_text,
    node_text,
    price_to_float,
    rating_to_float,
    to_int,
)
from pricewatch_scraper.structured import Offer
from pricewatch_scraper.urls import is_product_url, normalize

logger = logging.getLogger(__name__)

MAX_OFFERS = 10

LISTING_ITEM_SELECTORS = (
    ".productlist__item",
    ".listview__item",
    ".galleryview__item",
    '[class*="product"]',
)

# -------------------------
# per-field selector lists
# -------------------------

NAME_SELECTORS = [
    'h1[itemprop="name"]',
    "h1.variant__header__headline",
    'h1[class*="variant"]',
    'h1[class*="product"]',
    "h1",
    'meta[property="og:title"]::attr(content)',
]

DESCRIPTION_SELECTORS = [
    '[itemprop="description"]::attr(content)',
    '[itemprop="description"]',
    ".variant__description",
    ".product__description",
    '[class*="description"]',
    'meta[name="description"]::attr(content)',
]

BRAND_SELECTORS = [
    '[itemprop="brand"] [itemprop="name"]::attr(content)',
    '[itemprop="brand"] [itemprop="name"]',
    '[itemprop="brand"]::attr(content)',
    '[itemprop="brand"]',
    ".variant__header__manufacturer",
    ".product__brand",
    '[class*="brand"]',
    '[class*="manufacturer"]',
]

IMAGE_SELECTORS = [
    'meta[property="og:image"]::attr(content)',
    'img[itemprop="image"]::attr(src)',
    'img[itemprop="image"]::attr(data-src)',
    'img[class*="variant"]::attr(src)',
    'img[class*="variant"]::attr(data-src)',
    'img[class*="product"]::attr(src)',
    'img[class*="product"]::attr(data-src)',
    ".product img::attr(src)",
    ".product img::attr(data-src)",
]

SKU_SELECTORS = [
    '[itemprop="mpn"]::attr(content)',
    '[itemprop="mpn"]',
    '[itemprop="sku"]::attr(content)',
    '[itemprop="sku"]',
]

PRICE_SELECTORS = [
    '[itemprop="price"]::attr(content)',
    '[itemprop="lowPrice"]::attr(content)',
    'meta[property="product:price:amount"]::attr(content)',
    ".variant__header__pricehistory .gh_price",
    ".gh_price",
    ".offer__price",
    '[class*="price"]',
]

CURRENCY_SELECTORS = [
    '[itemprop="priceCurrency"]::attr(content)',
    'meta[property="product:price:currency"]::attr(content)',
]

RATING_SELECTORS = [
    '[itemprop="ratingValue"]::attr(content)',
    '[itemprop="ratingValue"]',
    ".variant__rating__value",
    ".rating__value",
    '[class*="rating"]',
]

REVIEW_COUNT_SELECTORS = [
    '[itemprop="reviewCount"]::attr(content)',
    '[itemprop="reviewCount"]',
    '[itemprop="ratingCount"]::attr(content)',
    ".variant__rating__count",
    ".rating__count",
    '[class*="review"]',
]

SPEC_ROW_SELECTORS = [
    ".variant__specs li",
    ".product__specs li",
    '[class*="specs"] li',
]

SPEC_TABLE_SELECTORS = [
    "#specs tr",
    ".specs tr",
    '[class*="specs"] tr',
]

SPEC_DL_SELECTORS = [
    "#specs dl",
    ".specs dl",
    '[class*="specs"] dl',
]

OFFER_ROW_SELECTORS = [
    ".offerlist .offer",
    ".offer__item",
    ".merchant__item",
    '[id^="offer__"]',
    ".offer",
]

MERCHANT_SELECTORS = [
    ".offer__merchant-name",
    ".merchant__logo-caption",
    ".offer__merchant a",
    ".merchant__logo-image img::attr(alt)",
    ".offer__merchant img::attr(alt)",
    ".merchant__name",
    ".offer__merchant",
    '[class*="merchant"]',
]

OFFER_PRICE_SELECTORS = [
    ".offer__price .gh_price",
    ".offer__price",
    ".gh_price",
    '[class*="price"]',
]

MIN_NAME_LEN = 3
MIN_DESCRIPTION_LEN = 10

# Geizhals prints this legal disclaimer in places other sites put a description.
BOILERPLATE_DESCRIPTIONS = (
    "alle angaben ohne gewähr",
    "all information without guarantee",
    "all details without guarantee",
    "preise inkl. mwst",
    "prices incl. vat",
)

# Strings that show up in the merchant column but are ratings or legal notes.
NOT_A_MERCHANT_RX = re.compile(
    r"(bewertung|rating|review|sterne|stars|\bvon\s+5\b|\bout\s+of\s+5\b|"
    r"impressum|imprint|\bagb\b|datenschutz|privacy|rechtlich|legal|hinweis|"
    r"disclaimer|ohne gewähr|^\d+(?:[.,]\d+)?$)",
    re.IGNORECASE,
)

_PARENS_RX = re.compile(r"\s*[\(\[][^\)\]]*[\)\]]")
_SPEC_LINE_RX = re.compile(r"^([^:•|]+)[:•|]\s*(.+)$")


@dataclass
class DomProduct:
    name: Optional[str] = None
    description: Optional[str] = None
    brand: Optional[str] = None
    image: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    specifications: Dict[str, str] = field(default_factory=dict)
    offers: List[Offer] = field(default_factory=list)


# -------------------------
# single fields
# -------------------------

def is_boilerplate(text: Optional[str]) -> bool:
    low = (text or "").lower()
    return any(b in low for b in BOILERPLATE_DESCRIPTIONS)


def extract_name(response) -> Optional[str]:
    return first_text(response, NAME_SELECTORS, min_len=MIN_NAME_LEN)


def extract_description(response) -> Optional[str]:
    for sel in DESCRIPTION_SELECTORS:
        v = first_text(response, [sel], min_len=MIN_DESCRIPTION_LEN)
        if v and not is_boilerplate(v):
            return v
    return None


def extract_brand(response) -> Optional[str]:
    return first_text(response, BRAND_SELECTORS)


def extract_image(response) -> Optional[str]:
    for sel in IMAGE_SELECTORS:
        src = clean(response.css(sel).get())
        if not src or src.startswith("data:"):
            continue
        u = normalize(src, response.url)
        if u:
            return u
    return None


def extract_sku(response) -> Optional[str]:
    return first_text(response, SKU_SELECTORS)


def extract_price(response) -> Optional[float]:
    for sel in PRICE_SELECTORS:
        p = price_to_float(first_text(response, [sel]))
        if p is not None:
            return p
    return None


def extract_currency(response) -> Optional[str]:
    return first_text(response, CURRENCY_SELECTORS)


def extract_rating(response) -> Optional[float]:
    for sel in RATING_SELECTORS:
        r = rating_to_float(first_text(response, [sel]))
        if r is not None:
            return r
    return None


def extract_review_count(response) -> Optional[int]:
    for sel in REVIEW_COUNT_SELECTORS:
        n = to_int(first_text(response, [sel]))
        if n is not None:
            return n
    return None


# -------------------------
# specifications
# -------------------------

def _put_spec(specs: Dict[str, str], label, value) -> None:
    label = clean(label)
    value = clean(value)
    if not label or not value:
        return
    label = label.rstrip(":").strip()
    if label and label not in specs:
        specs[label] = value


def extract_specifications(response) -> Dict[str, str]:
    """
    Label -> value from "Label: value" list rows, <dt>/<dd> pairs and
    two-cell table rows. The first occurrence of a label wins.
    """
    specs: Dict[str, str] = {}

    for sel in SPEC_ROW_SELECTORS:
        for li in response.css(sel):
            m = _SPEC_LINE_RX.match(node_text(li) or "")
            if m:
                _put_spec(specs, m.group(1), m.group(2))

    for sel in SPEC_DL_SELECTORS:
        for dl in response.css(sel):
            for dt in dl.css("dt"):
                dd = dt.xpath("following-sibling::dd[1]")
                _put_spec(specs, node_text(dt), node_text(dd[0]) if dd else None)

    for sel in SPEC_TABLE_SELECTORS:
        for tr in response.css(sel):
            cells = tr.css("th, td")
            if len(cells) == 2:
                _put_spec(specs, node_text(cells[0]), node_text(cells[1]))

    return specs


# -------------------------
# offers
# -------------------------

def clean_merchant_name(text) -> Optional[str]:
    # "Alternate (Marketplace)" -> "Alternate"
    name = clean(text)
    if not name:
        return None
    name = clean(_PARENS_RX.sub("", name))
    if not name or NOT_A_MERCHANT_RX.search(name):
        return None
    return name


def merchant_key(name: str) -> str:
    return name.casefold()


def _merchant_of(row) -> Optional[str]:
    for sel in MERCHANT_SELECTORS:
        raw = first_text(row, [sel])
        name = clean_merchant_name(raw)
        if name:
            return name
    return None


def _offer_rows(response):
    for sel in OFFER_ROW_SELECTORS:
        rows = response.css(sel)
        if rows:
            return rows
    return []


def extract_offers(response, currency: Optional[str] = None, limit: int = MAX_OFFERS) -> List[Offer]:
    """
    Merchant offers in page order. One entry per merchant (first row wins),
    rows without a merchant name or a parseable price are skipped.
    """
    offers: List[Offer] = []
    seen = set()
    for row in _offer_rows(response):
        if len(offers) >= limit:
            break
        try:
            merchant = _merchant_of(row)
            if not merchant or merchant_key(merchant) in seen:
                continue
            price = price_to_float(first_text(row, OFFER_PRICE_SELECTORS))
            if price is None:
                continue
            seen.add(merchant_key(merchant))
            offers.append(Offer(merchant=merchant, price=price, currency=currency))
        except (ValueError, TypeError) as exc:
            logger.debug("skipping offer row on %s: %r", response.url, exc)
    return offers


def extract_dom(response) -> DomProduct:
    currency = extract_currency(response)
    return DomProduct(
        name=extract_name(response),
        description=extract_description(response),
        brand=extract_brand(response),
        image=extract_image(response),
        sku=extract_sku(response),
        price=extract_price(response),
        currency=currency,
        rating=extract_rating(response),
        review_count=extract_review_count(response),
        specifications=extract_specifications(response),
        offers=extract_offers(response, currency=currency),
    )


# -------------------------
# listing items (listing-only mode)
# -------------------------

def listing_item_nodes(response):
    """Listing-item containers that hold at least one product link."""
    for sel in LISTING_ITEM_SELECTORS:
        nodes = [
            n for n in response.css(sel)
            if any(is_product_url(h) for h in n.css("a::attr(href)").getall())
        ]
        if nodes:
            return nodes
    return []


def extract_listing_item(node, base_url: str) -> Optional[dict]:
    """
    name / price / brand / image / url of one listing row, or None when the
    row has no product link.
    """
    href = next((h for h in node.css("a::attr(href)").getall() if is_product_url(h)), None)
    url = normalize(href, base_url)
    if not url:
        return None

    link = node.xpath(f'.//a[@href="{href}"]') if '"' not in href else []
    name = (
        (node_text(link[0]) if link else None)
        or first_text(node, ["h2", "h3", '[class*="name"]', '[class*="title"]'])
        or clean(node.css("img::attr(alt)").get())
    )

    price = price_to_float(first_text(node, [".gh_price", '[class*="price"]']))
    brand = first_text(node, ['[class*="brand"]', '[class*="manufacturer"]'])

    image = None
    src = clean(node.css("img::attr(src)").get()) or clean(node.css("img::attr(data-src)").get())
    if src and not src.startswith("data:"):
        image = normalize(src, base_url)

    return {"name": name, "price": price, "brand": brand, "image": image, "url": url}
