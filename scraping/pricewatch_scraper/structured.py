"""
Structured-data pass.

Reads the page's embedded JSON-LD and turns the first schema.org Product it
finds into a StructuredProduct. JSON-LD is loosely typed (brand can be an
object or a string, offers a dict, a list or an AggregateOffer, numbers can
be strings), so everything is coerced here, once; the rest of the pipeline
only sees typed optional fields.

A missing or malformed block yields None, never an exception.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from pricewatch_scraper.parsing import clean, to_float, to_int

logger = logging.getLogger(__name__)

# Manufacturer part number is the most useful identifier on a price
# comparison site; the others are fallbacks.
IDENTIFIER_KEYS = ("mpn", "sku", "gtin13", "gtin", "gtin14", "gtin12", "gtin8", "productID")


@dataclass
class Offer:
    merchant: str
    price: Optional[float]
    currency: Optional[str] = None

    def to_dict(self, default_currency: str) -> dict:
        return {
            "merchant": self.merchant,
            "price": self.price,
            "currency": self.currency or default_currency,
        }


@dataclass
class StructuredProduct:
    name: Optional[str] = None
    description: Optional[str] = None
    brand: Optional[str] = None
    image: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    availability: Optional[str] = None
    offers: List[Offer] = field(default_factory=list)
    rating: Optional[float] = None
    review_count: Optional[int] = None

    @classmethod
    def from_jsonld(cls, node: dict) -> "StructuredProduct":
        primary, sub_offers = split_offers(node.get("offers"))
        rating, review_count = aggregate_rating(node.get("aggregateRating"))
        return cls(
            name=clean(_text(node.get("name"))),
            description=clean(_text(node.get("description"))),
            brand=brand_name(node.get("brand")),
            image=image_url(node.get("image")),
            sku=identifier(node),
            price=primary.get("price"),
            currency=primary.get("currency"),
            availability=primary.get("availability"),
            offers=sub_offers,
            rating=rating,
            review_count=review_count,
        )


# -------------------------
# JSON-LD walking
# -------------------------

def iter_json_ld(obj) -> Iterable[dict]:
    # Recursively iterate JSON-LD nodes, including @graph structures.
    if isinstance(obj, dict):
        yield obj
        g = obj.get("@graph")
        if isinstance(g, list):
            for x in g:
                yield from iter_json_ld(x)
    elif isinstance(obj, list):
        for x in obj:
            yield from iter_json_ld(x)


def is_type(node: dict, wanted: str) -> bool:
    t = node.get("@type") or node.get("type")
    if isinstance(t, str):
        return t == wanted or t.endswith("/" + wanted)
    if isinstance(t, list):
        return any(isinstance(x, str) and (x == wanted or x.endswith("/" + wanted)) for x in t)
    return False


def load_json_ld_blocks(response) -> List[Any]:
    out = []
    for raw in response.css('script[type="application/ld+json"]::text').getall():
        raw = (raw or "").strip()
        if not raw:
            continue
        try:
            out.append(json.loads(raw))
        except ValueError:
            logger.debug("skipping malformed JSON-LD block on %s", response.url)
            continue
    return out


def find_product_node(blocks: List[Any]) -> Optional[dict]:
    for block in blocks:
        for node in iter_json_ld(block):
            if is_type(node, "Product"):
                return node
    return None


def extract_structured(response) -> Optional[StructuredProduct]:
    node = find_product_node(load_json_ld_blocks(response))
    if node is None:
        return None
    return StructuredProduct.from_jsonld(node)


# -------------------------
# field coercion
# -------------------------

def _text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, dict):
        return _text(value.get("name") or value.get("@value"))
    if isinstance(value, list) and value:
        return _text(value[0])
    return None


def brand_name(value) -> Optional[str]:
    # brand: "ASUS" | {"@type": "Brand", "name": "ASUS"} | [{...}]
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        return clean(_text(value.get("name")))
    return clean(_text(value))


def image_url(value) -> Optional[str]:
    # image: "https://..." | ["https://...", ...] | {"@type": "ImageObject", "url": ...}
    if isinstance(value, list):
        for v in value:
            u = image_url(v)
            if u:
                return u
        return None
    if isinstance(value, dict):
        return clean(value.get("url") or value.get("contentUrl"))
    if isinstance(value, str):
        return clean(value)
    return None


def identifier(node: dict) -> Optional[str]:
    for key in IDENTIFIER_KEYS:
        v = clean(_text(node.get(key)))
        if v:
            return v
    return None


def aggregate_rating(value) -> tuple[Optional[float], Optional[int]]:
    if isinstance(value, list):
        value = value[0] if value else None
    if not isinstance(value, dict):
        return None, None
    rating = to_float(value.get("ratingValue"))
    count = to_int(value.get("reviewCount"))
    if count is None:
        count = to_int(value.get("ratingCount"))
    return rating, count


def _seller_name(offer: dict) -> Optional[str]:
    seller = offer.get("seller") or offer.get("offeredBy")
    if isinstance(seller, list):
        seller = seller[0] if seller else None
    if isinstance(seller, dict):
        return clean(_text(seller.get("name")))
    return clean(_text(seller))


def _offer_price(offer: dict) -> Optional[float]:
    price = to_float(offer.get("price"))
    if price is None:
        price = to_float(offer.get("lowPrice"))
    if price is None:
        spec = offer.get("priceSpecification")
        if isinstance(spec, list):
            spec = spec[0] if spec else None
        if isinstance(spec, dict):
            price = to_float(spec.get("price"))
    return price


def _sub_offer(offer: Any) -> Optional[Offer]:
    if not isinstance(offer, dict):
        return None
    merchant = _seller_name(offer)
    if not merchant:
        return None
    return Offer(merchant=merchant, price=_offer_price(offer), currency=clean(offer.get("priceCurrency")))


def split_offers(value) -> tuple[dict, List[Offer]]:
    """
    Primary offer fields (price, currency, availability) and the merchant
    sub-offers. The primary price always comes from the top-level offer
    (price or lowPrice); sub-offers only feed the merchant list.
    """
    primary: dict = {}
    subs: List[Offer] = []
    if isinstance(value, list):
        entries = [v for v in value if isinstance(v, dict)]
        if not entries:
            return primary, subs
        head = entries[0]
        for e in entries:
            o = _sub_offer(e)
            if o:
                subs.append(o)
    elif isinstance(value, dict):
        head = value
        nested = value.get("offers")
        if isinstance(nested, dict):
            nested = [nested]
        if isinstance(nested, list):
            for e in nested:
                o = _sub_offer(e)
                if o:
                    subs.append(o)
        elif not is_type(value, "AggregateOffer"):
            o = _sub_offer(value)
            if o:
                subs.append(o)
    else:
        return primary, subs

    primary["price"] = _offer_price(head)
    primary["currency"] = clean(head.get("priceCurrency"))
    primary["availability"] = clean(_text(head.get("availability")))
    if primary["currency"] is None:
        primary["currency"] = next((o.currency for o in subs if o.currency), None)
    return primary, subs
