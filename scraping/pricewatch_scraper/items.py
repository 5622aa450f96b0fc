"""
Item definitions.

Responsibilities:
- Define the data structure of emitted product records
- Act as a shared schema between the spider and the pipelines
"""

import scrapy


class ProductItem(scrapy.Item):
    # identity
    product_id = scrapy.Field()  # numeric token from the product URL
    url = scrapy.Field()
    # descriptive
    name = scrapy.Field()  # required, >= 3 chars
    description = scrapy.Field()
    brand = scrapy.Field()
    image = scrapy.Field()
    sku = scrapy.Field()
    # commercial
    price = scrapy.Field()
    currency = scrapy.Field()
    lowest_price = scrapy.Field()
    availability = scrapy.Field()
    # reputation
    rating = scrapy.Field()
    review_count = scrapy.Field()
    # label -> value
    specifications = scrapy.Field()
    # [{"merchant", "price", "currency"}], unique merchants, at most 10
    offers = scrapy.Field()
    offers_count = scrapy.Field()
    # provenance
    scraped_from = scrapy.Field()  # "listing" | "detail"
    scraped_at = scrapy.Field()
    referrer = scrapy.Field()
    page_number = scrapy.Field()
