"""
Scrapy project for crawling price-comparison catalogs.

Listing pages are paginated and mined for product links; product pages are
turned into normalized ProductItem records (identity, price, specifications,
merchant offers) within an operator-set result budget and page ceiling.
"""
