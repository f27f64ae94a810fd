"""
Listing page and model reply parsers.
"""

from app.scraping.parsing.html_parsers import HTMLParsingLayer
from app.scraping.parsing.vision_parsers import dedupe_products, parse_model_products

__all__ = ["HTMLParsingLayer", "dedupe_products", "parse_model_products"]
