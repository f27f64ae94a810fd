"""
Config-driven selector extractor implementation.
"""

from __future__ import annotations

from bs4 import BeautifulSoup

from app.domain.products import RawProductRecord
from app.scraping.base import SelectorExtractor
from app.scraping.parsing import HTMLParsingLayer


class ConfigurableSelectorExtractor(SelectorExtractor):
    """
    Extractor that relies on product card selectors from the roster config.
    """

    def parse_listing(self, *, page_url: str, soup: BeautifulSoup) -> list[RawProductRecord]:
        return HTMLParsingLayer.extract_products(
            soup=soup,
            selectors=self.config.selectors,
            page_url=page_url,
            source=self.config.source,
            currency=self.config.currency,
            category=self.config.category,
            regions=self.config.regions,
        )
