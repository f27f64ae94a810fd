"""
Extractor implementation exports.
"""

from app.scraping.extractors.selector_extractor import ConfigurableSelectorExtractor
from app.scraping.extractors.vision_extractor import PageVisionExtractor

__all__ = ["ConfigurableSelectorExtractor", "PageVisionExtractor"]
