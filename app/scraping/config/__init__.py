"""
Config helpers for the extractor roster.
"""

from app.scraping.config.loader import load_extractor_configs
from app.scraping.config.models import ExtractorConfig

__all__ = [
    "ExtractorConfig",
    "load_extractor_configs",
]
