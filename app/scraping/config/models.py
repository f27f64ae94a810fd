"""
Scraping configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ExtractorConfig:
    """
    One roster entry from the extractor config file.
    """

    name: str
    variant: str
    extractor_type: str
    source: str
    pages: list[str]
    selectors: dict[str, list[str]] = field(default_factory=dict)
    enabled: bool = True
    max_records: int | None = None
    timeout_ms: int | None = None
    currency: str | None = None
    category: str | None = None
    regions: tuple[str, ...] = ()
    headers: dict[str, str] = field(default_factory=dict)
    user_agent: str | None = None
    extractor_class: str | None = None
