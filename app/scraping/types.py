"""
Shared scraping runtime data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from app.domain.cost import TokenUsage
from app.domain.products import RawProductRecord

if TYPE_CHECKING:
    from app.scraping.base import Extractor


class ExtractorVariant:
    SELECTOR = "selector"
    VISION = "vision"

    ALL = frozenset({SELECTOR, VISION})


@dataclass(frozen=True)
class ExtractionResult:
    """
    Outcome for one extractor run.

    ``usage`` holds one entry per metered AI call and is empty for
    selector extractors.
    """

    records: list[RawProductRecord] = field(default_factory=list)
    usage: tuple[TokenUsage, ...] = ()

    @property
    def total_input_tokens(self) -> int:
        return sum(item.input_tokens for item in self.usage)

    @property
    def total_output_tokens(self) -> int:
        return sum(item.output_tokens for item in self.usage)


@dataclass(frozen=True)
class ExtractorDescriptor:
    """
    Static roster entry: one extractor with its cap and timeout.
    """

    name: str
    variant: str
    max_records: int
    timeout_ms: int
    extractor: "Extractor"
