"""
Vision-based extractor reading sale pages through a metered model.
"""

from __future__ import annotations

import logging

from app.config import VisionSettings
from app.domain.cost import TokenUsage
from app.domain.products import RawProductRecord
from app.scraping.base import Extractor
from app.scraping.config.models import ExtractorConfig
from app.scraping.errors import ExtractionError
from app.scraping.logging_utils import log_event
from app.scraping.parsing import dedupe_products, parse_model_products
from app.scraping.types import ExtractionResult, ExtractorVariant
from app.scraping.vision import BasePageCapture, BaseVisionAdapter
from app.scraping.vision.prompt import build_screenshot_prompt, build_text_prompt

logger = logging.getLogger(__name__)


class PageVisionExtractor(Extractor):
    """
    Screenshot-first extraction with a page-text fallback.

    Each page is read from its screenshot; when that yields fewer than
    ``text_fallback_min_products`` products the page text is sent as a second
    call. Every model call is reported in the result usage, and on failure in
    the raised ``ExtractionError``.
    """

    variant = ExtractorVariant.VISION

    def __init__(
        self,
        *,
        config: ExtractorConfig,
        adapter: BaseVisionAdapter,
        capture: BasePageCapture,
        settings: VisionSettings,
    ) -> None:
        super().__init__(name=config.name)
        self.config = config
        self.adapter = adapter
        self.capture = capture
        self.settings = settings
        self.currency = config.currency or "EUR"

    def run(self, *, max_records: int, timeout_ms: int) -> ExtractionResult:
        usage: list[TokenUsage] = []
        records: list[RawProductRecord] = []

        try:
            for page_url in self.config.pages:
                if len(records) >= max_records:
                    break
                records.extend(self._extract_page(page_url, timeout_ms=timeout_ms, usage=usage))
        except ExtractionError as exc:
            raise ExtractionError(str(exc), usage=usage) from exc
        except Exception as exc:
            raise ExtractionError(
                f"Vision extraction failed for '{self.name}': {exc}",
                usage=usage,
            ) from exc

        deduped = dedupe_products(records)
        return ExtractionResult(records=deduped[:max_records], usage=tuple(usage))

    def _extract_page(
        self,
        page_url: str,
        *,
        timeout_ms: int,
        usage: list[TokenUsage],
    ) -> list[RawProductRecord]:
        snapshot = self.capture.capture(page_url, timeout_ms=timeout_ms)

        reply = self.adapter.complete(
            build_screenshot_prompt(category=self.config.category, currency=self.currency),
            image_png=snapshot.screenshot_png,
        )
        usage.append(reply.usage)
        page_records = self._parse(reply.text, page_url=page_url)
        log_event(
            logger,
            logging.INFO,
            "vision_screenshot_parsed",
            extractor=self.name,
            page_url=page_url,
            products=len(page_records),
            input_tokens=reply.usage.input_tokens,
            output_tokens=reply.usage.output_tokens,
        )

        if len(page_records) >= self.settings.text_fallback_min_products:
            return page_records

        reply = self.adapter.complete(
            build_text_prompt(
                page_text=snapshot.text,
                links=snapshot.links,
                category=self.config.category,
                currency=self.currency,
                max_chars=self.settings.max_page_text_chars,
            )
        )
        usage.append(reply.usage)
        text_records = self._parse(reply.text, page_url=page_url)
        log_event(
            logger,
            logging.INFO,
            "vision_text_parsed",
            extractor=self.name,
            page_url=page_url,
            products=len(text_records),
            input_tokens=reply.usage.input_tokens,
            output_tokens=reply.usage.output_tokens,
        )
        return [*page_records, *text_records]

    def _parse(self, reply: str, *, page_url: str) -> list[RawProductRecord]:
        return parse_model_products(
            reply,
            page_url=page_url,
            source=self.config.source,
            currency=self.currency,
            category=self.config.category,
            regions=self.config.regions,
        )
