"""
Extractor abstractions for the scrape orchestration core.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

import requests
from bs4 import BeautifulSoup

from app.config import ScrapeSchedulerSettings
from app.domain.products import RawProductRecord
from app.scraping.config.models import ExtractorConfig
from app.scraping.errors import ExtractionError
from app.scraping.logging_utils import log_event
from app.scraping.types import ExtractionResult, ExtractorVariant

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class Extractor(ABC):
    """
    One unit of scrape work producing raw product records.

    ``variant`` tells the orchestrator whether runs are metered: vision
    extractors need cost authorization and report token usage.
    """

    variant: str = ExtractorVariant.SELECTOR

    def __init__(self, *, name: str) -> None:
        self.name = name

    @abstractmethod
    def run(self, *, max_records: int, timeout_ms: int) -> ExtractionResult:
        """
        Extract up to ``max_records`` raw records.

        Implementations raise ``ExtractionError`` on failure, attaching the
        usage of any metered call already made.
        """


class SelectorExtractor(Extractor):
    """
    Deterministic extractor that fetches listing pages and parses them with CSS selectors.
    """

    variant = ExtractorVariant.SELECTOR

    def __init__(
        self,
        *,
        config: ExtractorConfig,
        settings: ScrapeSchedulerSettings,
        session: requests.Session,
    ) -> None:
        super().__init__(name=config.name)
        self.config = config
        self.settings = settings
        self.session = session

        self.user_agent = config.user_agent or settings.user_agent
        self.request_headers = {
            "User-Agent": self.user_agent,
            "Accept-Language": "en-GB,en;q=0.9",
            **config.headers,
        }

    def run(self, *, max_records: int, timeout_ms: int) -> ExtractionResult:
        records: list[RawProductRecord] = []
        errors: list[str] = []
        request_timeout = min(self.settings.http_timeout_seconds, max(1.0, timeout_ms / 1000))

        for page_url in self.config.pages:
            if len(records) >= max_records:
                break
            try:
                response = self._request_with_retry(page_url, timeout_seconds=request_timeout)
                soup = BeautifulSoup(response.text, "html.parser")
                page_records = self.parse_listing(page_url=page_url, soup=soup)
                records.extend(page_records)
                log_event(
                    logger,
                    logging.INFO,
                    "listing_page_scraped",
                    extractor=self.name,
                    page_url=page_url,
                    records=len(page_records),
                )
            except Exception as exc:
                errors.append(f"url={page_url} error={exc}")
                log_event(
                    logger,
                    logging.WARNING,
                    "listing_page_failed",
                    extractor=self.name,
                    page_url=page_url,
                    error=str(exc),
                )

        if errors and not records:
            raise ExtractionError("; ".join(errors))
        return ExtractionResult(records=records[:max_records])

    @abstractmethod
    def parse_listing(self, *, page_url: str, soup: BeautifulSoup) -> list[RawProductRecord]:
        """
        Parse one listing page into raw product records.
        """

    def _request_with_retry(self, url: str, *, timeout_seconds: float) -> requests.Response:
        last_error: Exception | None = None

        for attempt in range(self.settings.max_retries + 1):
            try:
                response = self.session.get(
                    url,
                    headers=self.request_headers,
                    timeout=timeout_seconds,
                    allow_redirects=True,
                )
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise requests.HTTPError(
                        f"Retryable status={response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return response
            except (requests.Timeout, requests.ConnectionError, requests.HTTPError) as exc:
                last_error = exc
                if isinstance(exc, requests.HTTPError):
                    status_code = exc.response.status_code if exc.response is not None else None
                    if status_code not in RETRYABLE_STATUS_CODES:
                        raise

            if attempt >= self.settings.max_retries:
                break

            time.sleep(
                self.settings.backoff_initial_seconds * (self.settings.backoff_multiplier**attempt)
            )

        raise ExtractionError(f"Failed to fetch {url} after retries: {last_error}")
