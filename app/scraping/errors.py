"""
Exceptions raised across the scrape orchestration core.
"""

from __future__ import annotations

from collections.abc import Sequence

from app.domain.cost import TokenUsage


class ScrapeCoreError(Exception):
    """Base exception for scrape orchestration failures."""


class ExtractionError(ScrapeCoreError):
    """
    Raised when an extractor cannot produce records.

    Attributes:
        usage: Metered AI calls made before the failure. They are billed even
            though the extraction failed.
    """

    def __init__(self, message: str, *, usage: Sequence[TokenUsage] = ()) -> None:
        super().__init__(message)
        self.usage = tuple(usage)


class ExtractorTimeoutError(ScrapeCoreError):
    """Raised when an extractor exceeds its hard timeout."""

    def __init__(self, extractor: str, timeout_ms: int) -> None:
        super().__init__(f"Extractor '{extractor}' timed out after {timeout_ms} ms.")
        self.extractor = extractor
        self.timeout_ms = timeout_ms


class StoreUnavailableError(ScrapeCoreError):
    """Raised when the product store cannot be reached."""


class StoreRejectedRecordError(ScrapeCoreError):
    """Raised when the store is reachable but refuses one record's data."""


class CycleAlreadyRunningError(ScrapeCoreError):
    """Raised when a cycle is requested while another one is in flight."""

    code = "CYCLE_ALREADY_RUNNING"

    def __init__(self) -> None:
        super().__init__(self.code)
