"""
tests/test_extractors.py

Pytest tests for the built-in selector and vision extractors.

The selector extractor runs against an in-memory HTTP session; the vision
extractor runs against the mock model adapter and a fake page capture.

Coverage
--------
- Selector pages fetched with retry on retryable statuses
- Selector failure when every page errors
- Screenshot call followed by text fallback below the product threshold
- Usage reported per model call, including on failure
- De-duplication and record cap on vision output
"""

from __future__ import annotations

import json

import pytest
import requests

from app.config import ScrapeSchedulerSettings, VisionSettings
from app.domain.cost import CallKind
from app.scraping.config.models import ExtractorConfig
from app.scraping.errors import ExtractionError
from app.scraping.extractors import ConfigurableSelectorExtractor, PageVisionExtractor
from app.scraping.types import ExtractorVariant
from app.scraping.vision import BasePageCapture, MockVisionAdapter, PageSnapshot, VisionReply

LISTING_HTML = """
<div class="product-card">
  <a class="product-card__link-overlay" href="/t/air-max-90"></a>
  <div class="product-card__title">Nike Air Max 90</div>
  <div class="product-price is--current-price">$89.97</div>
  <div class="product-price is--striked-out">$130.00</div>
</div>
"""


class FakeResponse:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self.text = text

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"status={self.status_code}", response=self)


class FakeSession:
    def __init__(self, responses: dict[str, list[FakeResponse]]) -> None:
        self.responses = responses
        self.requested: list[str] = []

    def get(self, url: str, **kwargs: object) -> FakeResponse:
        self.requested.append(url)
        queue = self.responses[url]
        return queue.pop(0) if len(queue) > 1 else queue[0]


class FakeCapture(BasePageCapture):
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.captured: list[str] = []

    def capture(self, url: str, *, timeout_ms: int) -> PageSnapshot:
        self.captured.append(url)
        if self.error is not None:
            raise self.error
        return PageSnapshot(
            url=url,
            screenshot_png=b"\x89PNG fake",
            text="Linen Shirt 39,95 € 25,99 €",
            links=[f"{url}/linen-shirt-p1.html"],
        )


class FailingSecondCallAdapter(MockVisionAdapter):
    def complete(self, prompt: str, *, image_png: bytes | None = None) -> VisionReply:
        if self.calls:
            raise TimeoutError("model request timed out")
        return super().complete(prompt, image_png=image_png)


def _products(count: int) -> str:
    return json.dumps(
        [
            {
                "name": f"Discounted Item {index}",
                "originalPrice": 50.0,
                "salePrice": 30.0 + index / 100,
                "url": f"/p/item-{index}",
            }
            for index in range(count)
        ]
    )


@pytest.fixture()
def vision_config() -> ExtractorConfig:
    return ExtractorConfig(
        name="zara-sale-eu",
        variant=ExtractorVariant.VISION,
        extractor_type="vision",
        source="zara",
        pages=["https://www.zara.com/es/en/sale"],
        currency="EUR",
        category="fashion",
        regions=("EU", "ES"),
    )


@pytest.fixture()
def selector_config() -> ExtractorConfig:
    return ExtractorConfig(
        name="nike-sale-global",
        variant=ExtractorVariant.SELECTOR,
        extractor_type="selector",
        source="nike",
        pages=["https://www.nike.com/w/sale-1", "https://www.nike.com/w/sale-2"],
        selectors={
            "card": [".product-card"],
            "name": [".product-card__title"],
            "sale_price": [".product-price.is--current-price"],
            "original_price": [".product-price.is--striked-out"],
            "link": ["a.product-card__link-overlay"],
        },
        currency="USD",
    )


def _selector(config: ExtractorConfig, session: FakeSession) -> ConfigurableSelectorExtractor:
    settings = ScrapeSchedulerSettings(max_retries=2, backoff_initial_seconds=0.0)
    return ConfigurableSelectorExtractor(config=config, settings=settings, session=session)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Selector extractor
# ---------------------------------------------------------------------------


class TestSelectorExtractor:

    def test_retries_retryable_status_then_parses(self, selector_config: ExtractorConfig) -> None:
        session = FakeSession(
            {
                "https://www.nike.com/w/sale-1": [FakeResponse(503), FakeResponse(200, LISTING_HTML)],
                "https://www.nike.com/w/sale-2": [FakeResponse(200, "<html></html>")],
            }
        )

        result = _selector(selector_config, session).run(max_records=10, timeout_ms=5_000)

        assert session.requested.count("https://www.nike.com/w/sale-1") == 2
        assert len(result.records) == 1
        record = result.records[0]
        assert record.name == "Nike Air Max 90"
        assert record.url == "https://www.nike.com/t/air-max-90"
        assert record.sale_price == pytest.approx(89.97)
        assert record.original_price == pytest.approx(130.0)
        assert record.currency == "USD"
        assert result.usage == ()

    def test_one_failing_page_is_tolerated(self, selector_config: ExtractorConfig) -> None:
        session = FakeSession(
            {
                "https://www.nike.com/w/sale-1": [FakeResponse(404)],
                "https://www.nike.com/w/sale-2": [FakeResponse(200, LISTING_HTML)],
            }
        )

        result = _selector(selector_config, session).run(max_records=10, timeout_ms=5_000)

        assert len(result.records) == 1
        assert session.requested.count("https://www.nike.com/w/sale-1") == 1

    def test_every_page_failing_raises(self, selector_config: ExtractorConfig) -> None:
        session = FakeSession(
            {
                "https://www.nike.com/w/sale-1": [FakeResponse(500)],
                "https://www.nike.com/w/sale-2": [FakeResponse(403)],
            }
        )

        with pytest.raises(ExtractionError):
            _selector(selector_config, session).run(max_records=10, timeout_ms=5_000)


# ---------------------------------------------------------------------------
# Vision extractor
# ---------------------------------------------------------------------------


class TestPageVisionExtractor:

    def test_few_products_trigger_the_text_fallback(self, vision_config: ExtractorConfig) -> None:
        adapter = MockVisionAdapter(reply=_products(2))
        extractor = PageVisionExtractor(
            config=vision_config,
            adapter=adapter,
            capture=FakeCapture(),
            settings=VisionSettings(),
        )

        result = extractor.run(max_records=40, timeout_ms=30_000)

        assert [has_image for _, has_image in adapter.calls] == [True, False]
        assert [usage.kind for usage in result.usage] == [CallKind.SCREENSHOT, CallKind.TEXT]
        assert result.total_input_tokens == 3000
        assert result.total_output_tokens == 1000
        assert len(result.records) == 2
        assert result.records[0].url == "https://www.zara.com/p/item-0"
        assert result.records[0].regions == ("EU", "ES")

    def test_enough_screenshot_products_skip_the_fallback(self, vision_config: ExtractorConfig) -> None:
        adapter = MockVisionAdapter(reply=_products(12))
        extractor = PageVisionExtractor(
            config=vision_config,
            adapter=adapter,
            capture=FakeCapture(),
            settings=VisionSettings(),
        )

        result = extractor.run(max_records=5, timeout_ms=30_000)

        assert len(adapter.calls) == 1
        assert len(result.usage) == 1
        assert len(result.records) == 5

    def test_failure_after_a_model_call_carries_its_usage(self, vision_config: ExtractorConfig) -> None:
        extractor = PageVisionExtractor(
            config=vision_config,
            adapter=FailingSecondCallAdapter(reply="no products here"),
            capture=FakeCapture(),
            settings=VisionSettings(),
        )

        with pytest.raises(ExtractionError) as excinfo:
            extractor.run(max_records=40, timeout_ms=30_000)

        assert len(excinfo.value.usage) == 1
        assert excinfo.value.usage[0].has_image is True

    def test_capture_failure_reports_no_usage(self, vision_config: ExtractorConfig) -> None:
        extractor = PageVisionExtractor(
            config=vision_config,
            adapter=MockVisionAdapter(),
            capture=FakeCapture(error=RuntimeError("browser crashed")),
            settings=VisionSettings(),
        )

        with pytest.raises(ExtractionError) as excinfo:
            extractor.run(max_records=40, timeout_ms=30_000)

        assert excinfo.value.usage == ()
        assert "browser crashed" in str(excinfo.value)
