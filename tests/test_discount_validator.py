"""
tests/test_discount_validator.py

Pytest unit tests for the discount validator.

Pure Python: no database, no network.

Coverage
--------
- Discount bounds (10% and 70% inclusive)
- Sale price at or above original price
- Missing and non-numeric prices
- Estimated-price fingerprint (sale x 1.3 with a 30% claim)
- Field trimming and timestamp pass-through on acceptance
- Missing or malformed optional fields (regions, brand, currency)
- Rounding of the stored discount percent
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

import pytest

from app.domain.products import AcceptedProductRecord, RawProductRecord, Rejected, RejectionReason
from app.validators.discount_validator import (
    compute_discount_percent,
    matches_estimation_fingerprint,
    validate_discount,
)

SCRAPED_AT = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def _raw(**overrides: object) -> RawProductRecord:
    fields: dict[str, object] = {
        "name": "Air Zoom Pegasus",
        "url": "https://shop.example.com/p/pegasus",
        "original_price": 120.0,
        "sale_price": 84.0,
        "source": "shop-example",
    }
    fields.update(overrides)
    return RawProductRecord(**fields)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Discount bounds
# ---------------------------------------------------------------------------


class TestDiscountBounds:

    @pytest.mark.parametrize(
        "original, sale, expected_percent",
        [
            (100.0, 90.0, 10),
            (100.0, 30.0, 70),
            (80.0, 60.0, 25),
            (59.99, 29.99, 50),
        ],
    )
    def test_accepts_discounts_inside_bounds(
        self, original: float, sale: float, expected_percent: int
    ) -> None:
        verdict = validate_discount(
            _raw(original_price=original, sale_price=sale), scraped_at=SCRAPED_AT
        )
        assert isinstance(verdict, AcceptedProductRecord)
        assert verdict.discount_percent == expected_percent

    @pytest.mark.parametrize(
        "original, sale",
        [
            (100.0, 91.0),
            (100.0, 29.0),
            (100.0, 99.0),
            (100.0, 5.0),
        ],
    )
    def test_rejects_discounts_outside_bounds(self, original: float, sale: float) -> None:
        verdict = validate_discount(_raw(original_price=original, sale_price=sale))
        assert isinstance(verdict, Rejected)
        assert verdict.reason == RejectionReason.DISCOUNT_OUT_OF_RANGE

    @pytest.mark.parametrize("sale", [100.0, 120.0])
    def test_rejects_sale_not_below_original(self, sale: float) -> None:
        verdict = validate_discount(_raw(original_price=100.0, sale_price=sale))
        assert isinstance(verdict, Rejected)
        assert verdict.reason == RejectionReason.NO_DISCOUNT

    def test_accepted_discount_is_within_bounds_and_prices_are_ordered(self) -> None:
        verdict = validate_discount(_raw(original_price=75.0, sale_price=45.0))
        assert isinstance(verdict, AcceptedProductRecord)
        assert 10 <= verdict.discount_percent <= 70
        assert 0 < verdict.sale_price < verdict.original_price


# ---------------------------------------------------------------------------
# Price presence and type
# ---------------------------------------------------------------------------


class TestPriceShape:

    @pytest.mark.parametrize(
        "original, sale",
        [(None, 50.0), (100.0, None), (None, None)],
    )
    def test_missing_price_is_rejected(self, original: object, sale: object) -> None:
        verdict = validate_discount(_raw(original_price=original, sale_price=sale))
        assert isinstance(verdict, Rejected)
        assert verdict.reason == RejectionReason.MISSING_PRICE

    @pytest.mark.parametrize(
        "original, sale",
        [
            ("abc", 50.0),
            (100.0, "N/A"),
            (True, 50.0),
            (math.nan, 50.0),
            (100.0, math.inf),
            ([100.0], 50.0),
        ],
    )
    def test_non_numeric_price_is_rejected(self, original: object, sale: object) -> None:
        verdict = validate_discount(_raw(original_price=original, sale_price=sale))
        assert isinstance(verdict, Rejected)
        assert verdict.reason == RejectionReason.NON_NUMERIC_PRICE

    def test_numeric_strings_are_accepted(self) -> None:
        verdict = validate_discount(_raw(original_price=" 100 ", sale_price="60"))
        assert isinstance(verdict, AcceptedProductRecord)
        assert verdict.original_price == 100.0
        assert verdict.sale_price == 60.0
        assert verdict.discount_percent == 40

    @pytest.mark.parametrize("original, sale", [(0, 0), (-100.0, -50.0), (100.0, 0)])
    def test_non_positive_price_is_rejected(self, original: float, sale: float) -> None:
        verdict = validate_discount(_raw(original_price=original, sale_price=sale))
        assert isinstance(verdict, Rejected)
        assert verdict.reason == RejectionReason.NON_POSITIVE_PRICE

    def test_rejection_keeps_the_raw_record(self) -> None:
        raw = _raw(sale_price=None)
        verdict = validate_discount(raw)
        assert isinstance(verdict, Rejected)
        assert verdict.record is raw


# ---------------------------------------------------------------------------
# Identity fields
# ---------------------------------------------------------------------------


class TestIdentityFields:

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_name_is_rejected(self, name: object) -> None:
        verdict = validate_discount(_raw(name=name))
        assert isinstance(verdict, Rejected)
        assert verdict.reason == RejectionReason.MISSING_NAME

    def test_blank_url_is_rejected(self) -> None:
        verdict = validate_discount(_raw(url="  "))
        assert isinstance(verdict, Rejected)
        assert verdict.reason == RejectionReason.MISSING_URL

    def test_accepted_record_is_trimmed_and_timestamped(self) -> None:
        verdict = validate_discount(
            _raw(
                name="  Pegasus 41  ",
                url=" https://shop.example.com/p/pegasus-41 ",
                image_url="   ",
                regions=["EU", "ES"],
                brand="Nike",
            ),
            scraped_at=SCRAPED_AT,
        )
        assert isinstance(verdict, AcceptedProductRecord)
        assert verdict.name == "Pegasus 41"
        assert verdict.url == "https://shop.example.com/p/pegasus-41"
        assert verdict.image_url is None
        assert verdict.regions == ("EU", "ES")
        assert verdict.brand == "Nike"
        assert verdict.scraped_at == SCRAPED_AT

    def test_odd_optional_fields_are_normalized(self) -> None:
        verdict = validate_discount(
            _raw(regions=None, brand="   ", category=42, currency=" eur ", source=" shop-example ")
        )
        assert isinstance(verdict, AcceptedProductRecord)
        assert verdict.regions == ()
        assert verdict.brand is None
        assert verdict.category is None
        assert verdict.currency == "EUR"
        assert verdict.source == "shop-example"

    @pytest.mark.parametrize(
        "regions, expected",
        [
            (("EU", " ", None, "ES"), ("EU", "ES")),
            ("EU", ("EU",)),
            (7, ()),
        ],
    )
    def test_region_tags_of_any_shape_are_accepted(
        self,
        regions: object,
        expected: tuple[str, ...],
    ) -> None:
        verdict = validate_discount(_raw(regions=regions))
        assert isinstance(verdict, AcceptedProductRecord)
        assert verdict.regions == expected


# ---------------------------------------------------------------------------
# Estimated-price fingerprint
# ---------------------------------------------------------------------------


class TestEstimationFingerprint:

    def test_sale_times_markup_without_claim_is_rejected(self) -> None:
        verdict = validate_discount(_raw(original_price=130.0, sale_price=100.0))
        assert isinstance(verdict, Rejected)
        assert verdict.reason == RejectionReason.ESTIMATED_PRICE

    def test_sale_times_markup_with_thirty_percent_claim_is_rejected(self) -> None:
        verdict = validate_discount(
            _raw(original_price=130.0, sale_price=100.0, reported_discount=30)
        )
        assert isinstance(verdict, Rejected)
        assert verdict.reason == RejectionReason.ESTIMATED_PRICE

    def test_matching_ratio_with_other_claim_is_accepted(self) -> None:
        verdict = validate_discount(
            _raw(original_price=130.0, sale_price=100.0, reported_discount=23)
        )
        assert isinstance(verdict, AcceptedProductRecord)
        assert verdict.discount_percent == 23

    def test_ratio_outside_tolerance_is_not_a_fingerprint(self) -> None:
        assert not matches_estimation_fingerprint(
            original_price=135.0, sale_price=100.0, reported_discount=None
        )

    def test_ratio_within_one_percent_tolerance_is_a_fingerprint(self) -> None:
        assert matches_estimation_fingerprint(
            original_price=129.99, sale_price=99.99, reported_discount=None
        )


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------


class TestComputeDiscountPercent:

    @pytest.mark.parametrize(
        "original, sale, expected",
        [
            (100.0, 75.0, 25),
            (3.0, 2.0, 33),
            (3.0, 1.0, 67),
            (200.0, 150.0, 25),
        ],
    )
    def test_rounds_to_nearest_whole_percent(
        self, original: float, sale: float, expected: int
    ) -> None:
        assert compute_discount_percent(original, sale) == expected
