"""
app/validators/discount_validator.py

Discount validation for scraped product records.

Only real, bounded markdowns are admitted: both prices present and positive,
sale strictly below original, and a rounded discount between 10% and 70%.
Records whose original price looks synthesized from a flat 30%-off
assumption are rejected as well.

The validator is pure and total: it performs no I/O and returns a
``Rejected`` verdict instead of raising for any input shape.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from app.domain.products import AcceptedProductRecord, RawProductRecord, Rejected, RejectionReason

MIN_DISCOUNT_PERCENT = 10
MAX_DISCOUNT_PERCENT = 70

ESTIMATION_MARKUP = 1.3
ESTIMATION_TOLERANCE = 0.01
ESTIMATION_DISCOUNT_PERCENT = 30

DEFAULT_CURRENCY = "EUR"


def compute_discount_percent(original_price: float, sale_price: float) -> int:
    """
    Whole-number discount, rounding halves up.
    """

    raw = (original_price - sale_price) / original_price * 100
    return int(Decimal(repr(raw)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def matches_estimation_fingerprint(
    *,
    original_price: float,
    sale_price: float,
    reported_discount: int | None,
) -> bool:
    """
    True when the original price looks derived as ``sale * 1.3`` with a 30% claim.

    A missing claimed discount counts as the synthesized 30%.
    """

    expected = sale_price * ESTIMATION_MARKUP
    if abs(original_price - expected) > expected * ESTIMATION_TOLERANCE:
        return False
    claimed = ESTIMATION_DISCOUNT_PERCENT if reported_discount is None else reported_discount
    return claimed == ESTIMATION_DISCOUNT_PERCENT


def validate_discount(
    raw: RawProductRecord,
    *,
    scraped_at: datetime | None = None,
) -> AcceptedProductRecord | Rejected:
    """
    Accept a raw record as a deal or explain why it was rejected.
    """

    name = _clean(raw.name)
    if not name:
        return Rejected(RejectionReason.MISSING_NAME, "Product name is empty.", raw)

    url = _clean(raw.url)
    if not url:
        return Rejected(RejectionReason.MISSING_URL, "Product URL is empty.", raw)

    if raw.original_price is None or raw.sale_price is None:
        return Rejected(
            RejectionReason.MISSING_PRICE,
            "Both original and sale price are required.",
            raw,
        )

    original_price = _coerce_price(raw.original_price)
    sale_price = _coerce_price(raw.sale_price)
    if original_price is None or sale_price is None:
        return Rejected(
            RejectionReason.NON_NUMERIC_PRICE,
            f"Prices must be numeric (original={raw.original_price!r}, sale={raw.sale_price!r}).",
            raw,
        )

    if original_price <= 0 or sale_price <= 0:
        return Rejected(
            RejectionReason.NON_POSITIVE_PRICE,
            f"Prices must be positive (original={original_price}, sale={sale_price}).",
            raw,
        )

    if sale_price >= original_price:
        return Rejected(
            RejectionReason.NO_DISCOUNT,
            f"Sale price {sale_price} is not below original price {original_price}.",
            raw,
        )

    discount_percent = compute_discount_percent(original_price, sale_price)
    if discount_percent < MIN_DISCOUNT_PERCENT or discount_percent > MAX_DISCOUNT_PERCENT:
        return Rejected(
            RejectionReason.DISCOUNT_OUT_OF_RANGE,
            f"Discount {discount_percent}% outside "
            f"{MIN_DISCOUNT_PERCENT}-{MAX_DISCOUNT_PERCENT}%.",
            raw,
        )

    if matches_estimation_fingerprint(
        original_price=original_price,
        sale_price=sale_price,
        reported_discount=raw.reported_discount,
    ):
        return Rejected(
            RejectionReason.ESTIMATED_PRICE,
            f"Original price {original_price} looks estimated as sale price x "
            f"{ESTIMATION_MARKUP}.",
            raw,
        )

    image_url = _clean(raw.image_url) or None
    return AcceptedProductRecord(
        name=name,
        url=url,
        original_price=original_price,
        sale_price=sale_price,
        discount_percent=discount_percent,
        source=_clean(raw.source),
        scraped_at=scraped_at or datetime.now(timezone.utc),
        brand=_clean(raw.brand) or None,
        category=_clean(raw.category) or None,
        currency=_clean(raw.currency).upper() or DEFAULT_CURRENCY,
        image_url=image_url,
        regions=_clean_regions(raw.regions),
    )


def _clean(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def _clean_regions(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = (value,)
    if not isinstance(value, (list, tuple, set, frozenset)):
        return ()
    return tuple(region for region in (_clean(item) for item in value) if region)


def _coerce_price(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number
