"""
app/domain/products.py

Product records flowing from extractors through discount validation to the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class RawProductRecord:
    """
    Candidate product exactly as an extractor produced it.

    Prices are untyped. Page parsers and model replies may hand back strings,
    ``None`` or garbage; the discount validator decides what is numeric.
    """

    name: str
    url: str
    original_price: Any
    sale_price: Any
    source: str
    brand: str | None = None
    category: str | None = None
    currency: str = "EUR"
    image_url: str | None = None
    regions: tuple[str, ...] = field(default_factory=tuple)
    reported_discount: int | None = None


@dataclass(frozen=True)
class AcceptedProductRecord:
    """
    Validated deal ready for upsert, keyed by ``url``.
    """

    name: str
    url: str
    original_price: float
    sale_price: float
    discount_percent: int
    source: str
    scraped_at: datetime
    brand: str | None = None
    category: str | None = None
    currency: str = "EUR"
    image_url: str | None = None
    regions: tuple[str, ...] = field(default_factory=tuple)


class RejectionReason:
    MISSING_NAME = "missing_name"
    MISSING_URL = "missing_url"
    MISSING_PRICE = "missing_price"
    NON_NUMERIC_PRICE = "non_numeric_price"
    NON_POSITIVE_PRICE = "non_positive_price"
    NO_DISCOUNT = "no_discount"
    DISCOUNT_OUT_OF_RANGE = "discount_out_of_range"
    ESTIMATED_PRICE = "estimated_price"


@dataclass(frozen=True)
class Rejected:
    """
    Validator verdict for a record that must not reach the store.
    """

    reason: str
    message: str
    record: RawProductRecord
