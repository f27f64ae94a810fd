"""
Parsing of vision model replies into raw product records.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any
from urllib.parse import urljoin

from app.domain.products import RawProductRecord
from app.scraping.logging_utils import log_event
from app.scraping.parsing.product_fields import (
    detect_brand,
    detect_currency,
    detect_regions,
    is_valid_product_image,
    parse_price,
    slugify,
)

logger = logging.getLogger(__name__)

JSON_ARRAY_REGEX = re.compile(r"\[[\s\S]*\]")
CURRENCY_CODE_REGEX = re.compile(r"^[A-Za-z]{3}$")


def parse_model_products(
    reply: str,
    *,
    page_url: str,
    source: str,
    currency: str,
    category: str | None = None,
    regions: tuple[str, ...] = (),
) -> list[RawProductRecord]:
    """
    Extract the JSON product array from a model reply.

    A reply without a parseable array yields no records. Products the model
    returned without a link get a page URL with a per-product fragment so
    they stay distinct under upsert-by-URL.
    """

    match = JSON_ARRAY_REGEX.search(reply or "")
    if match is None:
        log_event(logger, logging.WARNING, "vision_reply_without_json", source=source)
        return []

    try:
        items = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        log_event(
            logger,
            logging.WARNING,
            "vision_reply_invalid_json",
            source=source,
            error=str(exc),
        )
        return []
    if not isinstance(items, list):
        return []

    region_tags = regions or detect_regions(page_url)
    records: list[RawProductRecord] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        if not name:
            continue

        sale_price = _price(item.get("salePrice"))
        link = item.get("url")
        if isinstance(link, str) and link.strip():
            url = urljoin(page_url, link.strip())
        else:
            url = f"{page_url}#{slugify(name)}-{sale_price if sale_price is not None else 'na'}"

        image = item.get("image")
        image_url = image.strip() if isinstance(image, str) and is_valid_product_image(image) else None

        records.append(
            RawProductRecord(
                name=name,
                url=url,
                original_price=_price(item.get("originalPrice")),
                sale_price=sale_price,
                source=source,
                brand=_optional_str(item.get("brand")) or detect_brand(name, default=None),
                category=category,
                currency=_currency(item.get("currency"), default=currency),
                image_url=image_url,
                regions=region_tags,
                reported_discount=_reported_discount(item.get("discount")),
            )
        )
    return records


def dedupe_products(records: list[RawProductRecord]) -> list[RawProductRecord]:
    """
    Drop repeats of the same name and sale price, keeping the first.
    """

    seen: set[tuple[str, Any]] = set()
    deduped: list[RawProductRecord] = []
    for record in records:
        key = (record.name.lower(), record.sale_price)
        if key in seen:
            continue
        seen.add(key)
        deduped.append(record)
    return deduped


def _price(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return parse_price(value)
    return None


def _reported_discount(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(round(value))
    if isinstance(value, str):
        digits = re.search(r"\d+", value)
        return int(digits.group(0)) if digits else None
    return None


def _currency(value: Any, *, default: str) -> str:
    text = _optional_str(value)
    if text is None:
        return default
    if CURRENCY_CODE_REGEX.match(text):
        return text.upper()
    return detect_currency(text, default=default)


def _optional_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None
