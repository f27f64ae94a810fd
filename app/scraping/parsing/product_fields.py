"""
Field-level helpers shared by selector and vision extractors.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

NUMBER_REGEX = re.compile(r"\d+(?:[.,\u00a0 ]\d{3})*(?:[.,]\d{1,2})?")

CURRENCY_SYMBOLS: dict[str, str] = {
    "€": "EUR",
    "EUR": "EUR",
    "£": "GBP",
    "GBP": "GBP",
    "US$": "USD",
    "USD": "USD",
    "$": "USD",
}

KNOWN_BRANDS: tuple[str, ...] = (
    "Nike",
    "Adidas",
    "Puma",
    "New Balance",
    "Under Armour",
    "Reebok",
    "Asics",
    "Jordan",
    "H&M",
    "Zara",
    "Mango",
    "Decathlon",
    "Kalenji",
    "Kipsta",
)

COUNTRY_TLDS: dict[str, str] = {
    ".es": "ES",
    ".fr": "FR",
    ".de": "DE",
    ".it": "IT",
}

BADGE_IMAGE_PATTERNS: tuple[str, ...] = (
    "badge",
    "icon",
    "logo",
    "exclusive",
    "sale_badge",
    "100x",
    "overlay",
    "crobox.io",
)


def parse_price(text: str | None) -> float | None:
    """
    Parse the first price in ``text``, accepting US and European separators.

    ``"£1,299.99"`` and ``"1.299,99 €"`` both parse to ``1299.99``. A single
    separator followed by exactly three digits is read as a thousands separator.
    """

    if not text:
        return None
    match = NUMBER_REGEX.search(text)
    if match is None:
        return None

    token = re.sub(r"\s", "", match.group(0))
    last_comma = token.rfind(",")
    last_dot = token.rfind(".")
    if last_comma >= 0 and last_dot >= 0:
        decimal_separator = "," if last_comma > last_dot else "."
    elif last_comma >= 0 or last_dot >= 0:
        separator = "," if last_comma >= 0 else "."
        tail = token.rsplit(separator, 1)[1]
        decimal_separator = None if len(tail) == 3 else separator
    else:
        decimal_separator = None

    if decimal_separator is None:
        normalized = token.replace(",", "").replace(".", "")
    else:
        thousands_separator = "." if decimal_separator == "," else ","
        normalized = token.replace(thousands_separator, "").replace(decimal_separator, ".")

    try:
        return float(normalized)
    except ValueError:
        return None


def detect_currency(text: str | None, default: str = "EUR") -> str:
    if not text:
        return default
    upper = text.upper()
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in upper:
            return code
    return default


def detect_brand(name: str, default: str | None = None) -> str | None:
    lowered = name.lower()
    for brand in KNOWN_BRANDS:
        if brand.lower() in lowered:
            return brand
    return default


def detect_regions(url: str) -> tuple[str, ...]:
    """
    Region tags inferred from the retailer domain.
    """

    host = (urlparse(url).netloc or url).lower()
    if ".co.uk" in host:
        return ("EU", "UK")
    if host.endswith(".com") or ".com." in host:
        return ("GLOBAL", "US")
    for tld, country in COUNTRY_TLDS.items():
        if host.endswith(tld):
            return ("EU", country)
    return ("EU",)


def is_valid_product_image(url: str | None) -> bool:
    """
    False for empty URLs, page links mistaken for images and badge artwork.
    """

    if not url or not url.strip():
        return False
    lowered = url.strip().lower()
    if "/product/" in lowered or "/en/" in lowered or lowered.endswith(".html"):
        return False
    return not any(pattern in lowered for pattern in BADGE_IMAGE_PATTERNS)


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
