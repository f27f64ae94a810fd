"""
BeautifulSoup-based parsing layer for retailer listing pages.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from app.domain.products import RawProductRecord
from app.scraping.parsing.product_fields import (
    detect_brand,
    detect_currency,
    detect_regions,
    is_valid_product_image,
    parse_price,
)

MAX_CARDS_PER_PAGE = 300
DEFAULT_CARD_SELECTORS = ["[data-testid*='product']", ".product-card", "article"]


class HTMLParsingLayer:
    """
    Deterministic parser utilities for product listing documents.
    """

    @classmethod
    def extract_products(
        cls,
        *,
        soup: BeautifulSoup,
        selectors: dict[str, list[str]],
        page_url: str,
        source: str,
        currency: str | None = None,
        category: str | None = None,
        regions: tuple[str, ...] = (),
    ) -> list[RawProductRecord]:
        """
        Build one raw record per product card.

        Prices are read from the card without filling gaps: a card with no
        struck-through price yields ``original_price=None`` and is left for
        the discount validator to reject.
        """

        records: list[RawProductRecord] = []
        card_selectors = selectors.get("card") or DEFAULT_CARD_SELECTORS
        for card in cls._select_elements(soup=soup, selectors=card_selectors):
            name = cls._first_text(card, selectors.get("name") or ["h2", "h3", "h4"])
            if not name:
                continue

            sale_text = cls._first_text(card, selectors.get("sale_price", []))
            original_text = cls._first_text(card, selectors.get("original_price", []))
            link = cls._first_attr(card, selectors.get("link") or ["a[href]"], "href")
            image = cls._image_url(card, selectors.get("image") or ["img"], page_url=page_url)

            records.append(
                RawProductRecord(
                    name=name[:180],
                    url=urljoin(page_url, link) if link else "",
                    original_price=parse_price(original_text),
                    sale_price=parse_price(sale_text),
                    source=source,
                    brand=cls._first_text(card, selectors.get("brand", []))
                    or detect_brand(name, default=None),
                    category=category,
                    currency=currency or detect_currency(sale_text or original_text),
                    image_url=image,
                    regions=regions or detect_regions(page_url),
                )
            )
        return cls._dedupe_by_url(records)

    @classmethod
    def _select_elements(
        cls,
        *,
        soup: BeautifulSoup,
        selectors: list[str],
    ) -> list[Tag]:
        for selector in selectors:
            found = soup.select(selector)
            if found:
                return found[:MAX_CARDS_PER_PAGE]
        return []

    @classmethod
    def _first_text(cls, node: Tag, selectors: list[str]) -> str:
        for selector in selectors:
            match = node.select_one(selector)
            if match is None:
                continue
            text = cls._clean_text(match.get_text(" ", strip=True))
            if text:
                return text
        return ""

    @staticmethod
    def _first_attr(node: Tag, selectors: list[str], attribute: str) -> str | None:
        for selector in selectors:
            match = node.select_one(selector)
            if match is None:
                continue
            value = match.get(attribute)
            if isinstance(value, str) and value.strip():
                return value.strip()
        if node.name == "a":
            value = node.get(attribute)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    @classmethod
    def _image_url(cls, node: Tag, selectors: list[str], *, page_url: str) -> str | None:
        for selector in selectors:
            for image in node.select(selector):
                for attribute in ("src", "data-src", "srcset"):
                    value = image.get(attribute)
                    if not isinstance(value, str) or not value.strip():
                        continue
                    candidate = value.strip().split(" ")[0]
                    if candidate.startswith("data:"):
                        continue
                    absolute = urljoin(page_url, candidate)
                    if is_valid_product_image(absolute):
                        return absolute
        return None

    @staticmethod
    def _clean_text(value: str) -> str:
        return re.sub(r"\s+", " ", value).strip()

    @staticmethod
    def _dedupe_by_url(records: list[RawProductRecord]) -> list[RawProductRecord]:
        seen: set[str] = set()
        deduped: list[RawProductRecord] = []
        for record in records:
            if record.url and record.url in seen:
                continue
            if record.url:
                seen.add(record.url)
            deduped.append(record)
        return deduped
