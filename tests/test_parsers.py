"""
tests/test_parsers.py

Pytest unit tests for listing-page and model-reply parsing.

Coverage
--------
- Price parsing for US and European formats
- Currency, brand and region detection
- Product image filtering
- Selector-driven card extraction from HTML
- JSON array extraction from model replies and de-duplication
- Model-reported currencies reduced to a short code
"""

from __future__ import annotations

import json

import pytest
from bs4 import BeautifulSoup

from app.domain.products import RawProductRecord
from app.scraping.parsing import HTMLParsingLayer, dedupe_products, parse_model_products
from app.scraping.parsing.product_fields import (
    detect_brand,
    detect_currency,
    detect_regions,
    is_valid_product_image,
    parse_price,
)

LISTING_HTML = """
<main>
  <article class="tile">
    <a href="/p/runner-1"><img src="https://cdn.example.com/img/runner.jpg"></a>
    <h3 class="title">Nike Pegasus   Runner</h3>
    <span class="was">€120,00</span>
    <span class="now">€84,00</span>
  </article>
  <article class="tile">
    <a href="/p/linen-shirt"><img src="https://cdn.example.com/badges/sale_badge.png"></a>
    <h3 class="title">Linen Shirt</h3>
    <span class="now">€25,99</span>
  </article>
  <article class="tile">
    <a href="/p/runner-1"><img src="https://cdn.example.com/img/runner-alt.jpg"></a>
    <h3 class="title">Nike Pegasus Runner (colour 2)</h3>
    <span class="was">€120,00</span>
    <span class="now">€79,00</span>
  </article>
  <article class="tile">
    <span class="now">€10,00</span>
  </article>
</main>
"""

SELECTORS = {
    "card": ["article.tile"],
    "name": [".title"],
    "sale_price": [".now"],
    "original_price": [".was"],
    "image": ["img"],
    "link": ["a[href]"],
}


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


class TestParsePrice:

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("£1,299.99", 1299.99),
            ("1.299,99 €", 1299.99),
            ("€49,95", 49.95),
            ("$1,299", 1299.0),
            ("19.99", 19.99),
            ("Now 35 €", 35.0),
            ("1 299,00 €", 1299.0),
            ("£45.00 £30.00", 45.0),
        ],
    )
    def test_parses_common_formats(self, text: str, expected: float) -> None:
        assert parse_price(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", [None, "", "Sold out"])
    def test_returns_none_without_a_number(self, text: str | None) -> None:
        assert parse_price(text) is None


class TestDetection:

    @pytest.mark.parametrize(
        "text, expected",
        [("€84,00", "EUR"), ("£30.00", "GBP"), ("US$ 20", "USD"), ("$15", "USD"), ("15", "EUR")],
    )
    def test_detect_currency(self, text: str, expected: str) -> None:
        assert detect_currency(text) == expected

    def test_detect_brand_from_known_list(self) -> None:
        assert detect_brand("New Balance 574 Core") == "New Balance"
        assert detect_brand("Plain Cotton Tee") is None
        assert detect_brand("Plain Cotton Tee", default="Unknown") == "Unknown"

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://www.asos.co.uk/men/sale", ("EU", "UK")),
            ("https://www.nike.com/w/sale", ("GLOBAL", "US")),
            ("https://www.mango.fr/femme/promotions", ("EU", "FR")),
            ("https://www.zalando.de/sale", ("EU", "DE")),
            ("https://www.example.es/rebajas", ("EU", "ES")),
            ("https://www.example.it/saldi", ("EU", "IT")),
            ("https://www.example.nl/uitverkoop", ("EU",)),
        ],
    )
    def test_detect_regions_from_domain(self, url: str, expected: tuple[str, ...]) -> None:
        assert detect_regions(url) == expected

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://cdn.example.com/img/runner.jpg", True),
            ("https://cdn.example.com/icons/star.svg", False),
            ("https://cdn.example.com/brand-logo.png", False),
            ("https://shop.example.com/product/123", False),
            ("https://shop.example.com/en/item.html", False),
            ("https://cdn.crobox.io/overlay.png", False),
            ("", False),
            (None, False),
        ],
    )
    def test_product_image_filter(self, url: str | None, expected: bool) -> None:
        assert is_valid_product_image(url) is expected


# ---------------------------------------------------------------------------
# HTML listing parsing
# ---------------------------------------------------------------------------


class TestHTMLParsingLayer:

    def _extract(self, **overrides: object) -> list[RawProductRecord]:
        options: dict[str, object] = {
            "soup": BeautifulSoup(LISTING_HTML, "html.parser"),
            "selectors": SELECTORS,
            "page_url": "https://shop.example.es/rebajas",
            "source": "shop-example",
        }
        options.update(overrides)
        return HTMLParsingLayer.extract_products(**options)  # type: ignore[arg-type]

    def test_extracts_named_cards_and_drops_repeated_urls(self) -> None:
        records = self._extract()

        assert [record.name for record in records] == ["Nike Pegasus Runner", "Linen Shirt"]

    def test_card_fields_are_parsed(self) -> None:
        first = self._extract()[0]

        assert first.url == "https://shop.example.es/p/runner-1"
        assert first.original_price == pytest.approx(120.0)
        assert first.sale_price == pytest.approx(84.0)
        assert first.currency == "EUR"
        assert first.brand == "Nike"
        assert first.image_url == "https://cdn.example.com/img/runner.jpg"
        assert first.regions == ("EU", "ES")

    def test_missing_original_price_and_badge_image_are_left_empty(self) -> None:
        second = self._extract()[1]

        assert second.original_price is None
        assert second.sale_price == pytest.approx(25.99)
        assert second.image_url is None

    def test_configured_currency_category_and_regions_win(self) -> None:
        first = self._extract(currency="GBP", category="fashion", regions=("EU", "UK"))[0]

        assert first.currency == "GBP"
        assert first.category == "fashion"
        assert first.regions == ("EU", "UK")

    def test_no_matching_cards_yields_nothing(self) -> None:
        assert self._extract(selectors={**SELECTORS, "card": [".missing"]}) == []


# ---------------------------------------------------------------------------
# Model reply parsing
# ---------------------------------------------------------------------------


MODEL_REPLY = """Here are the discounted products I found:
```json
[
  {"name": "Linen Shirt", "originalPrice": "39,95 €", "salePrice": "25,99 €",
   "discount": "-35%", "url": "/es/en/linen-shirt-p1.html",
   "image": "https://static.zara.net/photos/shirt.jpg"},
  {"name": "Zara Wide Jeans", "originalPrice": 49.95, "salePrice": 29.95, "url": null},
  {"name": ""},
  "not a product"
]
```"""


class TestParseModelProducts:

    def _parse(self, reply: str, **overrides: object) -> list[RawProductRecord]:
        options: dict[str, object] = {
            "page_url": "https://www.zara.com/es/en/sale.html",
            "source": "zara",
            "currency": "EUR",
            "category": "fashion",
        }
        options.update(overrides)
        return parse_model_products(reply, **options)  # type: ignore[arg-type]

    def test_parses_the_first_json_array(self) -> None:
        records = self._parse(MODEL_REPLY)

        assert [record.name for record in records] == ["Linen Shirt", "Zara Wide Jeans"]
        shirt = records[0]
        assert shirt.url == "https://www.zara.com/es/en/linen-shirt-p1.html"
        assert shirt.original_price == pytest.approx(39.95)
        assert shirt.sale_price == pytest.approx(25.99)
        assert shirt.reported_discount == 35
        assert shirt.image_url == "https://static.zara.net/photos/shirt.jpg"
        assert shirt.category == "fashion"
        assert shirt.regions == ("GLOBAL", "US")

    def test_products_without_link_get_a_distinct_page_fragment(self) -> None:
        jeans = self._parse(MODEL_REPLY)[1]

        assert jeans.url == "https://www.zara.com/es/en/sale.html#zara-wide-jeans-29.95"
        assert jeans.brand == "Zara"
        assert jeans.reported_discount is None

    def test_configured_regions_are_used(self) -> None:
        records = self._parse(MODEL_REPLY, regions=("EU", "ES"))
        assert {record.regions for record in records} == {("EU", "ES")}

    @pytest.mark.parametrize(
        "reported, expected",
        [
            ("usd", "USD"),
            ("EUR (euro)", "EUR"),
            ("£ sterling", "GBP"),
            ("pounds sterling, I think", "EUR"),
            (None, "EUR"),
        ],
    )
    def test_model_currency_is_reduced_to_a_code(self, reported: object, expected: str) -> None:
        reply = json.dumps(
            [{"name": "Linen Shirt", "originalPrice": 40, "salePrice": 26, "currency": reported}]
        )

        [record] = self._parse(reply)

        assert record.currency == expected

    @pytest.mark.parametrize(
        "reply",
        ["I could not find any discounted products.", "[not json at all]", "", "{}"],
    )
    def test_reply_without_a_product_array_yields_nothing(self, reply: str) -> None:
        assert self._parse(reply) == []

    def test_dedupe_on_name_and_sale_price(self) -> None:
        records = [
            RawProductRecord(name="Linen Shirt", url="u1", original_price=39.95, sale_price=25.99, source="zara"),
            RawProductRecord(name="LINEN SHIRT", url="u2", original_price=39.95, sale_price=25.99, source="zara"),
            RawProductRecord(name="Linen Shirt", url="u3", original_price=39.95, sale_price=19.99, source="zara"),
        ]

        assert [record.url for record in dedupe_products(records)] == ["u1", "u3"]
