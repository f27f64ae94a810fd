"""
Prompt builders for vision-based product extraction.
"""

from __future__ import annotations

_EXTRACTION_RULES = """For each product, extract:
- Product name (clean, no sale text)
- Brand
- Original price (the crossed-out, "was" or RRP price)
- Sale price (the current price)
- Discount percentage exactly as shown on the page, or null if not shown
- Currency (GBP, EUR, USD)
- Product URL if known, otherwise null

Rules:
1. Only include products that show BOTH an original price AND a sale price.
2. Never estimate or derive an original price from a percentage.
3. Clean product names: remove "SALE", "Save X%" and price text.

Return only a JSON array, for example:
[
  {
    "name": "Nike Air Max 90",
    "brand": "Nike",
    "originalPrice": 120.00,
    "salePrice": 84.00,
    "discount": 30,
    "currency": "GBP",
    "url": null
  }
]

If no valid products are found, return []."""


def build_screenshot_prompt(*, category: str | None, currency: str) -> str:
    subject = f"{category} products" if category else "products"
    return (
        "You are analyzing a screenshot of an e-commerce sale page. "
        f"Extract all visible {subject} on sale. Prices are usually in {currency}.\n\n"
        f"{_EXTRACTION_RULES}"
    )


def build_text_prompt(
    *,
    page_text: str,
    links: list[str],
    category: str | None,
    currency: str,
    max_chars: int,
) -> str:
    subject = f"{category} products" if category else "products"
    link_block = "\n".join(links[:50]) or "(none)"
    return (
        "You are analyzing text extracted from an e-commerce sale page. "
        f"Extract all {subject} on sale. Prices are usually in {currency}.\n\n"
        f"Page text:\n{page_text[:max_chars]}\n\n"
        f"Product URLs found on the page (match products to them when possible):\n{link_block}\n\n"
        f"{_EXTRACTION_RULES}"
    )
