"""
JSON roster loader for scrape extractors.
"""

from __future__ import annotations

import json
from pathlib import Path
from urllib.parse import urljoin

from app.scraping.config.models import ExtractorConfig
from app.scraping.types import ExtractorVariant


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


def resolve_config_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (_project_root() / candidate).resolve()


def load_extractor_configs(*, config_path: str) -> list[ExtractorConfig]:
    """
    Load the ordered extractor roster from a JSON file.

    Entries keep their file order, which is the order a cycle runs them in.
    Entries without a name or pages are skipped; an unknown variant or a
    repeated name is a configuration error.
    """

    path = resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Extractor roster file not found: {path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    extractors = raw_data.get("extractors", [])
    if not isinstance(extractors, list):
        raise ValueError("Invalid extractor roster: 'extractors' must be a list.")

    parsed: list[ExtractorConfig] = []
    seen_names: set[str] = set()
    for entry in extractors:
        if not isinstance(entry, dict):
            continue

        name = str(entry.get("name", "")).strip()
        base_url = str(entry.get("base_url", "")).strip()
        pages = _normalize_pages(base_url=base_url, pages=entry.get("pages", []))
        if not name or not pages:
            continue

        if name.lower() in seen_names:
            raise ValueError(f"Duplicate extractor name '{name}' in roster.")
        seen_names.add(name.lower())

        variant = str(entry.get("variant", ExtractorVariant.SELECTOR)).strip().lower()
        if variant not in ExtractorVariant.ALL:
            allowed = ", ".join(sorted(ExtractorVariant.ALL))
            raise ValueError(
                f"Unknown variant='{variant}' for extractor='{name}'. Allowed variants: {allowed}."
            )

        parsed.append(
            ExtractorConfig(
                name=name,
                variant=variant,
                extractor_type=str(entry.get("extractor_type", variant)).strip().lower(),
                source=_optional_str(entry.get("source")) or name,
                pages=pages,
                selectors=_normalize_selectors(entry.get("selectors", {})),
                enabled=_optional_bool(entry.get("enabled"), True),
                max_records=_optional_positive_int(entry.get("max_records")),
                timeout_ms=_optional_positive_int(entry.get("timeout_ms")),
                currency=_optional_str(entry.get("currency")),
                category=_optional_str(entry.get("category")),
                regions=_normalize_regions(entry.get("regions", [])),
                headers=_normalize_headers(entry.get("headers", {})),
                user_agent=_optional_str(entry.get("user_agent")),
                extractor_class=_optional_str(entry.get("extractor_class")),
            )
        )

    return parsed


def _normalize_pages(*, base_url: str, pages: object) -> list[str]:
    if isinstance(pages, str):
        pages = [pages]
    if not isinstance(pages, list):
        return []

    normalized: list[str] = []
    for value in pages:
        if not isinstance(value, str) or not value.strip():
            continue
        raw_url = value.strip()
        if raw_url.startswith(("http://", "https://")):
            normalized.append(raw_url)
        elif base_url:
            normalized.append(urljoin(f"{base_url.rstrip('/')}/", raw_url.lstrip("/")))
    return normalized


def _normalize_selectors(selectors: object) -> dict[str, list[str]]:
    if not isinstance(selectors, dict):
        return {}

    normalized: dict[str, list[str]] = {}
    for key, value in selectors.items():
        if not isinstance(key, str):
            continue
        if isinstance(value, str):
            selector_list = [value.strip()] if value.strip() else []
        elif isinstance(value, list):
            selector_list = [
                item.strip()
                for item in value
                if isinstance(item, str) and item.strip()
            ]
        else:
            selector_list = []
        normalized[key.strip().lower()] = selector_list
    return normalized


def _normalize_regions(regions: object) -> tuple[str, ...]:
    if not isinstance(regions, list):
        return ()
    return tuple(
        item.strip().upper()
        for item in regions
        if isinstance(item, str) and item.strip()
    )


def _normalize_headers(headers: object) -> dict[str, str]:
    if not isinstance(headers, dict):
        return {}

    return {
        key.strip(): value.strip()
        for key, value in headers.items()
        if isinstance(key, str) and isinstance(value, str) and key.strip() and value.strip()
    }


def _optional_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _optional_positive_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def _optional_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default
