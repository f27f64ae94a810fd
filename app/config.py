"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_decimal_env(name: str, default: str) -> Decimal:
    """
    Read a money amount as Decimal, keeping the exact decimal text.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return Decimal(default)
    try:
        return Decimal(raw_value.strip())
    except InvalidOperation:
        return Decimal(default)


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class ScrapeSchedulerSettings:
    """
    Runtime settings for the scrape cycle and the selector page fetcher.
    """

    roster_config_path: str = "app/scraping/config/extractors.json"
    cycle_cron: str = "0 */6 * * *"
    retention_days: int = 7
    inter_extractor_delay_ms: int = 10_000
    default_timeout_ms: int = 60_000
    default_max_records: int = 50
    initial_run_delay_seconds: float = 30.0
    autostart: bool = True
    user_agent: str = "DealRadarBot/1.0 (+https://example.com/bot)"
    http_timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class CostGovernorSettings:
    """
    Daily AI spend thresholds and provider pricing, in USD.
    """

    max_daily_cost_usd: Decimal = Decimal("1.00")
    alert_threshold_usd: Decimal = Decimal("0.50")
    input_rate_per_mtok: Decimal = Decimal("3.00")
    output_rate_per_mtok: Decimal = Decimal("15.00")
    ledger_max_attempts: int = 5
    ledger_backoff_initial_seconds: float = 0.5


@dataclass(frozen=True)
class VisionSettings:
    """
    Vision model and browser capture settings.
    """

    adapter: str = "openai"
    model: str = "gpt-4o"
    max_tokens: int = 4096
    api_key: str | None = None
    base_url: str | None = None
    text_fallback_min_products: int = 10
    viewport_width: int = 1920
    viewport_height: int = 1080
    max_page_text_chars: int = 15_000


@lru_cache(maxsize=1)
def get_scrape_scheduler_settings() -> ScrapeSchedulerSettings:
    """
    Return cached scrape scheduling settings from environment variables.
    """

    return ScrapeSchedulerSettings(
        roster_config_path=_get_str_env(
            "SCRAPE_ROSTER_CONFIG_PATH",
            "app/scraping/config/extractors.json",
        ),
        cycle_cron=_get_str_env("SCRAPE_CYCLE_CRON", "0 */6 * * *"),
        retention_days=max(1, _get_int_env("SCRAPE_RETENTION_DAYS", 7)),
        inter_extractor_delay_ms=max(0, _get_int_env("SCRAPE_INTER_EXTRACTOR_DELAY_MS", 10_000)),
        default_timeout_ms=max(1_000, _get_int_env("SCRAPE_DEFAULT_TIMEOUT_MS", 60_000)),
        default_max_records=max(1, _get_int_env("SCRAPE_DEFAULT_MAX_RECORDS", 50)),
        initial_run_delay_seconds=_get_float_env("SCRAPE_INITIAL_RUN_DELAY_SECONDS", 30.0),
        autostart=_get_bool_env("SCRAPE_AUTOSTART", True),
        user_agent=_get_str_env(
            "SCRAPE_USER_AGENT",
            "DealRadarBot/1.0 (+https://example.com/bot)",
        ),
        http_timeout_seconds=max(1.0, _get_float_env("SCRAPE_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("SCRAPE_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(
            0.1,
            _get_float_env("SCRAPE_HTTP_BACKOFF_INITIAL_SECONDS", 0.5),
        ),
        backoff_multiplier=max(1.0, _get_float_env("SCRAPE_HTTP_BACKOFF_MULTIPLIER", 2.0)),
    )


@lru_cache(maxsize=1)
def get_cost_governor_settings() -> CostGovernorSettings:
    """
    Return cached cost governor settings from environment variables.

    ``MAX_DAILY_API_COST`` and ``ALERT_THRESHOLD`` keep the names operators
    already use for the daily budget.
    """

    return CostGovernorSettings(
        max_daily_cost_usd=_get_decimal_env("MAX_DAILY_API_COST", "1.00"),
        alert_threshold_usd=_get_decimal_env("ALERT_THRESHOLD", "0.50"),
        input_rate_per_mtok=_get_decimal_env("AI_INPUT_RATE_PER_MTOK", "3.00"),
        output_rate_per_mtok=_get_decimal_env("AI_OUTPUT_RATE_PER_MTOK", "15.00"),
        ledger_max_attempts=max(1, _get_int_env("COST_LEDGER_MAX_ATTEMPTS", 5)),
        ledger_backoff_initial_seconds=max(
            0.0,
            _get_float_env("COST_LEDGER_BACKOFF_INITIAL_SECONDS", 0.5),
        ),
    )


@lru_cache(maxsize=1)
def get_vision_settings() -> VisionSettings:
    """
    Return cached vision extractor settings from environment variables.
    """

    return VisionSettings(
        adapter=_get_str_env("VISION_ADAPTER", "openai").lower(),
        model=_get_str_env("VISION_MODEL", "gpt-4o"),
        max_tokens=max(256, _get_int_env("VISION_MAX_TOKENS", 4096)),
        api_key=_get_optional_str_env("OPENAI_API_KEY"),
        base_url=_get_optional_str_env("OPENAI_BASE_URL"),
        text_fallback_min_products=max(0, _get_int_env("VISION_TEXT_FALLBACK_MIN_PRODUCTS", 10)),
        viewport_width=max(320, _get_int_env("VISION_VIEWPORT_WIDTH", 1920)),
        viewport_height=max(320, _get_int_env("VISION_VIEWPORT_HEIGHT", 1080)),
        max_page_text_chars=max(1_000, _get_int_env("VISION_MAX_PAGE_TEXT_CHARS", 15_000)),
    )
