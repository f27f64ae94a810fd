"""
Run one scrape cycle from the CLI and print the cycle result as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from app.config import (
    get_cost_governor_settings,
    get_scrape_scheduler_settings,
    get_vision_settings,
)
from app.scraping.config import load_extractor_configs
from app.scraping.errors import ScrapeCoreError
from app.scraping.registry import ExtractorDependencies, ExtractorRegistry
from app.scraping.storage import InMemoryProductStore, ProductStore
from app.services.cost_governor import CostGovernor, get_cost_governor
from app.services.scrape_orchestrator import ScrapeOrchestrator


def _build_store(*, dry_run: bool) -> ProductStore:
    if dry_run:
        return InMemoryProductStore()

    from app.scraping.storage import SQLAlchemyProductStore
    from db.session import SessionLocal

    return SQLAlchemyProductStore(session_factory=SessionLocal)


def _build_governor(*, dry_run: bool) -> CostGovernor:
    if dry_run:
        return CostGovernor(settings=get_cost_governor_settings())
    return get_cost_governor()


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one deal scrape cycle.")
    parser.add_argument(
        "--extractor",
        dest="extractors",
        action="append",
        default=None,
        help="Extractor name from the roster file. Repeat to run several.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Keep accepted products in memory and skip the cost ledger database.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    settings = get_scrape_scheduler_settings()
    configs = load_extractor_configs(config_path=settings.roster_config_path)
    roster = ExtractorRegistry().build_roster(
        configs=configs,
        dependencies=ExtractorDependencies(
            scheduler_settings=settings,
            vision_settings=get_vision_settings(),
        ),
        only=args.extractors,
    )
    if not roster:
        print("No enabled extractors matched the run criteria.", file=sys.stderr)
        return 2

    governor = _build_governor(dry_run=args.dry_run)
    orchestrator = ScrapeOrchestrator(
        roster=roster,
        store=_build_store(dry_run=args.dry_run),
        cost_governor=governor,
        settings=settings,
    )
    try:
        result = orchestrator.run_cycle()
    except ScrapeCoreError as exc:
        print(f"Scrape cycle failed: {exc}", file=sys.stderr)
        return 1
    finally:
        governor.close()

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
