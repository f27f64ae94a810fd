"""
Environment-driven database settings shared by the API, scripts and Alembic.
"""

from __future__ import annotations

import os
from pathlib import Path

_CLOUD_ENVIRONMENTS = {"prod", "production", "staging", "cloud"}


def load_env_files() -> None:
    """
    Read KEY=VALUE lines from `.env` then `.env.local` at the project root.

    Variables already present in the process environment win. A leading
    ``export`` and surrounding quotes are accepted.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.is_file():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if line.startswith("export "):
                line = line[len("export "):].lstrip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = (part.strip() for part in line.split("=", 1))
            if key and key not in os.environ:
                os.environ[key] = value.strip('"').strip("'")


def normalize_postgres_url(url: str) -> str:
    """
    Point bare postgres URLs at the psycopg 3 driver.
    """

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def resolve_database_url() -> str:
    """
    Pick the product and ledger database URL.

    Order:
    1) DATABASE_URL
    2) CLOUD_DATABASE_URL when ENVIRONMENT names a deployed environment
    3) LOCAL_DATABASE_URL
    """

    load_env_files()

    candidates = [os.getenv("DATABASE_URL")]
    if os.getenv("ENVIRONMENT", "local").strip().lower() in _CLOUD_ENVIRONMENTS:
        candidates.append(os.getenv("CLOUD_DATABASE_URL"))
    candidates.append(os.getenv("LOCAL_DATABASE_URL"))

    for candidate in candidates:
        if candidate and candidate.strip():
            return normalize_postgres_url(candidate.strip())

    raise RuntimeError(
        "No database URL configured. Set DATABASE_URL, or LOCAL_DATABASE_URL / "
        "CLOUD_DATABASE_URL with ENVIRONMENT."
    )
