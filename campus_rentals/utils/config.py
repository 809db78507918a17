"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional


_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str = "Campus Room Rentals"
    app_version: str = "1.0.0"
    database_path: Path = Path("data/campus_rentals.db")
    database_timeout_seconds: float = 5.0
    log_level: str = "INFO"
    admin_token: Optional[str] = None
    seed_demo_data: bool = True
    cost_quantum: Decimal = Decimal("0.01")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process from environment variables."""
    defaults = Settings()
    return Settings(
        app_name=os.getenv("APP_NAME", defaults.app_name),
        app_version=os.getenv("APP_VERSION", defaults.app_version),
        database_path=Path(os.getenv("DATABASE_PATH", str(defaults.database_path))),
        database_timeout_seconds=float(
            os.getenv("DATABASE_TIMEOUT_SECONDS", defaults.database_timeout_seconds)
        ),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        admin_token=os.getenv("ADMIN_TOKEN") or None,
        seed_demo_data=_env_bool("SEED_DEMO_DATA", defaults.seed_demo_data),
    )
