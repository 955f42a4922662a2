"""Runtime constants and environment-driven settings."""

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from safetravel.utils.io import get_project_root

# Cached rankings older than this trigger a manual reload
CACHE_STALENESS_THRESHOLD = timedelta(minutes=12)

# TTL applied to cache entries (durable store and local fallback)
DEFAULT_CACHE_TTL = timedelta(minutes=25)

# Forecast window requested from Open-Meteo
FORECAST_DAYS = 7

# Number of districts returned by the top-N endpoint
TOP_DISTRICTS_COUNT = 10

# Hour of day (local time of the forecast series) used for daily values
TARGET_HOUR = 14

# Periodic refresh schedule and idempotency window
REFRESH_INTERVAL = timedelta(minutes=10)
MIN_REFRESH_INTERVAL = timedelta(minutes=5)

# Retry delays applied by the scheduler after a failed refresh
REFRESH_RETRY_DELAYS_SECONDS = (30, 60, 120)

# Readiness probe reports degraded when data is older than this
READINESS_STALENESS_THRESHOLD = timedelta(minutes=30)

# Per-request timeout for upstream HTTP calls, in seconds
REQUEST_TIMEOUT = 10

DEFAULT_DB_PATH = get_project_root() / "data" / "cache" / "safetravel.duckdb"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Service settings resolved at startup.

    Attributes:
        db_path: DuckDB file backing the durable cache
        use_durable_cache: Use DuckDB; False keeps everything in memory
        enable_scheduler: Start the background refresh scheduler with the API
        coalesce_reloads: Share one in-flight reload between concurrent misses
        refresh_interval_seconds: Seconds between scheduled refreshes
    """

    db_path: Path = DEFAULT_DB_PATH
    use_durable_cache: bool = True
    enable_scheduler: bool = True
    coalesce_reloads: bool = False
    refresh_interval_seconds: float = REFRESH_INTERVAL.total_seconds()

    @classmethod
    def from_env(cls, db_path: Optional[Path] = None) -> "Settings":
        """Build settings from SAFETRAVEL_* environment variables."""
        env_path = os.environ.get("SAFETRAVEL_DB_PATH")
        interval = os.environ.get("SAFETRAVEL_REFRESH_INTERVAL_SECONDS")

        return cls(
            db_path=db_path or (Path(env_path) if env_path else DEFAULT_DB_PATH),
            use_durable_cache=_env_flag("SAFETRAVEL_USE_DURABLE_CACHE", True),
            enable_scheduler=_env_flag("SAFETRAVEL_ENABLE_SCHEDULER", True),
            coalesce_reloads=_env_flag("SAFETRAVEL_COALESCE_RELOADS", False),
            refresh_interval_seconds=(
                float(interval) if interval else REFRESH_INTERVAL.total_seconds()
            ),
        )
