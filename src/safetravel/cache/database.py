"""DuckDB-backed durable cache for safetravel.

Every process pointed at the same database file shares the cached ranking
snapshot and district forecasts. Entries are stored as JSON payloads with
an expiry timestamp; expired entries read as missing.
"""

import json
import logging
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import duckdb

from safetravel.cache.base import WeatherDataCache
from safetravel.cache.models import (
    DISTRICT_FORECAST_KEY_PATTERN,
    RANKINGS_KEY,
    CacheMetadata,
    RankingSnapshot,
    RegionForecast,
    district_forecast_key,
)
from safetravel.config import DEFAULT_CACHE_TTL, DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key VARCHAR PRIMARY KEY,
    payload VARCHAR NOT NULL,
    generated_at TIMESTAMP NOT NULL,
    expires_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries(expires_at);
"""


class DuckDBWeatherCache(WeatherDataCache):
    """Durable weather cache stored in a DuckDB file.

    Example:
        >>> cache = DuckDBWeatherCache(Path("data/cache/safetravel.duckdb"))
        >>> cache.set_rankings(snapshot)
        >>> cache.get_rankings() == snapshot
        True
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        ttl: timedelta = DEFAULT_CACHE_TTL,
    ):
        """Initialize database connection.

        Args:
            db_path: Path to DuckDB file. Creates if doesn't exist.
            ttl: Lifetime of each written entry
        """
        self.db_path = Path(db_path or DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ttl = ttl

        self._conn = None
        self._lock = threading.Lock()
        self._init_schema()

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get database connection (lazy initialization with retry)."""
        if self._conn is None:
            self._conn = self._connect_with_retry()
        return self._conn

    def _connect_with_retry(self, max_retries: int = 3) -> duckdb.DuckDBPyConnection:
        """Connect to database with retry logic for lock handling."""
        last_error = None
        for attempt in range(max_retries):
            try:
                return duckdb.connect(str(self.db_path))
            except duckdb.IOException as e:
                last_error = e
                if "lock" in str(e).lower() and attempt < max_retries - 1:
                    wait_time = 0.5 * (2 ** attempt)  # Exponential backoff
                    logger.warning(f"Database locked, retrying in {wait_time}s...")
                    time.sleep(wait_time)
                else:
                    raise
        raise last_error

    def _init_schema(self) -> None:
        with self._lock:
            for statement in SCHEMA_SQL.split(";"):
                statement = statement.strip()
                if statement:
                    self.conn.execute(statement)
        logger.info(f"Cache database initialized at {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # -------------------------------------------------------------------------
    # Key/value primitives
    # -------------------------------------------------------------------------

    def _get(self, key: str) -> Optional[dict]:
        with self._lock:
            row = self.conn.execute(
                "SELECT payload FROM cache_entries WHERE key = ? AND expires_at > ?",
                [key, datetime.utcnow()],
            ).fetchone()

        if row is None:
            logger.debug(f"Cache MISS for key {key}")
            return None

        logger.debug(f"Cache HIT for key {key}")
        return json.loads(row[0])

    def _set(self, key: str, payload: dict, generated_at: datetime) -> None:
        now = datetime.utcnow()
        with self._lock:
            self.conn.execute(
                """
                INSERT INTO cache_entries (key, payload, generated_at, expires_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (key)
                DO UPDATE SET
                    payload = EXCLUDED.payload,
                    generated_at = EXCLUDED.generated_at,
                    expires_at = EXCLUDED.expires_at,
                    updated_at = EXCLUDED.updated_at
                """,
                [key, json.dumps(payload), generated_at, now + self.ttl, now],
            )

    # -------------------------------------------------------------------------
    # Weather cache operations
    # -------------------------------------------------------------------------

    def get_rankings(self) -> Optional[RankingSnapshot]:
        payload = self._get(RANKINGS_KEY)
        return RankingSnapshot.from_dict(payload) if payload is not None else None

    def set_rankings(self, snapshot: RankingSnapshot) -> None:
        self._set(RANKINGS_KEY, snapshot.to_dict(), snapshot.generated_at)
        logger.debug(f"Cached rankings in DuckDB with TTL {self.ttl}")

    def get_region_forecast(self, region_id: str) -> Optional[RegionForecast]:
        payload = self._get(district_forecast_key(region_id))
        return RegionForecast.from_dict(payload) if payload is not None else None

    def set_region_forecast(self, region_id: str, forecast: RegionForecast) -> None:
        self._set(district_forecast_key(region_id), forecast.to_dict(), forecast.generated_at)

    def get_metadata(self) -> Optional[CacheMetadata]:
        now = datetime.utcnow()
        district_pattern = DISTRICT_FORECAST_KEY_PATTERN.format("%")

        with self._lock:
            rankings_row = self.conn.execute(
                "SELECT generated_at, expires_at FROM cache_entries WHERE key = ?",
                [RANKINGS_KEY],
            ).fetchone()
            forecast_row = self.conn.execute(
                """
                SELECT COUNT(*) FILTER (WHERE expires_at > ?), MAX(generated_at)
                FROM cache_entries
                WHERE key LIKE ?
                """,
                [now, district_pattern],
            ).fetchone()

        regions_cached, latest_forecast = forecast_row
        if rankings_row is None and latest_forecast is None:
            return None

        if rankings_row is not None:
            last_updated, expires_at = rankings_row
            is_healthy = now <= expires_at
        else:
            last_updated, is_healthy = latest_forecast, False

        return CacheMetadata(
            last_updated=last_updated,
            is_healthy=is_healthy,
            regions_cached=regions_cached or 0,
        )

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def cleanup_expired(self) -> int:
        """Remove expired entries.

        Returns:
            Number of rows deleted
        """
        now = datetime.utcnow()
        with self._lock:
            deleted = self.conn.execute(
                "SELECT COUNT(*) FROM cache_entries WHERE expires_at <= ?",
                [now],
            ).fetchone()[0]
            self.conn.execute("DELETE FROM cache_entries WHERE expires_at <= ?", [now])
        logger.info(f"Cleaned up {deleted} expired cache entries")
        return deleted

    def get_stats(self) -> dict:
        """Get cache statistics."""
        with self._lock:
            total, live = self.conn.execute(
                "SELECT COUNT(*), COUNT(*) FILTER (WHERE expires_at > ?) FROM cache_entries",
                [datetime.utcnow()],
            ).fetchone()

        return {
            "entry_count": total,
            "live_entry_count": live,
            "db_path": str(self.db_path),
        }
