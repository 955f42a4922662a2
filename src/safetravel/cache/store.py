"""Durable cache with a one-way fallback to process-local memory."""

import logging
import threading
from typing import Callable, Optional, TypeVar

import duckdb

from safetravel.cache.base import WeatherDataCache
from safetravel.cache.database import DuckDBWeatherCache
from safetravel.cache.memory import InMemoryWeatherCache
from safetravel.cache.models import CacheMetadata, RankingSnapshot, RegionForecast
from safetravel.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that mean the durable store itself is unusable
DURABLE_STORE_ERRORS = (duckdb.Error, OSError)


class ResilientWeatherCache(WeatherDataCache):
    """Serves from a durable store until it fails, then from memory.

    The switch happens on the first durable-store error and lasts for the
    life of the process. Neither reads nor writes raise because of a
    durable-store failure; the failing call is answered by the fallback.

    Attributes:
        durable: Durable store, or None to start in fallback mode
        fallback: Process-local store
    """

    def __init__(
        self,
        durable: Optional[WeatherDataCache],
        fallback: Optional[InMemoryWeatherCache] = None,
    ):
        self.durable = durable
        self.fallback = fallback or InMemoryWeatherCache()
        self._use_fallback = durable is None
        self._switch_lock = threading.Lock()

        if durable is None:
            logger.warning("Durable cache not configured, using in-memory fallback")

    @property
    def using_fallback(self) -> bool:
        return self._use_fallback

    def _switch_to_fallback(self, operation: str, error: Exception) -> None:
        with self._switch_lock:
            if not self._use_fallback:
                self._use_fallback = True
                logger.warning(
                    f"Durable cache error during {operation} ({error}); "
                    f"switched to in-memory fallback for the rest of this process"
                )

    def _call(
        self,
        operation: str,
        durable_call: Callable[[WeatherDataCache], T],
        fallback_call: Callable[[InMemoryWeatherCache], T],
    ) -> T:
        if not self._use_fallback:
            try:
                return durable_call(self.durable)
            except DURABLE_STORE_ERRORS as e:
                logger.error(f"Durable cache error during {operation}: {e}")
                self._switch_to_fallback(operation, e)
        return fallback_call(self.fallback)

    def get_rankings(self) -> Optional[RankingSnapshot]:
        return self._call(
            "get_rankings", lambda c: c.get_rankings(), lambda c: c.get_rankings()
        )

    def set_rankings(self, snapshot: RankingSnapshot) -> None:
        self._call(
            "set_rankings",
            lambda c: c.set_rankings(snapshot),
            lambda c: c.set_rankings(snapshot),
        )

    def get_region_forecast(self, region_id: str) -> Optional[RegionForecast]:
        return self._call(
            "get_region_forecast",
            lambda c: c.get_region_forecast(region_id),
            lambda c: c.get_region_forecast(region_id),
        )

    def set_region_forecast(self, region_id: str, forecast: RegionForecast) -> None:
        self._call(
            "set_region_forecast",
            lambda c: c.set_region_forecast(region_id, forecast),
            lambda c: c.set_region_forecast(region_id, forecast),
        )

    def get_metadata(self) -> Optional[CacheMetadata]:
        return self._call(
            "get_metadata", lambda c: c.get_metadata(), lambda c: c.get_metadata()
        )

    def close(self) -> None:
        if self.durable is not None:
            try:
                self.durable.close()
            except DURABLE_STORE_ERRORS as e:
                logger.warning(f"Error closing durable cache: {e}")


def create_weather_cache(settings: Settings) -> ResilientWeatherCache:
    """Build the cache stack described by settings.

    A durable store that cannot be opened at startup leaves the cache in
    fallback mode instead of failing the process.
    """
    if not settings.use_durable_cache:
        return ResilientWeatherCache(durable=None)

    try:
        durable = DuckDBWeatherCache(settings.db_path)
    except DURABLE_STORE_ERRORS as e:
        logger.error(f"Failed to open DuckDB cache at {settings.db_path}, falling back to memory: {e}")
        return ResilientWeatherCache(durable=None)

    logger.info(f"Using DuckDB cache at {settings.db_path}")
    return ResilientWeatherCache(durable=durable)
