"""Process-local cache used when the durable store is unavailable."""

import logging
import threading
from datetime import datetime
from typing import Optional

from safetravel.cache.base import WeatherDataCache
from safetravel.cache.models import CacheMetadata, RankingSnapshot, RegionForecast

logger = logging.getLogger(__name__)


class InMemoryWeatherCache(WeatherDataCache):
    """Thread-safe in-memory cache.

    Applies its own expiry to the ranking snapshot (expires_at), independent
    of the service's staleness threshold.
    """

    def __init__(self):
        self._rankings: Optional[RankingSnapshot] = None
        self._forecasts: dict[str, RegionForecast] = {}
        self._lock = threading.Lock()

    def get_rankings(self) -> Optional[RankingSnapshot]:
        with self._lock:
            if self._rankings is None:
                return None
            if datetime.utcnow() > self._rankings.expires_at:
                logger.debug("In-memory rankings expired")
                return None
            return self._rankings

    def set_rankings(self, snapshot: RankingSnapshot) -> None:
        with self._lock:
            self._rankings = snapshot

    def get_region_forecast(self, region_id: str) -> Optional[RegionForecast]:
        with self._lock:
            return self._forecasts.get(region_id)

    def set_region_forecast(self, region_id: str, forecast: RegionForecast) -> None:
        with self._lock:
            self._forecasts[region_id] = forecast

    def get_metadata(self) -> Optional[CacheMetadata]:
        with self._lock:
            if self._rankings is None and not self._forecasts:
                return None

            if self._rankings is not None:
                last_updated = self._rankings.generated_at
                is_healthy = datetime.utcnow() <= self._rankings.expires_at
            else:
                last_updated = max(f.generated_at for f in self._forecasts.values())
                is_healthy = False

            return CacheMetadata(
                last_updated=last_updated,
                is_healthy=is_healthy,
                regions_cached=len(self._forecasts),
            )
