"""Contract shared by every weather cache store."""

from abc import ABC, abstractmethod
from typing import Optional

from safetravel.cache.models import CacheMetadata, RankingSnapshot, RegionForecast


class WeatherDataCache(ABC):
    """Storage for the ranking snapshot and per-district forecasts.

    Reads of missing or expired keys return None rather than raising.
    Setting a key replaces the previous value entirely.
    """

    @abstractmethod
    def get_rankings(self) -> Optional[RankingSnapshot]:
        pass

    @abstractmethod
    def set_rankings(self, snapshot: RankingSnapshot) -> None:
        pass

    @abstractmethod
    def get_region_forecast(self, region_id: str) -> Optional[RegionForecast]:
        pass

    @abstractmethod
    def set_region_forecast(self, region_id: str, forecast: RegionForecast) -> None:
        pass

    @abstractmethod
    def get_metadata(self) -> Optional[CacheMetadata]:
        pass

    def close(self) -> None:
        """Release any underlying resources."""
