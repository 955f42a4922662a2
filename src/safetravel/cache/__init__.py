"""Data caching layer for safetravel.

Rankings and per-district forecasts are cached in DuckDB, with a one-way
fallback to process memory if the database becomes unusable.

A one-off refresh can be run via:
    python -m safetravel.cache.refresh
"""

from safetravel.cache.base import WeatherDataCache
from safetravel.cache.database import DuckDBWeatherCache
from safetravel.cache.memory import InMemoryWeatherCache
from safetravel.cache.models import (
    RANKINGS_KEY,
    CacheMetadata,
    RankingSnapshot,
    RegionForecast,
    district_forecast_key,
)
from safetravel.cache.refresh import (
    PeriodicRefresher,
    RefreshResult,
    RefreshScheduler,
    get_cache_status,
)
from safetravel.cache.service import (
    SingleFlight,
    WeatherDataService,
    create_weather_service,
)
from safetravel.cache.store import ResilientWeatherCache, create_weather_cache

__all__ = [
    "RANKINGS_KEY",
    "CacheMetadata",
    "DuckDBWeatherCache",
    "InMemoryWeatherCache",
    "PeriodicRefresher",
    "RankingSnapshot",
    "RefreshResult",
    "RefreshScheduler",
    "RegionForecast",
    "ResilientWeatherCache",
    "SingleFlight",
    "WeatherDataCache",
    "WeatherDataService",
    "create_weather_cache",
    "create_weather_service",
    "district_forecast_key",
    "get_cache_status",
]
