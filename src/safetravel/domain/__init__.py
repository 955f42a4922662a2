"""Domain models and pure algorithms (aggregation, ranking, recommendation)."""

from safetravel.domain.aggregator import WeatherAggregator
from safetravel.domain.exceptions import (
    DataUnavailableError,
    InsufficientDataError,
    InvalidTravelDateError,
    RefreshCancelledError,
    RegionNotFoundError,
    SafeTravelError,
)
from safetravel.domain.models import (
    AirQualityCategory,
    HourlyReading,
    RankedRegion,
    RecommendationResult,
    Region,
    Sample,
)
from safetravel.domain.ranking import DistrictRanker
from safetravel.domain.recommendation import TravelRecommendationPolicy

__all__ = [
    "AirQualityCategory",
    "DataUnavailableError",
    "DistrictRanker",
    "HourlyReading",
    "InsufficientDataError",
    "InvalidTravelDateError",
    "RankedRegion",
    "RecommendationResult",
    "RefreshCancelledError",
    "Region",
    "RegionNotFoundError",
    "Sample",
    "SafeTravelError",
    "TravelRecommendationPolicy",
    "WeatherAggregator",
]
