"""Pydantic schemas for API request/response validation."""

from datetime import date as date_type
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from safetravel.domain.models import AirQualityCategory


class TravelRecommendationRequest(BaseModel):
    """Request schema for a travel recommendation.

    Attributes:
        latitude: Latitude of the traveller's current location
        longitude: Longitude of the traveller's current location
        destination_district: District name, matched case-insensitively
        travel_date: Date of travel, today to six days ahead
    """

    latitude: float = Field(
        ...,
        ge=-90,
        le=90,
        description="Latitude in decimal degrees",
    )
    longitude: float = Field(
        ...,
        ge=-180,
        le=180,
        description="Longitude in decimal degrees",
    )
    destination_district: str = Field(
        ...,
        min_length=1,
        description="Destination district name",
    )
    travel_date: date_type = Field(
        ...,
        description="Date of travel (YYYY-MM-DD)",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "latitude": 23.7104,
                    "longitude": 90.4074,
                    "destination_district": "Sylhet",
                    "travel_date": "2026-10-21",
                }
            ]
        }
    }


class RankedDistrictResponse(BaseModel):
    """One row of the top districts table."""

    rank: int = Field(..., ge=1)
    district_name: str
    avg_temperature: float = Field(..., description="Average 14:00 temperature in °C")
    avg_pm25: float = Field(..., ge=0, description="Average 14:00 PM2.5 in μg/m³")
    air_quality_category: AirQualityCategory


class ResponseMetadata(BaseModel):
    """Freshness information attached to rankings.

    Attributes:
        generated_at: When the rankings were computed
        forecast_period: Covered dates, "YYYY-MM-DD to YYYY-MM-DD"
        is_stale: Whether the rankings are past the staleness threshold
    """

    generated_at: datetime
    forecast_period: str
    is_stale: bool


class TopDistrictsResponse(BaseModel):
    """Coolest and cleanest districts."""

    districts: list[RankedDistrictResponse]
    metadata: ResponseMetadata

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "districts": [
                        {
                            "rank": 1,
                            "district_name": "Bandarban",
                            "avg_temperature": 24.3,
                            "avg_pm25": 18.2,
                            "air_quality_category": "Moderate",
                        }
                    ],
                    "metadata": {
                        "generated_at": "2026-10-19T08:00:00",
                        "forecast_period": "2026-10-19 to 2026-10-25",
                        "is_stale": False,
                    },
                }
            ]
        }
    }


class WeatherComparison(BaseModel):
    """Conditions at origin and destination on the travel date."""

    origin_temperature: float
    destination_temperature: float
    origin_pm25: float
    destination_pm25: float
    origin_air_quality: AirQualityCategory
    destination_air_quality: AirQualityCategory


class TravelRecommendationResponse(BaseModel):
    """Travel recommendation.

    Attributes:
        is_recommended: True only if the destination is cooler and cleaner
        reason: Human-readable explanation
        destination_district: Canonical destination name
        comparison: Conditions at both ends
        travel_date: Date the comparison applies to
    """

    is_recommended: bool
    reason: str
    destination_district: str
    comparison: WeatherComparison
    travel_date: date_type


class HealthResponse(BaseModel):
    """Readiness check response.

    Attributes:
        status: 'healthy' or 'unhealthy'
        last_updated: When cached data was last generated
        regions_cached: Districts with a live forecast in the cache
        is_cache_healthy: Whether the cached rankings are unexpired
    """

    status: str = Field(
        default="healthy",
        description="Service status",
    )
    last_updated: Optional[datetime] = None
    regions_cached: int = 0
    is_cache_healthy: bool = False
    version: str = Field(
        default="1.0.0",
        description="API version",
    )


class ErrorResponse(BaseModel):
    """Error response schema.

    Attributes:
        error: Error type/code
        message: Human-readable error message
        detail: Additional error details
    """

    error: str = Field(
        ...,
        description="Error type",
    )
    message: str = Field(
        ...,
        description="Error message",
    )
    detail: Optional[str] = Field(
        default=None,
        description="Additional details",
    )
