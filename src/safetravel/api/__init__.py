"""HTTP API for safetravel.

This module provides:

- create_app: Factory function to create the FastAPI application
- TravelAdvisor: Query handling shared by the routes
- Request and response schemas

Note: create_app is lazy-loaded so schemas and the advisor can be imported
without building the default application.
"""

from safetravel.api.handlers import TravelAdvisor
from safetravel.api.schemas import (
    ErrorResponse,
    HealthResponse,
    RankedDistrictResponse,
    ResponseMetadata,
    TopDistrictsResponse,
    TravelRecommendationRequest,
    TravelRecommendationResponse,
    WeatherComparison,
)


def __getattr__(name):
    """Lazy load the FastAPI application factory."""
    if name == "create_app":
        from safetravel.api.app import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "create_app",
    "ErrorResponse",
    "HealthResponse",
    "RankedDistrictResponse",
    "ResponseMetadata",
    "TopDistrictsResponse",
    "TravelAdvisor",
    "TravelRecommendationRequest",
    "TravelRecommendationResponse",
    "WeatherComparison",
]
