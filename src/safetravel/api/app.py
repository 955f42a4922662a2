"""FastAPI application for district rankings and travel recommendations.

Provides REST API endpoints for:
- Top 10 coolest and cleanest districts
- Travel recommendations between a location and a district
- Liveness and readiness checks

Example:
    >>> from safetravel.api import create_app
    >>> app = create_app()
    >>> # Run with: uvicorn safetravel.api.app:app
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from safetravel import __version__
from safetravel.api.handlers import TravelAdvisor
from safetravel.api.schemas import (
    ErrorResponse,
    HealthResponse,
    TopDistrictsResponse,
    TravelRecommendationRequest,
    TravelRecommendationResponse,
)
from safetravel.cache.refresh import PeriodicRefresher, RefreshScheduler
from safetravel.cache.service import WeatherDataService, create_weather_service
from safetravel.config import READINESS_STALENESS_THRESHOLD, Settings
from safetravel.domain.exceptions import (
    DataUnavailableError,
    InvalidTravelDateError,
    RegionNotFoundError,
)

logger = logging.getLogger(__name__)

API_VERSION = __version__


def _error(status_code: int, error: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message, detail=detail).model_dump(),
    )


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[WeatherDataService] = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        settings: Runtime settings. Read from the environment if omitted.
        service: Pre-built data service. Built from settings on startup if
            omitted.

    Returns:
        Configured FastAPI application
    """
    settings = settings or Settings.from_env()

    app = FastAPI(
        title="SafeTravel API",
        description="Coolest and cleanest districts of Bangladesh, and whether to travel there",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.advisor = TravelAdvisor(service) if service is not None else None
    app.state.scheduler = None

    def get_advisor() -> TravelAdvisor:
        if app.state.advisor is None:
            raise HTTPException(status_code=503, detail="Service is starting up.")
        return app.state.advisor

    @app.on_event("startup")
    async def startup_event():
        """Build the data service and start the refresh scheduler."""
        if app.state.advisor is None:
            app.state.advisor = TravelAdvisor(create_weather_service(settings))
            logger.info("Weather data service initialized")

        if settings.enable_scheduler:
            refresher = PeriodicRefresher(app.state.advisor.service)
            app.state.scheduler = RefreshScheduler(
                refresher, interval_seconds=settings.refresh_interval_seconds
            )
            app.state.scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop the scheduler, cancelling any in-flight refresh."""
        if app.state.scheduler is not None:
            app.state.scheduler.stop()
            app.state.scheduler = None

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with custom response."""
        return _error(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error(400, "ValidationError", "Invalid request.", str(exc.errors()))

    @app.exception_handler(InvalidTravelDateError)
    async def invalid_date_handler(request: Request, exc: InvalidTravelDateError):
        return _error(400, "InvalidTravelDate", str(exc))

    @app.exception_handler(RegionNotFoundError)
    async def region_not_found_handler(request: Request, exc: RegionNotFoundError):
        return _error(404, "DistrictNotFound", str(exc))

    @app.exception_handler(DataUnavailableError)
    async def data_unavailable_handler(request: Request, exc: DataUnavailableError):
        logger.error(f"Data unavailable for {request.url.path}: {exc}")
        return _error(503, "ServiceUnavailable", str(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error for {request.url.path}")
        return _error(500, "InternalServerError", "An unexpected error occurred.")

    @app.get("/", tags=["info"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "SafeTravel API",
            "version": API_VERSION,
            "docs": "/docs",
        }

    @app.get(
        "/api/v1/districts/top-10",
        response_model=TopDistrictsResponse,
        responses={
            503: {"model": ErrorResponse, "description": "Weather data unavailable"},
        },
        tags=["districts"],
    )
    def top_districts():
        """Top 10 districts, coolest first, cleaner air breaking ties."""
        return get_advisor().get_top_districts()

    @app.post(
        "/api/v1/travel/recommendation",
        response_model=TravelRecommendationResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Invalid request"},
            404: {"model": ErrorResponse, "description": "District not found"},
            503: {"model": ErrorResponse, "description": "Weather data unavailable"},
        },
        tags=["travel"],
    )
    def travel_recommendation(request: TravelRecommendationRequest):
        """Recommend a trip only if the destination is both cooler and cleaner."""
        return get_advisor().get_recommendation(request)

    @app.get("/health/live", tags=["health"])
    async def liveness():
        return {"status": "alive"}

    @app.get(
        "/health/ready",
        response_model=HealthResponse,
        responses={503: {"model": HealthResponse, "description": "No fresh data"}},
        tags=["health"],
    )
    def readiness():
        """Ready once cached data exists and is under 30 minutes old."""
        metadata = get_advisor().get_health()
        if metadata is None:
            return JSONResponse(
                status_code=503,
                content=HealthResponse(status="unhealthy", version=API_VERSION).model_dump(mode="json"),
            )

        response = HealthResponse(
            status="healthy",
            last_updated=metadata.last_updated,
            regions_cached=metadata.regions_cached,
            is_cache_healthy=metadata.is_healthy,
            version=API_VERSION,
        )
        if datetime.utcnow() - metadata.last_updated > READINESS_STALENESS_THRESHOLD:
            response.status = "unhealthy"
            return JSONResponse(status_code=503, content=response.model_dump(mode="json"))
        return response

    return app


# Default app instance for uvicorn
app = create_app()
