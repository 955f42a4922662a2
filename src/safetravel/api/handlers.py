"""Request handling behind the HTTP routes.

TravelAdvisor turns service results into response schemas and raises the
domain exceptions that the app maps to status codes. It has no FastAPI
dependency so it can be used and tested on its own.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from typing import Optional

from safetravel.api.schemas import (
    RankedDistrictResponse,
    ResponseMetadata,
    TopDistrictsResponse,
    TravelRecommendationRequest,
    TravelRecommendationResponse,
    WeatherComparison,
)
from safetravel.cache.models import CacheMetadata
from safetravel.cache.service import WeatherDataService
from safetravel.config import FORECAST_DAYS, TOP_DISTRICTS_COUNT
from safetravel.domain.exceptions import InvalidTravelDateError, RegionNotFoundError
from safetravel.domain.recommendation import TravelRecommendationPolicy
from safetravel.utils.geo import Coordinates

logger = logging.getLogger(__name__)


def forecast_window(today: Optional[date] = None) -> tuple[date, date]:
    """First and last date covered by the forecast, inclusive."""
    start = today or datetime.utcnow().date()
    return start, start + timedelta(days=FORECAST_DAYS - 1)


class TravelAdvisor:
    """Answers top-districts, recommendation and health queries.

    Attributes:
        service: Shared cache-aside data service
        policy: Recommendation rule
    """

    def __init__(
        self,
        service: WeatherDataService,
        policy: Optional[TravelRecommendationPolicy] = None,
    ):
        self.service = service
        self.policy = policy or TravelRecommendationPolicy()

    def get_top_districts(self, count: int = TOP_DISTRICTS_COUNT) -> TopDistrictsResponse:
        snapshot = self.service.get_rankings()
        period_start, period_end = forecast_window(snapshot.generated_at.date())

        districts = [
            RankedDistrictResponse(
                rank=ranked.rank,
                district_name=ranked.region.name,
                avg_temperature=round(ranked.avg_temperature_c, 1),
                avg_pm25=round(ranked.avg_pm25, 1),
                air_quality_category=ranked.air_quality_category,
            )
            for ranked in snapshot.rankings[:count]
        ]

        return TopDistrictsResponse(
            districts=districts,
            metadata=ResponseMetadata(
                generated_at=snapshot.generated_at,
                forecast_period=(
                    f"{period_start.isoformat()} to {period_end.isoformat()}"
                ),
                is_stale=self.service.is_stale(snapshot),
            ),
        )

    def get_recommendation(
        self, request: TravelRecommendationRequest
    ) -> TravelRecommendationResponse:
        """Compare the traveller's location with a destination district.

        Raises:
            InvalidTravelDateError: travel_date outside today..today+6
            RegionNotFoundError: Unknown destination_district
            DataUnavailableError: Either side could not be fetched
        """
        first_day, last_day = forecast_window()
        if not first_day <= request.travel_date <= last_day:
            raise InvalidTravelDateError(
                f"Travel date must be between {first_day.isoformat()} "
                f"and {last_day.isoformat()}."
            )

        region = self.service.directory.get_by_name(request.destination_district)
        if region is None:
            raise RegionNotFoundError(request.destination_district)

        origin_coordinates = Coordinates.create(request.latitude, request.longitude)

        with ThreadPoolExecutor(max_workers=2) as executor:
            origin_future = executor.submit(
                self.service.get_origin_sample, origin_coordinates, request.travel_date
            )
            destination_future = executor.submit(
                self.service.get_region_forecast, region, request.travel_date
            )
            origin = origin_future.result()
            destination = destination_future.result()

        result = self.policy.evaluate(origin, destination, region.name)
        logger.info(
            f"Recommendation for {region.name} on {request.travel_date}: "
            f"{'recommended' if result.is_recommended else 'not recommended'}"
        )

        return TravelRecommendationResponse(
            is_recommended=result.is_recommended,
            reason=result.reason,
            destination_district=region.name,
            comparison=WeatherComparison(
                origin_temperature=round(origin.temperature_c, 1),
                destination_temperature=round(destination.temperature_c, 1),
                origin_pm25=round(origin.pm25, 1),
                destination_pm25=round(destination.pm25, 1),
                origin_air_quality=origin.air_quality_category,
                destination_air_quality=destination.air_quality_category,
            ),
            travel_date=request.travel_date,
        )

    def get_health(self) -> Optional[CacheMetadata]:
        return self.service.cache.get_metadata()
