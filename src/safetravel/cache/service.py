"""Cache-aside weather data service.

The single place that decides between serving cached data and reloading
from Open-Meteo:

- Rankings are served from cache while younger than the staleness
  threshold (12 minutes); otherwise a manual reload fetches every district
  in two bulk requests, aggregates, ranks and writes the results back.
- District forecasts for a date are served from cache when present. A miss
  falls through to a single-district fetch, and if the ranking snapshot is
  stale a background reload is started so later requests hit the cache.
- Origin locations are arbitrary coordinates and are never cached.

Concurrent cache misses each run their own reload unless coalescing is
enabled, in which case they share one in-flight reload.
"""

import logging
import threading
from concurrent.futures import Future
from datetime import date, datetime, timedelta
from typing import Callable, Optional, TypeVar

from safetravel.cache.base import WeatherDataCache
from safetravel.cache.models import RankingSnapshot, RegionForecast
from safetravel.cache.store import create_weather_cache
from safetravel.config import (
    CACHE_STALENESS_THRESHOLD,
    DEFAULT_CACHE_TTL,
    FORECAST_DAYS,
    Settings,
)
from safetravel.domain.aggregator import WeatherAggregator
from safetravel.domain.exceptions import (
    DataUnavailableError,
    InsufficientDataError,
    RefreshCancelledError,
)
from safetravel.domain.models import Region, Sample
from safetravel.domain.ranking import DistrictRanker
from safetravel.pipelines.districts import DistrictDirectory
from safetravel.pipelines.open_meteo import OpenMeteoClient, UpstreamError
from safetravel.utils.geo import Coordinates

logger = logging.getLogger(__name__)

T = TypeVar("T")

RELOAD_KEY = "rankings"


def check_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    """Raise RefreshCancelledError if cancel_event has been set."""
    if cancel_event is not None and cancel_event.is_set():
        raise RefreshCancelledError(f"Reload cancelled {stage}")


class SingleFlight:
    """Runs at most one call per key; concurrent callers share its outcome."""

    def __init__(self):
        self._lock = threading.Lock()
        self._inflight: dict[str, Future] = {}

    def do(self, key: str, fn: Callable[[], T]) -> T:
        with self._lock:
            future = self._inflight.get(key)
            is_leader = future is None
            if is_leader:
                future = Future()
                self._inflight[key] = future

        if not is_leader:
            logger.debug(f"Joining in-flight call for {key}")
            return future.result()

        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._inflight.pop(key, None)


class WeatherDataService:
    """Cache-aside access to rankings and district forecasts.

    Example:
        >>> service = WeatherDataService(cache, OpenMeteoClient(), DistrictDirectory())
        >>> snapshot = service.get_rankings()
        >>> sample = service.get_region_forecast(directory.get_by_name("Sylhet"), date.today())
    """

    def __init__(
        self,
        cache: WeatherDataCache,
        client: OpenMeteoClient,
        directory: DistrictDirectory,
        aggregator: Optional[WeatherAggregator] = None,
        ranker: Optional[DistrictRanker] = None,
        staleness_threshold: timedelta = CACHE_STALENESS_THRESHOLD,
        cache_ttl: timedelta = DEFAULT_CACHE_TTL,
        forecast_days: int = FORECAST_DAYS,
        coalesce_reloads: bool = False,
    ):
        self.cache = cache
        self.client = client
        self.directory = directory
        self.aggregator = aggregator or WeatherAggregator()
        self.ranker = ranker or DistrictRanker()
        self.staleness_threshold = staleness_threshold
        self.cache_ttl = cache_ttl
        self.forecast_days = forecast_days
        self.coalesce_reloads = coalesce_reloads

        self._single_flight = SingleFlight()
        self.last_background_reload: Optional[threading.Thread] = None

    def is_stale(self, snapshot: Optional[RankingSnapshot]) -> bool:
        """True when snapshot is missing or older than the staleness threshold."""
        if snapshot is None:
            return True
        return datetime.utcnow() - snapshot.generated_at > self.staleness_threshold

    # -------------------------------------------------------------------------
    # Rankings
    # -------------------------------------------------------------------------

    def get_rankings(self, cancel_event: Optional[threading.Event] = None) -> RankingSnapshot:
        """Cached rankings if fresh, otherwise the result of a manual reload.

        Raises:
            DataUnavailableError: No fresh cache and the reload produced
                no usable districts or the upstream failed
        """
        cached = self.cache.get_rankings()
        if not self.is_stale(cached):
            logger.debug(f"Serving cached rankings ({cached.age_seconds():.0f}s old)")
            return cached

        if cached is None:
            logger.info("No cached rankings, running manual reload")
        else:
            logger.info(
                f"Cached rankings are stale (generated at {cached.generated_at}), "
                f"running manual reload"
            )
        return self.reload(cancel_event)

    def reload(self, cancel_event: Optional[threading.Event] = None) -> RankingSnapshot:
        """Unconditionally fetch, aggregate, rank and cache every district."""
        if self.coalesce_reloads:
            return self._single_flight.do(RELOAD_KEY, lambda: self._load(cancel_event))
        return self._load(cancel_event)

    def _load(self, cancel_event: Optional[threading.Event]) -> RankingSnapshot:
        regions = self.directory.get_all()
        coordinates = [region.coordinates for region in regions]

        check_cancelled(cancel_event, "before fetching")
        try:
            temperatures = self.client.get_bulk_forecast(
                coordinates, self.forecast_days, cancel_event
            )
            check_cancelled(cancel_event, "between fetches")
            air_quality = self.client.get_bulk_air_quality(
                coordinates, self.forecast_days, cancel_event
            )
        except UpstreamError as e:
            logger.error(f"Upstream fetch failed during reload: {e}")
            raise DataUnavailableError(
                "Failed to retrieve weather data from external API."
            ) from e
        check_cancelled(cancel_event, "after fetching")

        now = datetime.utcnow()
        today = now.date()
        averages: dict[Region, Sample] = {}
        forecasts: dict[str, RegionForecast] = {}

        for region in regions:
            region_temps = temperatures.get(region.coordinates)
            region_pm25 = air_quality.get(region.coordinates)
            if region_temps is None or region_pm25 is None:
                logger.debug(f"{region.name}: no upstream data, skipping")
                continue

            try:
                averages[region] = self.aggregator.average_over_window(region_temps, region_pm25)
            except (InsufficientDataError, ValueError) as e:
                logger.warning(f"{region.name}: {e}, skipping")
                continue

            daily = self.aggregator.daily_samples(
                region_temps, region_pm25, today, self.forecast_days
            )
            if daily:
                forecasts[region.id] = RegionForecast(region.id, tuple(daily), now)

        if not averages:
            raise DataUnavailableError.no_usable_regions()

        snapshot = RankingSnapshot(
            rankings=tuple(self.ranker.rank(averages)),
            generated_at=now,
            expires_at=now + self.cache_ttl,
        )

        check_cancelled(cancel_event, "before writing cache")
        for region_id, forecast in forecasts.items():
            self._write("set_region_forecast", self.cache.set_region_forecast, region_id, forecast)
        self._write("set_rankings", self.cache.set_rankings, snapshot)

        logger.info(
            f"Reload complete: {len(averages)}/{len(regions)} districts ranked, "
            f"{len(forecasts)} forecasts cached"
        )
        return snapshot

    def _write(self, operation: str, setter: Callable, *args) -> None:
        # Persistence failures must not fail a reload that already has its result
        try:
            setter(*args)
        except Exception as e:
            logger.error(f"Cache write {operation} failed: {e}")

    # -------------------------------------------------------------------------
    # Single-location samples
    # -------------------------------------------------------------------------

    def get_region_forecast(
        self,
        region: Region,
        travel_date: date,
        cancel_event: Optional[threading.Event] = None,
    ) -> Sample:
        """Sample for a district on travel_date, from cache when possible."""
        cached = self.cache.get_region_forecast(region.id)
        if cached is not None:
            sample = cached.sample_for(travel_date)
            if sample is not None:
                logger.debug(f"Forecast cache HIT for {region.name} on {travel_date}")
                return sample

        logger.debug(f"Forecast cache MISS for {region.name} on {travel_date}")
        if self.is_stale(self.cache.get_rankings()):
            self.start_background_reload()

        return self.get_origin_sample(region.coordinates, travel_date, cancel_event)

    def get_origin_sample(
        self,
        coordinates: Coordinates,
        travel_date: date,
        cancel_event: Optional[threading.Event] = None,
    ) -> Sample:
        """Direct upstream fetch for one location; never cached.

        Raises:
            DataUnavailableError: If the fetch fails, or has no valid data
                for travel_date
        """
        try:
            temperatures = self.client.get_bulk_forecast(
                [coordinates], self.forecast_days, cancel_event
            )
            air_quality = self.client.get_bulk_air_quality(
                [coordinates], self.forecast_days, cancel_event
            )
        except UpstreamError as e:
            raise DataUnavailableError.for_location(
                coordinates.latitude, coordinates.longitude
            ) from e

        if coordinates not in temperatures or coordinates not in air_quality:
            raise DataUnavailableError.for_location(coordinates.latitude, coordinates.longitude)

        try:
            return self.aggregator.daily_sample_at(
                temperatures[coordinates], air_quality[coordinates], travel_date
            )
        except (InsufficientDataError, ValueError) as e:
            raise DataUnavailableError(
                f"No forecast for {coordinates} on {travel_date}: {e}"
            ) from e

    # -------------------------------------------------------------------------
    # Background reload
    # -------------------------------------------------------------------------

    def start_background_reload(self) -> threading.Thread:
        """Start a fire-and-forget reload on a daemon thread."""
        thread = threading.Thread(
            target=self._background_reload,
            name="safetravel-background-reload",
            daemon=True,
        )
        self.last_background_reload = thread
        thread.start()
        return thread

    def _background_reload(self) -> None:
        try:
            self.reload()
        except Exception as e:
            # The request that triggered this has already been answered
            logger.warning(f"Background reload failed: {e}")


def create_weather_service(
    settings: Settings,
    cache: Optional[WeatherDataCache] = None,
    client: Optional[OpenMeteoClient] = None,
    directory: Optional[DistrictDirectory] = None,
) -> WeatherDataService:
    """Wire a WeatherDataService from settings, building missing collaborators."""
    return WeatherDataService(
        cache=cache or create_weather_cache(settings),
        client=client or OpenMeteoClient(),
        directory=directory or DistrictDirectory(),
        coalesce_reloads=settings.coalesce_reloads,
    )
