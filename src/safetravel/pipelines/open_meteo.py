"""Open-Meteo client for bulk hourly temperature and PM2.5 forecasts.

Data Sources:
- Weather: https://api.open-meteo.com/v1/forecast (hourly=temperature_2m)
- Air quality: https://air-quality-api.open-meteo.com/v1/air-quality (hourly=pm2_5)

Both APIs accept comma-separated latitude/longitude lists. One location
returns a single JSON object; several locations return an array in request
order.

Failures are split in two. UpstreamTransientError (any requests error, HTTP
429 and 5xx) is worth retrying. UpstreamResponseError (other HTTP errors,
unparseable or malformed bodies) is not.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Iterable, Optional

import requests

from safetravel.config import REQUEST_TIMEOUT
from safetravel.domain.exceptions import RefreshCancelledError
from safetravel.domain.models import HourlyReading
from safetravel.utils.geo import Coordinates

logger = logging.getLogger(__name__)

WEATHER_BASE_URL = "https://api.open-meteo.com/v1/forecast"
AIR_QUALITY_BASE_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"

TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class UpstreamError(Exception):
    """Base class for Open-Meteo failures."""


class UpstreamTransientError(UpstreamError):
    """Retryable failure: network, timeout, rate limiting or server error."""


class UpstreamResponseError(UpstreamError):
    """Non-retryable failure: client error or malformed response body."""


HourlySeriesMap = dict[Coordinates, list[HourlyReading]]


def parse_hourly(hourly: Optional[dict], variable: str) -> list[HourlyReading]:
    """Parse an Open-Meteo 'hourly' block into readings.

    Entries with null values or unparseable timestamps are skipped.

    Raises:
        UpstreamResponseError: If the block or its arrays have the wrong
            shape, or a value is not numeric
    """
    if not hourly:
        return []
    if not isinstance(hourly, dict):
        raise UpstreamResponseError(
            f"Expected 'hourly' to be an object, got {type(hourly).__name__}"
        )

    times = hourly.get("time") or []
    values = hourly.get(variable) or []
    if not isinstance(times, list) or not isinstance(values, list):
        raise UpstreamResponseError(f"Expected 'time' and '{variable}' arrays")

    readings = []
    for raw_time, value in zip(times, values):
        if value is None:
            continue
        try:
            time = datetime.fromisoformat(raw_time)
        except (TypeError, ValueError):
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise UpstreamResponseError(f"Non-numeric {variable} value {value!r} at {raw_time}")
        readings.append(HourlyReading(time=time, value=float(value)))
    return readings


class OpenMeteoClient:
    """Fetches bulk hourly forecasts for many coordinates in one request.

    Example:
        >>> client = OpenMeteoClient()
        >>> temps = client.get_bulk_forecast([Coordinates(23.71, 90.41)], days=7)
        >>> pm25 = client.get_bulk_air_quality([Coordinates(23.71, 90.41)], days=7)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        weather_url: str = WEATHER_BASE_URL,
        air_quality_url: str = AIR_QUALITY_BASE_URL,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.weather_url = weather_url
        self.air_quality_url = air_quality_url

    def get_bulk_forecast(
        self,
        locations: Iterable[Coordinates],
        days: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> HourlySeriesMap:
        """Hourly 2m temperature (°C) for each location."""
        return self._fetch_bulk(
            self.weather_url, "temperature_2m", locations, days, cancel_event
        )

    def get_bulk_air_quality(
        self,
        locations: Iterable[Coordinates],
        days: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> HourlySeriesMap:
        """Hourly PM2.5 (μg/m³) for each location."""
        return self._fetch_bulk(
            self.air_quality_url, "pm2_5", locations, days, cancel_event
        )

    def _fetch_bulk(
        self,
        url: str,
        variable: str,
        locations: Iterable[Coordinates],
        days: int,
        cancel_event: Optional[threading.Event],
    ) -> HourlySeriesMap:
        location_list = list(locations)
        if not location_list:
            return {}

        if cancel_event is not None and cancel_event.is_set():
            raise RefreshCancelledError(f"Cancelled before fetching {variable}")

        params = {
            "latitude": ",".join(str(loc.latitude) for loc in location_list),
            "longitude": ",".join(str(loc.longitude) for loc in location_list),
            "hourly": variable,
            "forecast_days": days,
        }

        logger.debug(f"Fetching {variable} for {len(location_list)} locations")
        payload = self._get_json(url, params)

        if len(location_list) == 1:
            if not isinstance(payload, dict):
                raise UpstreamResponseError(
                    f"Expected a JSON object for one location, got {type(payload).__name__}"
                )
            responses = [payload]
        else:
            if not isinstance(payload, list):
                raise UpstreamResponseError(
                    f"Expected a JSON array for {len(location_list)} locations, "
                    f"got {type(payload).__name__}"
                )
            responses = payload

        results: HourlySeriesMap = {}
        for location, response in zip(location_list, responses):
            if not isinstance(response, dict):
                raise UpstreamResponseError(f"Malformed entry for {location}")
            readings = parse_hourly(response.get("hourly"), variable)
            if readings:
                results[location] = readings

        logger.info(f"Fetched {variable} for {len(results)}/{len(location_list)} locations")
        return results

    def _get_json(self, url: str, params: dict) -> Any:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamTransientError(f"Request to {url} failed: {e}") from e

        if response.status_code in TRANSIENT_STATUS_CODES:
            raise UpstreamTransientError(f"{url} returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise UpstreamResponseError(
                f"{url} returned HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamResponseError(f"Invalid JSON from {url}: {e}") from e
