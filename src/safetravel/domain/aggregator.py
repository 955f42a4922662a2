"""Aggregation of hourly upstream series into daily and window samples.

Only the reading at a fixed hour of day (14:00) is used, both for a single
day's value and for the multi-day average. Temperature and PM2.5 series are
filtered independently, so a gap in one metric never removes a day from the
other metric's average.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Sequence

import pandas as pd

from safetravel.config import FORECAST_DAYS, TARGET_HOUR
from safetravel.domain.exceptions import InsufficientDataError
from safetravel.domain.models import HourlyReading, Sample

logger = logging.getLogger(__name__)


def to_series(readings: Sequence[HourlyReading]) -> pd.Series:
    """Convert hourly readings to a float Series on a DatetimeIndex."""
    index = pd.DatetimeIndex([r.time for r in readings])
    return pd.Series([r.value for r in readings], index=index, dtype="float64")


class WeatherAggregator:
    """Turns hourly temperature and PM2.5 series into Samples.

    Example:
        >>> aggregator = WeatherAggregator()
        >>> average = aggregator.average_over_window(temperatures, pm25_readings)
        >>> tomorrow = aggregator.daily_sample_at(temperatures, pm25_readings, date(2026, 1, 2))
    """

    def __init__(self, target_hour: int = TARGET_HOUR):
        if not 0 <= target_hour <= 23:
            raise ValueError(f"target_hour must be 0-23, got {target_hour}")
        self.target_hour = target_hour

    def values_at_hour(self, readings: Sequence[HourlyReading]) -> pd.Series:
        """All values recorded at the target hour, across every date."""
        series = to_series(readings)
        return series[series.index.hour == self.target_hour]

    def _value_on(self, readings: Sequence[HourlyReading], target_date: date) -> float | None:
        at_hour = self.values_at_hour(readings)
        on_date = at_hour[at_hour.index.normalize() == pd.Timestamp(target_date)]
        if on_date.empty:
            return None
        return float(on_date.iloc[0])

    def daily_sample_at(
        self,
        temperatures: Sequence[HourlyReading],
        pm25_readings: Sequence[HourlyReading],
        target_date: date,
    ) -> Sample:
        """Sample for one date, taken from the first reading at the target hour.

        Args:
            temperatures: Hourly temperature readings (°C)
            pm25_readings: Hourly PM2.5 readings (μg/m³)
            target_date: Calendar date to extract

        Returns:
            Sample dated target_date

        Raises:
            InsufficientDataError: If either series has no reading at the
                target hour on target_date
        """
        temperature = self._value_on(temperatures, target_date)
        pm25 = self._value_on(pm25_readings, target_date)

        if temperature is None or pm25 is None:
            raise InsufficientDataError.not_enough_data_points(1, 0)

        return Sample.create(target_date, temperature, pm25)

    def average_over_window(
        self,
        temperatures: Sequence[HourlyReading],
        pm25_readings: Sequence[HourlyReading],
    ) -> Sample:
        """Mean of every target-hour reading in each series, dated today (UTC).

        Raises:
            InsufficientDataError: If either series has no reading at the
                target hour
        """
        temps = self.values_at_hour(temperatures)
        pm25 = self.values_at_hour(pm25_readings)

        if temps.empty or pm25.empty:
            raise InsufficientDataError.not_enough_data_points(
                1, min(len(temps), len(pm25))
            )

        return Sample.create(datetime.utcnow().date(), float(temps.mean()), float(pm25.mean()))

    def daily_samples(
        self,
        temperatures: Sequence[HourlyReading],
        pm25_readings: Sequence[HourlyReading],
        start: date,
        days: int = FORECAST_DAYS,
    ) -> list[Sample]:
        """One Sample per day from start.

        Days lacking data, or whose values fail Sample validation, are skipped.
        """
        samples = []
        for offset in range(days):
            target_date = start + timedelta(days=offset)
            try:
                samples.append(self.daily_sample_at(temperatures, pm25_readings, target_date))
            except InsufficientDataError:
                logger.debug(f"No {self.target_hour}:00 data for {target_date}, skipping")
            except ValueError as e:
                logger.warning(f"Out-of-range reading on {target_date}: {e}")
        return samples
