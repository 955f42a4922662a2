"""Exception hierarchy for safetravel."""

from typing import Optional


class SafeTravelError(Exception):
    """Base class for all safetravel errors."""


class InsufficientDataError(SafeTravelError):
    """Aggregation found no qualifying samples for a region or date."""

    @classmethod
    def not_enough_data_points(cls, required: int, actual: int) -> "InsufficientDataError":
        return cls(
            f"At least {required} data points required, but only {actual} available."
        )


class DataUnavailableError(SafeTravelError):
    """Weather data could not be produced from cache or upstream."""

    @classmethod
    def no_usable_regions(cls) -> "DataUnavailableError":
        return cls("Unable to fetch weather data for any districts.")

    @classmethod
    def for_location(cls, latitude: float, longitude: float) -> "DataUnavailableError":
        return cls(f"Weather data unavailable for coordinates ({latitude}, {longitude})")


class RegionNotFoundError(SafeTravelError):
    """A district name did not match any known district."""

    def __init__(self, name: Optional[str]):
        super().__init__(f"District '{name}' was not found.")
        self.name = name


class InvalidTravelDateError(SafeTravelError):
    """Travel date falls outside the forecast window."""


class RefreshCancelledError(SafeTravelError):
    """A reload observed its cancellation event and stopped before writing."""
