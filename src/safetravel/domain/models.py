"""Domain value objects: regions, samples and rankings."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from safetravel.utils.geo import Coordinates

MIN_TEMPERATURE_C = -100.0
MAX_TEMPERATURE_C = 100.0


class AirQualityCategory(str, Enum):
    """EPA air quality categories for PM2.5 concentration."""

    GOOD = "Good"
    MODERATE = "Moderate"
    UNHEALTHY_FOR_SENSITIVE_GROUPS = "UnhealthyForSensitiveGroups"
    UNHEALTHY = "Unhealthy"
    VERY_UNHEALTHY = "VeryUnhealthy"
    HAZARDOUS = "Hazardous"

    @classmethod
    def from_pm25(cls, pm25: float) -> "AirQualityCategory":
        """Classify a PM2.5 value (μg/m³) using EPA breakpoints."""
        if pm25 <= 12.0:
            return cls.GOOD
        if pm25 <= 35.4:
            return cls.MODERATE
        if pm25 <= 55.4:
            return cls.UNHEALTHY_FOR_SENSITIVE_GROUPS
        if pm25 <= 150.4:
            return cls.UNHEALTHY
        if pm25 <= 250.4:
            return cls.VERY_UNHEALTHY
        return cls.HAZARDOUS


@dataclass(frozen=True)
class Region:
    """A district with a stable id and a fixed location."""

    id: str
    name: str
    coordinates: Coordinates

    @property
    def latitude(self) -> float:
        return self.coordinates.latitude

    @property
    def longitude(self) -> float:
        return self.coordinates.longitude

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Region":
        return cls(
            id=str(d["id"]),
            name=d["name"],
            coordinates=Coordinates.create(d["latitude"], d["longitude"]),
        )


@dataclass(frozen=True)
class HourlyReading:
    """One hourly upstream value (temperature in °C or PM2.5 in μg/m³)."""

    time: datetime
    value: float


@dataclass(frozen=True)
class Sample:
    """Temperature and PM2.5 for a region on one calendar date.

    Used both for single-day forecasts and for the 7-day average.

    Attributes:
        date: Calendar date the values describe
        temperature_c: Temperature in Celsius (-100 to 100)
        pm25: PM2.5 concentration in μg/m³ (non-negative)
        recorded_at: When the sample was produced
    """

    date: date
    temperature_c: float
    pm25: float
    recorded_at: datetime

    def __post_init__(self):
        if not MIN_TEMPERATURE_C <= self.temperature_c <= MAX_TEMPERATURE_C:
            raise ValueError(
                f"Temperature must be between -100°C and 100°C, got {self.temperature_c}"
            )
        if self.pm25 < 0:
            raise ValueError(f"PM2.5 level cannot be negative, got {self.pm25}")

    @classmethod
    def create(cls, sample_date: date, temperature_c: float, pm25: float) -> "Sample":
        """Create a Sample stamped with the current UTC time."""
        return cls(
            date=sample_date,
            temperature_c=float(temperature_c),
            pm25=float(pm25),
            recorded_at=datetime.utcnow(),
        )

    @property
    def air_quality_category(self) -> AirQualityCategory:
        return AirQualityCategory.from_pm25(self.pm25)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "temperature_c": self.temperature_c,
            "pm25": self.pm25,
            "recorded_at": self.recorded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Sample":
        return cls(
            date=date.fromisoformat(d["date"]),
            temperature_c=d["temperature_c"],
            pm25=d["pm25"],
            recorded_at=datetime.fromisoformat(d["recorded_at"]),
        )

    def __str__(self) -> str:
        return f"{self.date}: {self.temperature_c:.1f}°C, {self.pm25:.1f} μg/m³"


@dataclass(frozen=True)
class RankedRegion:
    """A region's position in one ranking pass."""

    rank: int
    region: Region
    avg_temperature_c: float
    avg_pm25: float
    generated_at: datetime

    def __post_init__(self):
        if self.rank < 1:
            raise ValueError(f"Rank must be at least 1, got {self.rank}")

    @property
    def air_quality_category(self) -> AirQualityCategory:
        return AirQualityCategory.from_pm25(self.avg_pm25)

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "region": self.region.to_dict(),
            "avg_temperature_c": self.avg_temperature_c,
            "avg_pm25": self.avg_pm25,
            "generated_at": self.generated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RankedRegion":
        return cls(
            rank=d["rank"],
            region=Region.from_dict(d["region"]),
            avg_temperature_c=d["avg_temperature_c"],
            avg_pm25=d["avg_pm25"],
            generated_at=datetime.fromisoformat(d["generated_at"]),
        )

    def __str__(self) -> str:
        return (
            f"#{self.rank}: {self.region.name} - "
            f"{self.avg_temperature_c:.1f}°C, {self.avg_pm25:.1f} μg/m³"
        )


@dataclass(frozen=True)
class RecommendationResult:
    """Travel decision with a human-readable reason."""

    is_recommended: bool
    reason: str

    @classmethod
    def recommended(cls, reason: str) -> "RecommendationResult":
        return cls(True, reason)

    @classmethod
    def not_recommended(cls, reason: str) -> "RecommendationResult":
        return cls(False, reason)
