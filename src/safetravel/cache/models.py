"""Data models for the cache layer."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from safetravel.domain.models import RankedRegion, Sample

RANKINGS_KEY = "safetravel:rankings"
DISTRICT_FORECAST_KEY_PATTERN = "safetravel:districts:{}"


def district_forecast_key(region_id: str) -> str:
    return DISTRICT_FORECAST_KEY_PATTERN.format(region_id)


@dataclass(frozen=True)
class RankingSnapshot:
    """Full ranking produced by one reload; always replaced as a whole."""

    rankings: tuple[RankedRegion, ...]
    generated_at: datetime
    expires_at: datetime

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or datetime.utcnow()) - self.generated_at).total_seconds()

    def to_dict(self) -> dict:
        return {
            "rankings": [r.to_dict() for r in self.rankings],
            "generated_at": self.generated_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RankingSnapshot":
        return cls(
            rankings=tuple(RankedRegion.from_dict(r) for r in d["rankings"]),
            generated_at=datetime.fromisoformat(d["generated_at"]),
            expires_at=datetime.fromisoformat(d["expires_at"]),
        )


@dataclass(frozen=True)
class RegionForecast:
    """Up to one daily Sample per forecast date for a district."""

    region_id: str
    forecasts: tuple[Sample, ...]
    generated_at: datetime

    def sample_for(self, target_date: date) -> Optional[Sample]:
        for sample in self.forecasts:
            if sample.date == target_date:
                return sample
        return None

    def to_dict(self) -> dict:
        return {
            "region_id": self.region_id,
            "forecasts": [s.to_dict() for s in self.forecasts],
            "generated_at": self.generated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RegionForecast":
        return cls(
            region_id=d["region_id"],
            forecasts=tuple(Sample.from_dict(s) for s in d["forecasts"]),
            generated_at=datetime.fromisoformat(d["generated_at"]),
        )


@dataclass(frozen=True)
class CacheMetadata:
    """Summary of cache state for health reporting.

    Derived from whatever rankings and forecasts are stored; never written.
    """

    last_updated: datetime
    is_healthy: bool
    regions_cached: int
