"""Ranking of districts by average temperature and PM2.5."""

from datetime import datetime
from typing import Mapping

from safetravel.config import TOP_DISTRICTS_COUNT
from safetravel.domain.models import RankedRegion, Region, Sample


class DistrictRanker:
    """Orders districts coolest first, with cleaner air breaking ties."""

    def rank(self, samples_by_region: Mapping[Region, Sample]) -> list[RankedRegion]:
        """Rank every region; an empty mapping yields an empty list.

        All entries share one generated_at timestamp.
        """
        if not samples_by_region:
            return []

        generated_at = datetime.utcnow()
        ordered = sorted(
            samples_by_region.items(),
            key=lambda item: (item[1].temperature_c, item[1].pm25),
        )

        return [
            RankedRegion(
                rank=position + 1,
                region=region,
                avg_temperature_c=sample.temperature_c,
                avg_pm25=sample.pm25,
                generated_at=generated_at,
            )
            for position, (region, sample) in enumerate(ordered)
        ]

    def top_n(
        self,
        samples_by_region: Mapping[Region, Sample],
        n: int = TOP_DISTRICTS_COUNT,
    ) -> list[RankedRegion]:
        """First n entries of rank(); fewer regions than n returns all of them."""
        return self.rank(samples_by_region)[:n]
