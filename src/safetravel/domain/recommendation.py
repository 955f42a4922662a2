"""Travel recommendation policy.

A destination is recommended only if it is BOTH cooler AND has cleaner air
than the origin. Equal values on either axis count as "not better".

Example outcomes:

    Origin 32°C / 80 μg/m³, Sylhet 25°C / 40 μg/m³
        -> "Sylhet is 7.0°C cooler and has 50% better air quality than your location."
    Origin 28°C / 50 μg/m³, Rajshahi 35°C / 30 μg/m³
        -> "Rajshahi is 7.0°C warmer compared to your location."
    Origin 28°C / 40 μg/m³, Chittagong 33°C / 85 μg/m³
        -> "Chittagong is 5.0°C warmer and has 45.0 μg/m³ higher PM2.5 compared to your location."
    Origin 30°C / 50 μg/m³, Khulna 30°C / 70 μg/m³
        -> "Khulna is same temperature and has 20.0 μg/m³ higher PM2.5 compared to your location."
"""

from safetravel.domain.models import RecommendationResult, Sample


def pm25_improvement_pct(origin_pm25: float, destination_pm25: float) -> float:
    """Percentage PM2.5 reduction from origin to destination.

    Returns 0 when the origin has no PM2.5.
    """
    if origin_pm25 == 0:
        return 0.0
    return (origin_pm25 - destination_pm25) / origin_pm25 * 100


class TravelRecommendationPolicy:
    """Decides whether travelling to a destination is worthwhile."""

    def evaluate(
        self,
        origin: Sample,
        destination: Sample,
        destination_name: str,
    ) -> RecommendationResult:
        """Compare origin and destination samples.

        Args:
            origin: Conditions at the traveller's location
            destination: Conditions at the destination district
            destination_name: Used in the reason text

        Returns:
            RecommendationResult with decision and explanation
        """
        is_cooler = destination.temperature_c < origin.temperature_c
        is_cleaner = destination.pm25 < origin.pm25

        if is_cooler and is_cleaner:
            temp_diff = origin.temperature_c - destination.temperature_c
            improvement = pm25_improvement_pct(origin.pm25, destination.pm25)
            return RecommendationResult.recommended(
                f"{destination_name} is {temp_diff:.1f}°C cooler and has "
                f"{improvement:.0f}% better air quality than your location."
            )

        return RecommendationResult.not_recommended(
            self._negative_reason(origin, destination, destination_name, is_cooler, is_cleaner)
        )

    @staticmethod
    def _negative_reason(
        origin: Sample,
        destination: Sample,
        destination_name: str,
        is_cooler: bool,
        is_cleaner: bool,
    ) -> str:
        issues = []

        if not is_cooler:
            temp_diff = destination.temperature_c - origin.temperature_c
            if temp_diff > 0:
                issues.append(f"{temp_diff:.1f}°C warmer")
            else:
                issues.append("same temperature")

        if not is_cleaner:
            pm25_diff = destination.pm25 - origin.pm25
            if pm25_diff > 0:
                issues.append(f"{pm25_diff:.1f} μg/m³ higher PM2.5")
            else:
                issues.append("similar air quality")

        return f"{destination_name} is {' and has '.join(issues)} compared to your location."
