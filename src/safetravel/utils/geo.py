"""Geographic coordinates."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Coordinates:
    """Validated latitude/longitude pair.

    Hashable, so it can key the per-location maps returned by the
    upstream client.
    """

    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90 <= self.latitude <= 90:
            raise ValueError(
                f"Latitude must be between -90 and 90 degrees, got {self.latitude}"
            )
        if not -180 <= self.longitude <= 180:
            raise ValueError(
                f"Longitude must be between -180 and 180 degrees, got {self.longitude}"
            )

    @classmethod
    def create(cls, latitude: float, longitude: float) -> "Coordinates":
        return cls(float(latitude), float(longitude))

    def __str__(self) -> str:
        return f"({self.latitude:.4f}, {self.longitude:.4f})"
