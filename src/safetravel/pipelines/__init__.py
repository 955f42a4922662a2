"""External data sources: the district directory and the Open-Meteo client."""

from safetravel.pipelines.districts import DistrictDirectory
from safetravel.pipelines.open_meteo import (
    OpenMeteoClient,
    UpstreamError,
    UpstreamResponseError,
    UpstreamTransientError,
)

__all__ = [
    "DistrictDirectory",
    "OpenMeteoClient",
    "UpstreamError",
    "UpstreamResponseError",
    "UpstreamTransientError",
]
