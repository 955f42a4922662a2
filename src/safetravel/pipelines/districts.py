"""Static district directory loaded from the packaged districts.json."""

import logging
from typing import Iterable, Optional

from safetravel.domain.models import Region
from safetravel.utils.io import load_packaged_json

logger = logging.getLogger(__name__)

DISTRICTS_FILE = "districts.json"


class DistrictDirectory:
    """Read-only lookup of the 64 Bangladesh districts.

    Example:
        >>> directory = DistrictDirectory()
        >>> directory.get_by_name("dhaka").name
        'Dhaka'
    """

    def __init__(self, regions: Optional[Iterable[Region]] = None):
        """Initialize directory.

        Args:
            regions: Regions to serve. Defaults to the packaged district list.
        """
        if regions is None:
            regions = [Region.from_dict(d) for d in load_packaged_json(DISTRICTS_FILE)]
            logger.info(f"Loaded {len(regions)} districts from {DISTRICTS_FILE}")

        self._regions = tuple(regions)
        self._by_name = {region.name.casefold(): region for region in self._regions}

    def get_all(self) -> list[Region]:
        return list(self._regions)

    def get_by_name(self, name: Optional[str]) -> Optional[Region]:
        """Case-insensitive lookup; blank names return None."""
        if name is None or not name.strip():
            return None
        return self._by_name.get(name.strip().casefold())

    def __len__(self) -> int:
        return len(self._regions)
