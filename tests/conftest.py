"""Shared pytest fixtures for safetravel tests.

Test Tiers:
- unit: Fast tests with fixtures, no network (default)
- integration: Tests wiring several components together
- live: Real Open-Meteo tests, slow, requires network

Run live tests with: pytest -m live --run-live
"""

import tempfile
import threading
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

import pytest

from safetravel.cache.database import DuckDBWeatherCache
from safetravel.cache.memory import InMemoryWeatherCache
from safetravel.cache.models import RankingSnapshot, RegionForecast
from safetravel.cache.service import WeatherDataService
from safetravel.domain.models import HourlyReading, RankedRegion, Region, Sample
from safetravel.pipelines.districts import DistrictDirectory
from safetravel.utils.geo import Coordinates


def pytest_addoption(parser):
    """Add command line options for test configuration."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run live API tests (slow, requires network)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests using fixtures")
    config.addinivalue_line("markers", "integration: tests wiring several components")
    config.addinivalue_line("markers", "live: real API tests (slow, requires network)")


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is specified."""
    if config.getoption("--run-live"):
        return

    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


def make_hourly(start: date, days: int, value: float, skip_hours: tuple = ()) -> list[HourlyReading]:
    """Hourly readings with a constant value, omitting any hour in skip_hours."""
    readings = []
    for day in range(days):
        for hour in range(24):
            if hour in skip_hours:
                continue
            time = datetime.combine(start + timedelta(days=day), datetime.min.time())
            readings.append(HourlyReading(time=time + timedelta(hours=hour), value=value))
    return readings


class FakeOpenMeteoClient:
    """Stands in for OpenMeteoClient with constant series per location.

    Locations missing from the maps are left out of the result, the way
    the real client drops locations with no readings.
    """

    def __init__(
        self,
        temperatures: Optional[dict] = None,
        pm25: Optional[dict] = None,
        start: Optional[date] = None,
        error: Optional[Exception] = None,
    ):
        self.temperatures = dict(temperatures or {})
        self.pm25 = dict(pm25 or {})
        self.start = start or datetime.utcnow().date()
        self.error = error
        self.on_fetch: Optional[Callable[[str], None]] = None
        self.calls: list[tuple[str, int]] = []
        self._lock = threading.Lock()

    def _series(self, kind: str, values: dict, locations, days, cancel_event):
        locations = list(locations)
        with self._lock:
            self.calls.append((kind, len(locations)))
        if self.on_fetch is not None:
            self.on_fetch(kind)
        if self.error is not None:
            raise self.error
        return {
            loc: make_hourly(self.start, days, values[loc])
            for loc in locations
            if loc in values
        }

    def get_bulk_forecast(self, locations, days, cancel_event=None):
        return self._series("forecast", self.temperatures, locations, days, cancel_event)

    def get_bulk_air_quality(self, locations, days, cancel_event=None):
        return self._series("air_quality", self.pm25, locations, days, cancel_event)

    def calls_for(self, kind: str) -> list[int]:
        return [count for k, count in self.calls if k == kind]


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def temp_db_path():
    """Temporary DuckDB file path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.duckdb"


@pytest.fixture
def duckdb_cache(temp_db_path):
    """DuckDBWeatherCache on a temporary file."""
    cache = DuckDBWeatherCache(temp_db_path)
    yield cache
    cache.close()


@pytest.fixture
def sample_regions() -> list[Region]:
    """Three districts with distinct climates."""
    return [
        Region("47", "Dhaka", Coordinates(23.7115253, 90.4111451)),
        Region("36", "Sylhet", Coordinates(24.8897956, 91.8697894)),
        Region("11", "Bandarban", Coordinates(22.1953275, 92.2183773)),
    ]


@pytest.fixture
def directory(sample_regions) -> DistrictDirectory:
    return DistrictDirectory(sample_regions)


@pytest.fixture
def fake_client(sample_regions) -> FakeOpenMeteoClient:
    """Dhaka hot and polluted, Sylhet mild, Bandarban coolest and cleanest."""
    dhaka, sylhet, bandarban = sample_regions
    return FakeOpenMeteoClient(
        temperatures={
            dhaka.coordinates: 32.0,
            sylhet.coordinates: 27.0,
            bandarban.coordinates: 24.0,
        },
        pm25={
            dhaka.coordinates: 85.0,
            sylhet.coordinates: 40.0,
            bandarban.coordinates: 20.0,
        },
    )


@pytest.fixture
def memory_cache() -> InMemoryWeatherCache:
    return InMemoryWeatherCache()


@pytest.fixture
def service(memory_cache, fake_client, directory) -> WeatherDataService:
    """WeatherDataService over an in-memory cache and the fake client."""
    return WeatherDataService(memory_cache, fake_client, directory)


@pytest.fixture
def sample_factory() -> Callable[..., Sample]:
    """Build Samples for today with given temperature and PM2.5."""
    def _make(temperature_c: float, pm25: float, sample_date: Optional[date] = None) -> Sample:
        return Sample.create(sample_date or datetime.utcnow().date(), temperature_c, pm25)
    return _make


@pytest.fixture
def snapshot_factory(sample_regions) -> Callable[..., RankingSnapshot]:
    """Build a RankingSnapshot generated `age` ago over the sample regions."""
    def _make(age: timedelta = timedelta(0), ttl: timedelta = timedelta(minutes=25)) -> RankingSnapshot:
        generated_at = datetime.utcnow() - age
        rankings = tuple(
            RankedRegion(i + 1, region, 20.0 + i, 10.0 * (i + 1), generated_at)
            for i, region in enumerate(sample_regions)
        )
        return RankingSnapshot(rankings, generated_at, generated_at + ttl)
    return _make


@pytest.fixture
def forecast_factory() -> Callable[..., RegionForecast]:
    """Build a RegionForecast with one Sample per day starting today."""
    def _make(region_id: str, days: int = 7, temperature_c: float = 25.0, pm25: float = 30.0) -> RegionForecast:
        today = datetime.utcnow().date()
        samples = tuple(
            Sample.create(today + timedelta(days=d), temperature_c, pm25) for d in range(days)
        )
        return RegionForecast(region_id, samples, datetime.utcnow())
    return _make
