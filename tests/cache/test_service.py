"""Tests for the cache-aside WeatherDataService."""

import threading
import time
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from conftest import FakeOpenMeteoClient
from safetravel.cache.memory import InMemoryWeatherCache
from safetravel.cache.service import SingleFlight, WeatherDataService
from safetravel.domain.exceptions import DataUnavailableError, RefreshCancelledError
from safetravel.pipelines.open_meteo import (
    OpenMeteoClient,
    UpstreamResponseError,
    UpstreamTransientError,
)
from safetravel.utils.geo import Coordinates


class TestGetRankings:
    """Freshness decisions for rankings."""

    def test_fresh_cache_served_without_fetch(self, service, memory_cache, fake_client, snapshot_factory):
        """A 5-minute-old snapshot is served as-is."""
        snapshot = snapshot_factory(age=timedelta(minutes=5))
        memory_cache.set_rankings(snapshot)

        assert service.get_rankings() == snapshot
        assert fake_client.calls == []

    def test_stale_cache_triggers_reload(self, service, memory_cache, fake_client, snapshot_factory):
        """A 15-minute-old snapshot is replaced by a new reload."""
        stale = snapshot_factory(age=timedelta(minutes=15))
        memory_cache.set_rankings(stale)

        result = service.get_rankings()

        assert result.generated_at > stale.generated_at
        assert fake_client.calls_for("forecast") == [3]
        assert memory_cache.get_rankings() == result

    def test_empty_cache_triggers_reload(self, service, fake_client):
        result = service.get_rankings()

        assert [r.region.name for r in result.rankings] == ["Bandarban", "Sylhet", "Dhaka"]
        assert [r.rank for r in result.rankings] == [1, 2, 3]

    def test_is_stale_threshold(self, service, snapshot_factory):
        assert service.is_stale(None) is True
        assert service.is_stale(snapshot_factory(age=timedelta(minutes=11))) is False
        assert service.is_stale(snapshot_factory(age=timedelta(minutes=13))) is True


class TestReload:
    """Tests for the manual reload."""

    def test_one_bulk_request_per_series(self, service, fake_client):
        service.reload()

        assert fake_client.calls == [("forecast", 3), ("air_quality", 3)]

    def test_snapshot_ttl(self, service):
        snapshot = service.reload()

        assert snapshot.expires_at - snapshot.generated_at == timedelta(minutes=25)
        assert all(r.generated_at == snapshot.rankings[0].generated_at for r in snapshot.rankings)

    def test_writes_forecasts_for_seven_days(self, service, memory_cache, sample_regions):
        service.reload()

        for region in sample_regions:
            forecast = memory_cache.get_region_forecast(region.id)
            assert len(forecast.forecasts) == 7
            assert forecast.forecasts[0].date == datetime.utcnow().date()

    def test_regions_without_data_are_skipped(self, memory_cache, directory, sample_regions):
        dhaka, sylhet, bandarban = sample_regions
        client = FakeOpenMeteoClient(
            temperatures={dhaka.coordinates: 32.0, sylhet.coordinates: 27.0},
            pm25={dhaka.coordinates: 85.0, bandarban.coordinates: 20.0},
        )
        service = WeatherDataService(memory_cache, client, directory)

        snapshot = service.reload()

        assert [r.region.name for r in snapshot.rankings] == ["Dhaka"]
        assert memory_cache.get_region_forecast(sylhet.id) is None

    def test_zero_usable_regions_writes_nothing(self, memory_cache, directory, snapshot_factory):
        """A failed reload leaves the previous snapshot in place."""
        previous = snapshot_factory(age=timedelta(minutes=15))
        memory_cache.set_rankings(previous)
        service = WeatherDataService(memory_cache, FakeOpenMeteoClient(), directory)

        with pytest.raises(DataUnavailableError):
            service.get_rankings()

        assert memory_cache.get_rankings() == previous
        assert memory_cache.get_region_forecast("47") is None

    @pytest.mark.parametrize(
        "error", [UpstreamTransientError("HTTP 503"), UpstreamResponseError("bad body")]
    )
    def test_upstream_failure_becomes_data_unavailable(self, memory_cache, directory, error):
        service = WeatherDataService(memory_cache, FakeOpenMeteoClient(error=error), directory)

        with pytest.raises(DataUnavailableError) as exc_info:
            service.reload()

        assert exc_info.value.__cause__ is error
        assert memory_cache.get_rankings() is None

    def test_store_write_failure_is_swallowed(self, fake_client, directory):
        class FailingWrites(InMemoryWeatherCache):
            def set_rankings(self, snapshot):
                raise RuntimeError("disk full")

            def set_region_forecast(self, region_id, forecast):
                raise RuntimeError("disk full")

        service = WeatherDataService(FailingWrites(), fake_client, directory)

        snapshot = service.reload()

        assert len(snapshot.rankings) == 3

    def test_out_of_range_region_is_skipped(self, memory_cache, directory, sample_regions):
        dhaka, sylhet, bandarban = sample_regions
        client = FakeOpenMeteoClient(
            temperatures={dhaka.coordinates: 32.0, sylhet.coordinates: 27.0, bandarban.coordinates: 24.0},
            pm25={dhaka.coordinates: 85.0, sylhet.coordinates: 40.0, bandarban.coordinates: -1.0},
        )
        service = WeatherDataService(memory_cache, client, directory)

        snapshot = service.reload()

        assert [r.region.name for r in snapshot.rankings] == ["Sylhet", "Dhaka"]
        assert memory_cache.get_region_forecast(bandarban.id) is None

    def test_malformed_upstream_body_becomes_data_unavailable(self, memory_cache, directory):
        class MalformedSession:
            def get(self, url, params=None, timeout=None):
                count = len(params["latitude"].split(","))
                entry = {"hourly": {"time": ["2026-10-19T14:00"], params["hourly"]: ["hot"]}}
                return SimpleNamespace(status_code=200, json=lambda: [entry] * count)

        service = WeatherDataService(
            memory_cache, OpenMeteoClient(session=MalformedSession()), directory
        )

        with pytest.raises(DataUnavailableError) as exc_info:
            service.reload()

        assert isinstance(exc_info.value.__cause__, UpstreamResponseError)
        assert memory_cache.get_rankings() is None


class TestCancellation:
    """A cancelled reload never writes to the cache."""

    def test_cancelled_before_start(self, service, memory_cache, fake_client):
        event = threading.Event()
        event.set()

        with pytest.raises(RefreshCancelledError):
            service.reload(event)

        assert fake_client.calls == []
        assert memory_cache.get_rankings() is None

    def test_cancelled_during_fetch(self, service, memory_cache, fake_client):
        event = threading.Event()
        fake_client.on_fetch = lambda kind: event.set() if kind == "air_quality" else None

        with pytest.raises(RefreshCancelledError):
            service.reload(event)

        assert memory_cache.get_rankings() is None
        assert memory_cache.get_region_forecast("47") is None


class TestRegionForecast:
    """Tests for the per-district forecast path."""

    def test_cache_hit(self, service, memory_cache, fake_client, forecast_factory, sample_regions, snapshot_factory):
        sylhet = sample_regions[1]
        forecast = forecast_factory(sylhet.id, temperature_c=22.0)
        memory_cache.set_region_forecast(sylhet.id, forecast)
        memory_cache.set_rankings(snapshot_factory())

        sample = service.get_region_forecast(sylhet, forecast.forecasts[3].date)

        assert sample.temperature_c == 22.0
        assert fake_client.calls == []

    def test_miss_with_fresh_snapshot_fetches_single_region(
        self, service, memory_cache, fake_client, sample_regions, snapshot_factory
    ):
        memory_cache.set_rankings(snapshot_factory())
        sylhet = sample_regions[1]

        sample = service.get_region_forecast(sylhet, datetime.utcnow().date())

        assert sample.temperature_c == 27.0
        assert fake_client.calls == [("forecast", 1), ("air_quality", 1)]
        assert service.last_background_reload is None

    def test_miss_with_stale_snapshot_starts_background_reload(
        self, service, memory_cache, fake_client, sample_regions
    ):
        sylhet = sample_regions[1]

        sample = service.get_region_forecast(sylhet, datetime.utcnow().date())
        service.last_background_reload.join(timeout=5)

        assert sample.pm25 == 40.0
        assert memory_cache.get_rankings() is not None
        assert memory_cache.get_region_forecast(sylhet.id) is not None

    def test_background_reload_failure_is_not_raised(self, memory_cache, directory, sample_regions):
        """The caller still gets its targeted fetch when the background reload fails."""

        class BulkFailingClient(FakeOpenMeteoClient):
            def _series(self, kind, values, locations, days, cancel_event):
                locations = list(locations)
                if len(locations) > 1:
                    raise UpstreamTransientError("HTTP 502")
                return super()._series(kind, values, locations, days, cancel_event)

        sylhet = sample_regions[1]
        client = BulkFailingClient(
            temperatures={sylhet.coordinates: 27.0}, pm25={sylhet.coordinates: 40.0}
        )
        service = WeatherDataService(memory_cache, client, directory)

        sample = service.get_region_forecast(sylhet, datetime.utcnow().date())
        service.last_background_reload.join(timeout=5)

        assert sample.temperature_c == 27.0
        assert memory_cache.get_rankings() is None

    def test_date_outside_forecast(self, service, memory_cache, sample_regions, snapshot_factory):
        memory_cache.set_rankings(snapshot_factory())

        with pytest.raises(DataUnavailableError):
            service.get_region_forecast(sample_regions[0], datetime.utcnow().date() + timedelta(days=30))


class TestOriginSample:
    """Origin samples are always fetched directly."""

    def test_never_cached(self, service, memory_cache, fake_client, sample_regions):
        dhaka = sample_regions[0]
        today = datetime.utcnow().date()

        service.get_origin_sample(dhaka.coordinates, today)
        service.get_origin_sample(dhaka.coordinates, today)

        assert fake_client.calls_for("forecast") == [1, 1]
        assert memory_cache.get_metadata() is None

    def test_unknown_location(self, service):
        with pytest.raises(DataUnavailableError):
            service.get_origin_sample(Coordinates(0.0, 0.0), datetime.utcnow().date())

    def test_upstream_failure(self, memory_cache, directory):
        client = FakeOpenMeteoClient(error=UpstreamTransientError("timeout"))
        service = WeatherDataService(memory_cache, client, directory)

        with pytest.raises(DataUnavailableError):
            service.get_origin_sample(Coordinates(23.7, 90.4), datetime.utcnow().date())

    def test_out_of_range_value(self, memory_cache, directory):
        origin = Coordinates(23.7, 90.4)
        client = FakeOpenMeteoClient(temperatures={origin: 150.0}, pm25={origin: 20.0})
        service = WeatherDataService(memory_cache, client, directory)

        with pytest.raises(DataUnavailableError):
            service.get_origin_sample(origin, datetime.utcnow().date())


class TestCoalescing:
    """Opt-in single-flight reloads."""

    def test_concurrent_reloads_run_independently_by_default(self, service, fake_client):
        gate = threading.Barrier(2, timeout=5)
        fake_client.on_fetch = lambda kind: gate.wait() if kind == "forecast" else None

        threads = [threading.Thread(target=service.reload) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert fake_client.calls_for("forecast") == [3, 3]

    def test_coalesced_reloads_share_one_fetch(self, memory_cache, fake_client, directory):
        service = WeatherDataService(memory_cache, fake_client, directory, coalesce_reloads=True)
        release = threading.Event()
        fake_client.on_fetch = lambda kind: release.wait(5) if kind == "forecast" else None
        results = []

        threads = [threading.Thread(target=lambda: results.append(service.reload())) for _ in range(3)]
        for t in threads:
            t.start()
        time.sleep(0.2)
        release.set()
        for t in threads:
            t.join(timeout=5)

        assert fake_client.calls_for("forecast") == [3]
        assert len(results) == 3
        assert len({r.generated_at for r in results}) == 1


class TestSingleFlight:
    def test_error_shared_with_waiters(self):
        flight = SingleFlight()
        started = threading.Event()
        release = threading.Event()
        errors = []

        def failing():
            started.set()
            release.wait(5)
            raise ValueError("boom")

        def call(fn):
            try:
                flight.do("key", fn)
            except ValueError as e:
                errors.append(e)

        leader = threading.Thread(target=call, args=(failing,))
        leader.start()
        started.wait(5)
        follower = threading.Thread(target=call, args=(lambda: "unused",))
        follower.start()
        time.sleep(0.1)
        release.set()
        leader.join(5)
        follower.join(5)

        assert len(errors) == 2

    def test_sequential_calls_run_again(self):
        flight = SingleFlight()
        assert flight.do("key", lambda: 1) == 1
        assert flight.do("key", lambda: 2) == 2
