"""Periodic refresh of the district rankings cache.

The API process runs RefreshScheduler on a daemon thread, reloading every
10 minutes so that the 12-minute staleness threshold is rarely reached by
user requests. The same refresh can be run once from the command line:

    python -m safetravel.cache.refresh           # Reload rankings and forecasts
    python -m safetravel.cache.refresh --status  # Show cache status
    python -m safetravel.cache.refresh --cleanup # Delete expired entries
"""

import argparse
import logging
import sys
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from safetravel.cache.database import DuckDBWeatherCache
from safetravel.cache.service import WeatherDataService, create_weather_service
from safetravel.config import (
    DEFAULT_DB_PATH,
    MIN_REFRESH_INTERVAL,
    REFRESH_INTERVAL,
    REFRESH_RETRY_DELAYS_SECONDS,
    Settings,
)
from safetravel.domain.exceptions import RefreshCancelledError

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_SKIPPED_OVERLAP = "skipped_overlap"
STATUS_SKIPPED_RECENT = "skipped_recent"


@dataclass
class RefreshResult:
    """Result of a refresh trigger."""

    status: str
    duration_ms: int = 0
    regions_ranked: int = 0

    @property
    def skipped(self) -> bool:
        return self.status != STATUS_COMPLETED

    def __str__(self) -> str:
        if self.skipped:
            return f"Refresh skipped ({self.status})"
        return (
            f"Refresh complete: {self.regions_ranked} districts ranked "
            f"({self.duration_ms}ms)"
        )


class PeriodicRefresher:
    """Guards scheduled reloads against overlap and over-eager repeats.

    A trigger is skipped if another execution on this instance is still
    running, or if the last successful execution finished less than
    min_interval ago.
    """

    def __init__(
        self,
        service: WeatherDataService,
        min_interval: timedelta = MIN_REFRESH_INTERVAL,
    ):
        self.service = service
        self.min_interval = min_interval
        self.last_success: Optional[datetime] = None
        self._running = threading.Lock()

    def execute(self, cancel_event: Optional[threading.Event] = None) -> RefreshResult:
        """Run one guarded reload.

        Raises:
            RefreshCancelledError: cancel_event was set during the reload
            DataUnavailableError: The reload failed; the scheduler retries
        """
        if not self._running.acquire(blocking=False):
            logger.warning("Refresh already in progress, skipping this trigger")
            return RefreshResult(status=STATUS_SKIPPED_OVERLAP)

        try:
            if self.last_success is not None:
                since_last = datetime.utcnow() - self.last_success
                if since_last < self.min_interval:
                    logger.info(
                        f"Last refresh succeeded {since_last.total_seconds():.0f}s ago, "
                        f"skipping"
                    )
                    return RefreshResult(status=STATUS_SKIPPED_RECENT)

            logger.info("Starting scheduled refresh...")
            start_time = time.time()
            try:
                snapshot = self.service.reload(cancel_event)
            except RefreshCancelledError:
                logger.warning("Scheduled refresh cancelled")
                raise
            except Exception as e:
                logger.error(f"Scheduled refresh failed: {e}")
                raise

            self.last_success = datetime.utcnow()
            result = RefreshResult(
                status=STATUS_COMPLETED,
                duration_ms=int((time.time() - start_time) * 1000),
                regions_ranked=len(snapshot.rankings),
            )
            logger.info(str(result))
            return result
        finally:
            self._running.release()


class RefreshScheduler:
    """Runs a PeriodicRefresher on a fixed interval in a daemon thread.

    A failed run is retried after each delay in retry_delays. stop() sets
    the event that doubles as the cancellation token of an in-flight reload.
    """

    def __init__(
        self,
        refresher: PeriodicRefresher,
        interval_seconds: float = REFRESH_INTERVAL.total_seconds(),
        retry_delays: tuple[float, ...] = REFRESH_RETRY_DELAYS_SECONDS,
    ):
        self.refresher = refresher
        self.interval_seconds = interval_seconds
        self.retry_delays = tuple(retry_delays)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="safetravel-refresh-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Refresh scheduler started (every {self.interval_seconds:.0f}s)")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Refresh scheduler stopped")

    def run_once(self) -> Optional[RefreshResult]:
        """One scheduled trigger including retries.

        Returns:
            The refresh result, or None if every attempt failed or the
            scheduler was stopped
        """
        delays = (0,) + self.retry_delays
        for attempt, delay in enumerate(delays, 1):
            if delay and self._stop_event.wait(delay):
                return None
            try:
                return self.refresher.execute(self._stop_event)
            except RefreshCancelledError:
                return None
            except Exception as e:
                logger.error(f"Refresh attempt {attempt}/{len(delays)} failed: {e}")

        logger.error(f"Refresh failed after {len(delays)} attempts")
        return None

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self.run_once()
            if self._stop_event.wait(self.interval_seconds):
                break


def get_cache_status(db_path: Optional[Path] = None) -> dict:
    """Get current cache status.

    Args:
        db_path: Path to DuckDB file. Uses default if not specified.

    Returns:
        Dict with store statistics, derived metadata and the current top 10
    """
    cache = DuckDBWeatherCache(db_path or DEFAULT_DB_PATH)

    try:
        stats = cache.get_stats()
        metadata = cache.get_metadata()
        snapshot = cache.get_rankings()

        return {
            "db_path": stats["db_path"],
            "entry_count": stats["entry_count"],
            "live_entry_count": stats["live_entry_count"],
            "last_updated": metadata.last_updated if metadata else None,
            "is_healthy": metadata.is_healthy if metadata else False,
            "regions_cached": metadata.regions_cached if metadata else 0,
            "top_districts": [str(r) for r in snapshot.rankings[:10]] if snapshot else [],
        }

    finally:
        cache.close()


def print_status(status: dict) -> None:
    """Print cache status in human-readable format."""
    print()
    print("=" * 60)
    print("SafeTravel Cache Status")
    print("=" * 60)
    print(f"Database: {status['db_path']}")
    print(f"Entries: {status['live_entry_count']} live / {status['entry_count']} total")
    print(f"District forecasts cached: {status['regions_cached']}")

    if status["last_updated"]:
        health = "OK" if status["is_healthy"] else "EXPIRED"
        print(f"Last updated: {status['last_updated']} ({health})")
    else:
        print("Last updated: never")

    if status["top_districts"]:
        print()
        print("Top districts:")
        print("-" * 60)
        for line in status["top_districts"]:
            print(f"  {line}")

    print("=" * 60)


def main():
    """CLI entry point for a one-off refresh."""
    parser = argparse.ArgumentParser(
        description="Reload district rankings and forecasts into the cache",
        epilog="""
Examples:
  python -m safetravel.cache.refresh           # Reload now
  python -m safetravel.cache.refresh --status  # Show status
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--status",
        action="store_true",
        help="Show current cache status",
    )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Delete expired cache entries instead of refreshing",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help=f"Database path (default: {DEFAULT_DB_PATH})",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors",
    )

    args = parser.parse_args()

    if args.quiet:
        level = logging.ERROR
    elif args.verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.status:
        status = get_cache_status(args.db)
        print_status(status)
        return 0

    if args.cleanup:
        cache = DuckDBWeatherCache(args.db or DEFAULT_DB_PATH)
        try:
            cache.cleanup_expired()
        finally:
            cache.close()
        return 0

    service = create_weather_service(Settings.from_env(db_path=args.db))

    try:
        PeriodicRefresher(service).execute()
        return 0

    except Exception as e:
        logger.error(f"Refresh failed: {e}")
        return 1

    finally:
        service.cache.close()


if __name__ == "__main__":
    sys.exit(main())
