"""
Background polling of the Roblox Games API using asyncio.

This module implements:
- UniversePoller: one fetch-and-record cycle for a single universe
- TrackerSupervisor: owns one background task per tracked universe and
  starts/stops them as a unit

Schedule: each universe is polled immediately on start, then at fixed
multiples of the interval measured from the start time. A slow cycle does not
shift later fire times; fire times that passed while a cycle was running are
skipped so cycles for one universe never overlap.
"""

from __future__ import annotations

import asyncio
import contextlib
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from rbx_tracker.errors import FailedPreconditionError
from rbx_tracker.logging import get_logger
from rbx_tracker.metrics.storage import Sample, SampleStore

if TYPE_CHECKING:
    from rbx_tracker.config import TrackerConfig
    from rbx_tracker.fetcher import GameStatsFetcher

logger = get_logger(__name__)

# Default polling interval (10 minutes)
DEFAULT_INTERVAL_SECONDS = 600.0

# How long stop() waits for tasks before cancelling them
STOP_TIMEOUT_SECONDS = 10.0


# =============================================================================
# Enums and Data Models
# =============================================================================


class SupervisorStatus(str, Enum):
    """Status of the poller supervisor."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class PollerState:
    """
    Counters for a single universe's polling task.

    Attributes:
        universe_id: The universe being polled.
        sample_count: Samples recorded since the supervisor started.
        error_count: Failed cycles since the supervisor started.
        last_sample_at: When the last sample was recorded.
        last_error: Message of the last failed cycle, if any.
    """

    universe_id: int
    sample_count: int = 0
    error_count: int = 0
    last_sample_at: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "universe_id": self.universe_id,
            "sample_count": self.sample_count,
            "error_count": self.error_count,
            "last_sample_at": (
                self.last_sample_at.isoformat() if self.last_sample_at else None
            ),
            "last_error": self.last_error,
        }


@dataclass
class SupervisorState:
    """
    Snapshot of the supervisor and all of its pollers.

    Attributes:
        status: Current supervisor status.
        interval_seconds: Polling interval.
        started_at: When the supervisor was started.
        pollers: Per-universe counters in configuration order.
    """

    status: SupervisorStatus = SupervisorStatus.STOPPED
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    started_at: datetime | None = None
    pollers: list[PollerState] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "interval_seconds": self.interval_seconds,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "pollers": [poller.to_dict() for poller in self.pollers],
        }


def next_fire_delay(started_at: float, now: float, interval: float) -> float:
    """
    Seconds until the next fire time strictly after now.

    Fire times are started_at + n * interval for n = 1, 2, ...

    Args:
        started_at: Clock reading when polling started.
        now: Current clock reading.
        interval: Polling interval in seconds.
    """
    elapsed = max(now - started_at, 0.0)
    fires_elapsed = math.floor(elapsed / interval)
    return started_at + (fires_elapsed + 1) * interval - now


# =============================================================================
# UniversePoller Class
# =============================================================================


class UniversePoller:
    """
    Fetch-and-record cycle for one universe.

    A cycle fetches current stats, derives growth against the last stored
    sample and appends the new sample. Failures are logged and counted; no
    sample is recorded for a failed cycle and nothing is retried.
    """

    def __init__(
        self,
        universe_id: int,
        store: SampleStore,
        fetcher: GameStatsFetcher,
    ) -> None:
        self.universe_id = universe_id
        self._store = store
        self._fetcher = fetcher
        self._state = PollerState(universe_id=universe_id)
        self._lock = asyncio.Lock()

    def get_state(self) -> PollerState:
        """Return a copy of this poller's counters."""
        return PollerState(
            universe_id=self._state.universe_id,
            sample_count=self._state.sample_count,
            error_count=self._state.error_count,
            last_sample_at=self._state.last_sample_at,
            last_error=self._state.last_error,
        )

    def reset(self) -> None:
        """Reset counters for a new supervisor run."""
        self._state = PollerState(universe_id=self.universe_id)

    async def run_cycle(self) -> Sample | None:
        """
        Perform one fetch-and-record cycle.

        Returns:
            The recorded Sample, or None if the cycle failed.
        """
        async with self._lock:
            try:
                stats = await self._fetcher.fetch(self.universe_id)
                history = await self._store.load(self.universe_id)
                sample = Sample.record(
                    visits=stats.visits,
                    playing=stats.playing,
                    previous=history[-1] if history else None,
                )
                await self._store.append(self.universe_id, sample)
            except Exception as e:
                self._state.error_count += 1
                self._state.last_error = str(e)
                logger.error(
                    "Error recording data for universe",
                    extra={"universe_id": self.universe_id, "error": str(e)},
                )
                return None

            self._state.sample_count += 1
            self._state.last_sample_at = datetime.now(UTC)
            logger.info(
                f"Recorded data for universe {self.universe_id}: "
                f"visits={sample.visits}, playing={sample.playing}",
                extra={
                    "universe_id": self.universe_id,
                    "sample_timestamp": sample.timestamp,
                    "visits_growth": sample.visits_growth,
                    "playing_growth": sample.playing_growth,
                },
            )
            return sample


# =============================================================================
# TrackerSupervisor Class
# =============================================================================


class TrackerSupervisor:
    """
    Owns one background polling task per tracked universe.

    Tasks are independent: a slow or failing universe never delays another.
    The clock and sleep functions are injectable so the schedule can be
    exercised without real timers.

    Example:
        >>> store = SampleStore("data")
        >>> supervisor = TrackerSupervisor(store, GameStatsFetcher(), config.tracker)
        >>> await supervisor.start()
        >>> status = supervisor.get_status()
        >>> await supervisor.stop()
    """

    def __init__(
        self,
        store: SampleStore,
        fetcher: GameStatsFetcher,
        config: TrackerConfig | None = None,
        *,
        universe_ids: list[int] | None = None,
        interval_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """
        Initialize the supervisor.

        Args:
            store: SampleStore the pollers append to.
            fetcher: GameStatsFetcher used by every poller.
            config: Optional TrackerConfig providing ids and interval.
            universe_ids: Universe ids to poll (overrides config).
            interval_seconds: Polling interval (overrides config).
            clock: Monotonic clock used for the schedule.
            sleep: Coroutine function used to wait between cycles. Defaults to
                waiting on the stop signal with a timeout.
        """
        if universe_ids is None:
            universe_ids = list(config.universe_ids) if config else []
        if interval_seconds is None:
            interval_seconds = (
                config.interval_seconds if config else DEFAULT_INTERVAL_SECONDS
            )

        self._store = store
        self._interval = float(interval_seconds)
        self._clock = clock
        self._sleep = sleep
        self._pollers = [
            UniversePoller(universe_id, store, fetcher) for universe_id in universe_ids
        ]
        self._status = SupervisorStatus.STOPPED
        self._started_at: datetime | None = None
        self._start_clock = 0.0
        self._tasks: list[asyncio.Task[None]] = []
        self._stop_event = asyncio.Event()
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        """Check if the supervisor is currently running."""
        return self._status == SupervisorStatus.RUNNING

    @property
    def pollers(self) -> list[UniversePoller]:
        """Pollers in configuration order."""
        return list(self._pollers)

    def get_status(self) -> SupervisorState:
        """Return a snapshot of the supervisor and its pollers."""
        return SupervisorState(
            status=self._status,
            interval_seconds=self._interval,
            started_at=self._started_at,
            pollers=[poller.get_state() for poller in self._pollers],
        )

    async def start(self) -> SupervisorState:
        """
        Start one polling task per universe.

        Raises:
            FailedPreconditionError: If the supervisor is already running.
        """
        async with self._lock:
            if self._status in (SupervisorStatus.RUNNING, SupervisorStatus.STARTING):
                raise FailedPreconditionError(
                    "Tracker is already running",
                    details={"started_at": str(self._started_at)},
                )

            self._status = SupervisorStatus.STARTING
            await self._store.initialize()

            self._stop_event.clear()
            self._started_at = datetime.now(UTC)
            self._start_clock = self._clock()
            for poller in self._pollers:
                poller.reset()
            self._tasks = [
                asyncio.create_task(
                    self._poll_loop(poller), name=f"poll-{poller.universe_id}"
                )
                for poller in self._pollers
            ]
            self._status = SupervisorStatus.RUNNING

            logger.info(
                "Tracker started",
                extra={
                    "universe_ids": [p.universe_id for p in self._pollers],
                    "interval_seconds": self._interval,
                },
            )
            return self.get_status()

    async def stop(self) -> SupervisorState:
        """
        Stop all polling tasks.

        In-progress cycles are given STOP_TIMEOUT_SECONDS to finish before
        their tasks are cancelled.
        """
        async with self._lock:
            if self._status not in (SupervisorStatus.RUNNING, SupervisorStatus.STARTING):
                return self.get_status()

            self._status = SupervisorStatus.STOPPING
            self._stop_event.set()

            if self._tasks:
                _, pending = await asyncio.wait(
                    self._tasks, timeout=STOP_TIMEOUT_SECONDS
                )
                if pending:
                    logger.warning(
                        "Polling tasks did not stop gracefully, cancelling",
                        extra={"pending": len(pending)},
                    )
                    for task in pending:
                        task.cancel()
                    for task in pending:
                        with contextlib.suppress(asyncio.CancelledError):
                            await task
                self._tasks = []

            self._status = SupervisorStatus.STOPPED
            logger.info(
                "Tracker stopped",
                extra={
                    "sample_count": sum(
                        p.get_state().sample_count for p in self._pollers
                    ),
                },
            )
            return self.get_status()

    async def _poll_loop(self, poller: UniversePoller) -> None:
        """Run cycles for one universe until the stop signal is set."""
        while not self._stop_event.is_set():
            await poller.run_cycle()

            delay = next_fire_delay(self._start_clock, self._clock(), self._interval)
            if await self._wait(delay):
                break

    async def _wait(self, delay: float) -> bool:
        """Wait delay seconds; return True if stop was requested."""
        if self._sleep is not None:
            await self._sleep(delay)
            return self._stop_event.is_set()

        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            return True
        except TimeoutError:
            return False
