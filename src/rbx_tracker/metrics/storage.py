"""
JSON file storage for per-universe sample histories.

This module implements the SampleStore class that handles:
- One durable record per tracked universe: <data_dir>/<universe_id>.json
- Loading a universe's full history (missing or corrupt records read as empty)
- Appending a sample by rewriting the whole history atomically

Record layout (a JSON array in chronological order):
    [
      {"timestamp": "2026-10-19T12:00:00.000Z", "visits": 100, "playing": 10,
       "visitsGrowth": 0, "playingGrowth": 0},
      ...
    ]
"""

from __future__ import annotations

import asyncio
import json
import math
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from rbx_tracker.errors import InvalidArgumentError
from rbx_tracker.logging import get_logger
from rbx_tracker.metrics.growth import compute_growth

logger = get_logger(__name__)

# =============================================================================
# Data Models
# =============================================================================


def utc_timestamp(moment: datetime | None = None) -> str:
    """Format a moment (default: now) as ISO 8601 UTC with milliseconds and Z."""
    moment = moment or datetime.now(UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def as_count(value: Any) -> int:
    """Coerce a reported count to a non-negative integer; non-numbers are 0."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return max(int(value), 0)


def _as_growth(value: Any) -> float:
    # JSON null is how NaN growths were historically written
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return float(value)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class Sample:
    """A single poll result for one universe.

    Attributes:
        timestamp: ISO 8601 UTC time the sample was taken.
        visits: Total visit count reported by the Games API.
        playing: Concurrent players reported by the Games API.
        visits_growth: Percentage change of visits vs. the previous sample.
        playing_growth: Percentage change of playing vs. the previous sample.
    """

    timestamp: str
    visits: int
    playing: int
    visits_growth: float = 0.0
    playing_growth: float = 0.0

    @classmethod
    def record(
        cls,
        visits: int,
        playing: int,
        previous: Sample | None = None,
        timestamp: str | None = None,
    ) -> Sample:
        """
        Build a new sample with growth derived from the previous one.

        Args:
            visits: Current visit count.
            playing: Current concurrent players.
            previous: Last stored sample, or None for the first sample.
            timestamp: Override for the sample time (defaults to now).
        """
        return cls(
            timestamp=timestamp or utc_timestamp(),
            visits=visits,
            playing=playing,
            visits_growth=(
                compute_growth(visits, previous.visits) if previous else 0.0
            ),
            playing_growth=(
                compute_growth(playing, previous.playing) if previous else 0.0
            ),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Sample:
        """
        Build a sample from its stored form.

        Missing or non-numeric counts and growths read as 0.

        Raises:
            ValueError: If the timestamp is missing or not ISO 8601.
        """
        timestamp = data.get("timestamp")
        if not isinstance(timestamp, str):
            raise ValueError(f"invalid timestamp: {timestamp!r}")
        parse_timestamp(timestamp)
        return cls(
            timestamp=timestamp,
            visits=as_count(data.get("visits")),
            playing=as_count(data.get("playing")),
            visits_growth=_as_growth(data.get("visitsGrowth")),
            playing_growth=_as_growth(data.get("playingGrowth")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored/served dictionary form."""
        return {
            "timestamp": self.timestamp,
            "visits": self.visits,
            "playing": self.playing,
            "visitsGrowth": self.visits_growth,
            "playingGrowth": self.playing_growth,
        }

    def to_growth_dict(self) -> dict[str, Any]:
        """Growth-only projection: the counts are dropped."""
        return {
            "timestamp": self.timestamp,
            "visitsGrowth": self.visits_growth,
            "playingGrowth": self.playing_growth,
        }


# =============================================================================
# SampleStore Class
# =============================================================================


class SampleStore:
    """
    Append-only JSON storage of sample histories, one file per universe.

    Every read re-parses the record from disk; there is no in-memory cache.
    Appends rewrite the complete history into a temporary file and rename it
    over the record, so readers only ever see a complete array.

    Concurrency:
    - Appends for the same universe are serialized with a per-universe lock
    - Universes never share a record, so they need no coordination
    - File I/O runs in the default executor

    Example:
        >>> store = SampleStore("data")
        >>> await store.initialize()
        >>> await store.append(6705549208, Sample.record(visits=100, playing=10))
        >>> history = await store.load(6705549208)
    """

    def __init__(self, data_dir: str | Path) -> None:
        """
        Initialize the SampleStore.

        Args:
            data_dir: Directory holding the per-universe JSON records.
        """
        self.data_dir = Path(data_dir)
        self._locks: dict[int, asyncio.Lock] = {}

    def path_for(self, universe_id: int) -> Path:
        """Return the record path for a universe."""
        return self.data_dir / f"{universe_id}.json"

    def _lock_for(self, universe_id: int) -> asyncio.Lock:
        lock = self._locks.get(universe_id)
        if lock is None:
            lock = self._locks[universe_id] = asyncio.Lock()
        return lock

    async def initialize(self) -> None:
        """Create the data directory. Safe to call multiple times."""
        await asyncio.get_event_loop().run_in_executor(
            None, lambda: self.data_dir.mkdir(parents=True, exist_ok=True)
        )
        logger.info(
            "Sample store initialized",
            extra={"data_dir": str(self.data_dir)},
        )

    async def load(self, universe_id: int) -> list[Sample]:
        """
        Load the full history of a universe.

        A missing record and an unreadable or undecodable record both yield
        an empty history; the latter is logged as a warning. Within a valid
        array, entries without a usable timestamp are skipped with a warning
        and non-numeric counts or growths read as 0.

        Args:
            universe_id: The universe whose history to read.

        Returns:
            Samples in chronological order.
        """
        return await asyncio.get_event_loop().run_in_executor(
            None, self._read, universe_id
        )

    async def append(self, universe_id: int, sample: Sample) -> list[Sample]:
        """
        Append a sample and persist the complete history.

        Args:
            universe_id: The universe the sample belongs to.
            sample: The new sample; must not predate the last stored one.

        Returns:
            The history as written, ending with sample.

        Raises:
            InvalidArgumentError: If sample is older than the last stored sample.
            OSError: If the record cannot be written.
        """
        async with self._lock_for(universe_id):
            history = await self.load(universe_id)
            if history and parse_timestamp(sample.timestamp) < parse_timestamp(
                history[-1].timestamp
            ):
                raise InvalidArgumentError(
                    "Sample is older than the last stored sample",
                    details={
                        "universe_id": universe_id,
                        "timestamp": sample.timestamp,
                        "last_timestamp": history[-1].timestamp,
                    },
                )
            history.append(sample)
            await asyncio.get_event_loop().run_in_executor(
                None, self._write, universe_id, history
            )
            return history

    def _read(self, universe_id: int) -> list[Sample]:
        path = self.path_for(universe_id)
        try:
            content = path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning(
                "Sample record unreadable, treating as empty",
                extra={"path": str(path), "error": str(e)},
            )
            return []

        # Only an undecodable document or a non-array is corrupt as a whole
        try:
            raw = json.loads(content)
            if not isinstance(raw, list):
                raise ValueError(f"expected a JSON array, got {type(raw).__name__}")
        except ValueError as e:
            logger.warning(
                "Sample record corrupt, treating as empty",
                extra={"path": str(path), "error": str(e)},
            )
            return []

        samples: list[Sample] = []
        for index, entry in enumerate(raw):
            try:
                if not isinstance(entry, dict):
                    raise ValueError(f"expected an object, got {type(entry).__name__}")
                samples.append(Sample.from_dict(entry))
            except ValueError as e:
                logger.warning(
                    "Skipping malformed sample entry",
                    extra={"path": str(path), "index": index, "error": str(e)},
                )
        return samples

    def _write(self, universe_id: int, history: list[Sample]) -> None:
        path = self.path_for(universe_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp.write_text(
                json.dumps([sample.to_dict() for sample in history], indent=2),
                encoding="utf-8",
            )
            os.replace(tmp, path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
