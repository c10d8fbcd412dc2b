"""
Read-only projections over the sample store.

- all_data: every tracked universe mapped to its history
- history: one universe's full history
- growth: one universe's history reduced to timestamps and growth percentages
"""

from __future__ import annotations

from typing import Any

from rbx_tracker.errors import NotFoundError
from rbx_tracker.metrics.storage import SampleStore


class TrackerQueries:
    """Projections of stored histories for the tracked universes."""

    def __init__(self, store: SampleStore, universe_ids: list[int]) -> None:
        self._store = store
        self._universe_ids = list(universe_ids)

    def tracked_ids(self) -> list[int]:
        """Return the tracked universe ids in configuration order."""
        return list(self._universe_ids)

    def resolve(self, raw_id: str | int) -> int:
        """
        Map a requested id onto a tracked universe id.

        Raises:
            NotFoundError: If raw_id is not an integer or is not tracked.
        """
        try:
            universe_id = int(str(raw_id).strip())
        except ValueError:
            universe_id = None

        if universe_id is None or universe_id not in self._universe_ids:
            raise NotFoundError(
                f"Universe {raw_id} is not being tracked.",
                details={"universe_id": str(raw_id)},
            )
        return universe_id

    async def all_data(self) -> dict[str, list[dict[str, Any]]]:
        """Return every tracked universe (as a string key) mapped to its history."""
        result: dict[str, list[dict[str, Any]]] = {}
        for universe_id in self._universe_ids:
            history = await self._store.load(universe_id)
            result[str(universe_id)] = [sample.to_dict() for sample in history]
        return result

    async def history(self, raw_id: str | int) -> list[dict[str, Any]]:
        """Return the full history of one tracked universe."""
        universe_id = self.resolve(raw_id)
        history = await self._store.load(universe_id)
        return [sample.to_dict() for sample in history]

    async def growth(self, raw_id: str | int) -> list[dict[str, Any]]:
        """Return timestamp, visitsGrowth and playingGrowth for each sample."""
        universe_id = self.resolve(raw_id)
        history = await self._store.load(universe_id)
        return [sample.to_growth_dict() for sample in history]
