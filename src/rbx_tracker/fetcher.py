"""
Roblox Games API client.

Fetches the current visit count and concurrent player count for a universe
from https://games.roblox.com/v1/games?universeIds=<id>.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from rbx_tracker.config import ROBLOX_GAMES_API_URL
from rbx_tracker.errors import UnavailableError
from rbx_tracker.logging import get_logger
from rbx_tracker.metrics.storage import as_count

if TYPE_CHECKING:
    from rbx_tracker.config import TrackerConfig

logger = get_logger(__name__)


class GameStatsFetchError(UnavailableError):
    """Raised when the Games API cannot produce stats for a universe."""


@dataclass(frozen=True)
class GameStats:
    """Counts reported by the Games API for one universe."""

    visits: int
    playing: int


class GameStatsFetcher:
    """
    Fetches per-universe stats from the Roblox Games API.

    Every call opens its own client bounded by timeout_seconds, so a stuck
    request fails instead of blocking the caller indefinitely.

    Example:
        >>> fetcher = GameStatsFetcher(timeout_seconds=10.0)
        >>> stats = await fetcher.fetch(6705549208)
        >>> stats.playing
        42
    """

    def __init__(
        self,
        api_url: str = ROBLOX_GAMES_API_URL,
        timeout_seconds: float = 10.0,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            api_url: Games API endpoint.
            timeout_seconds: Timeout applied to each request.
        """
        self._api_url = api_url
        self._timeout = timeout_seconds

    @classmethod
    def from_config(cls, config: TrackerConfig) -> GameStatsFetcher:
        """Create a fetcher from tracker configuration."""
        return cls(
            api_url=config.api_url,
            timeout_seconds=config.request_timeout_seconds,
        )

    @property
    def api_url(self) -> str:
        """Return the Games API endpoint."""
        return self._api_url

    @property
    def timeout_seconds(self) -> float:
        """Return the per-request timeout."""
        return self._timeout

    async def fetch(self, universe_id: int) -> GameStats:
        """
        Fetch current stats for a universe.

        Args:
            universe_id: The Roblox universe ID.

        Returns:
            GameStats with visits and playing as non-negative integers;
            non-numeric counts become 0.

        Raises:
            GameStatsFetchError: On a transport error or timeout, a non-success
                status, an unparseable body, or a body without game data.
        """
        details = {"universe_id": universe_id}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(
                    self._api_url, params={"universeIds": str(universe_id)}
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            raise GameStatsFetchError(
                f"Failed to fetch game data for {universe_id}: "
                f"{e.response.status_code}",
                details={**details, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise GameStatsFetchError(
                f"Failed to fetch game data for {universe_id}: {e}",
                details=details,
            ) from e
        except ValueError as e:
            raise GameStatsFetchError(
                f"Invalid response body for universe {universe_id}: {e}",
                details=details,
            ) from e

        game = self._select_entry(body, universe_id)
        if game is None:
            raise GameStatsFetchError(
                f"No data returned for universe {universe_id}", details=details
            )

        stats = GameStats(
            visits=as_count(game.get("visits")),
            playing=as_count(game.get("playing")),
        )
        logger.debug(
            "Fetched game stats",
            extra={
                "universe_id": universe_id,
                "visits": stats.visits,
                "playing": stats.playing,
            },
        )
        return stats

    @staticmethod
    def _select_entry(body: Any, universe_id: int) -> dict[str, Any] | None:
        """Pick the data entry for universe_id, falling back to the first one."""
        if not isinstance(body, dict):
            return None
        data = body.get("data")
        if not isinstance(data, list) or not data:
            return None
        entries = [entry for entry in data if isinstance(entry, dict)]
        for entry in entries:
            if entry.get("id") == universe_id:
                return entry
        if isinstance(data[0], dict):
            return data[0]
        return None
