"""
Tests for the Roblox Games API client.
"""

from __future__ import annotations

from typing import Any
from unittest import mock

import httpx
import pytest

from rbx_tracker import fetcher as fetcher_module
from rbx_tracker.config import TrackerConfig
from rbx_tracker.errors import UnavailableError
from rbx_tracker.fetcher import GameStats, GameStatsFetcher, GameStatsFetchError

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def games_fetcher() -> GameStatsFetcher:
    """Create a fetcher pointed at a test URL."""
    return GameStatsFetcher(api_url="https://games.test/v1/games", timeout_seconds=5.0)


def _response(body: Any = None, *, json_error: Exception | None = None) -> mock.MagicMock:
    response = mock.MagicMock()  # json() is sync
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = body
    response.raise_for_status = mock.Mock()
    return response


def _patch_client(response: mock.MagicMock | None = None, error: Exception | None = None):
    patcher = mock.patch("httpx.AsyncClient")
    mock_client_class = patcher.start()
    mock_client = mock.AsyncMock()
    if error is not None:
        mock_client.get.side_effect = error
    else:
        mock_client.get.return_value = response
    mock_client_class.return_value.__aenter__.return_value = mock_client
    return patcher, mock_client_class, mock_client


# =============================================================================
# Tests for configuration
# =============================================================================


class TestGameStatsFetcherInit:
    """Tests for fetcher construction."""

    def test_from_config(self) -> None:
        """Test building a fetcher from TrackerConfig."""
        config = TrackerConfig(
            api_url="https://games.test/v1/games", request_timeout_seconds=3
        )

        fetcher = GameStatsFetcher.from_config(config)

        assert fetcher.api_url == "https://games.test/v1/games"
        assert fetcher.timeout_seconds == 3

    def test_logger_is_package_child(self) -> None:
        """Test the module logs through the configured package logger."""
        assert fetcher_module.logger.name == "rbx_tracker.fetcher"

    def test_fetch_error_is_unavailable(self) -> None:
        """Test fetch errors belong to the unavailable category."""
        error = GameStatsFetchError("down")

        assert isinstance(error, UnavailableError)
        assert error.error_code == "unavailable"


# =============================================================================
# Tests for fetch
# =============================================================================


class TestGameStatsFetch:
    """Tests for GameStatsFetcher.fetch."""

    async def test_fetch_success(self, games_fetcher: GameStatsFetcher) -> None:
        """Test parsing visits and playing from the first data entry."""
        patcher, client_class, client = _patch_client(
            _response({"data": [{"id": 111, "visits": 1500, "playing": 42}]})
        )
        try:
            stats = await games_fetcher.fetch(111)
        finally:
            patcher.stop()

        assert stats == GameStats(visits=1500, playing=42)
        client.get.assert_awaited_once_with(
            "https://games.test/v1/games", params={"universeIds": "111"}
        )
        client_class.assert_called_once_with(timeout=5.0)

    async def test_fetch_prefers_matching_entry(
        self, games_fetcher: GameStatsFetcher
    ) -> None:
        """Test the entry whose id matches is used when several are returned."""
        body = {
            "data": [
                {"id": 999, "visits": 1, "playing": 1},
                {"id": 111, "visits": 2, "playing": 3},
            ]
        }
        patcher, _, _ = _patch_client(_response(body))
        try:
            stats = await games_fetcher.fetch(111)
        finally:
            patcher.stop()

        assert stats == GameStats(visits=2, playing=3)

    @pytest.mark.parametrize(
        "entry",
        [
            {"visits": "lots", "playing": None},
            {"visits": True, "playing": False},
            {},
        ],
    )
    async def test_non_numeric_counts_become_zero(
        self, games_fetcher: GameStatsFetcher, entry: dict[str, Any]
    ) -> None:
        """Test present-but-not-numeric counts are coerced to 0."""
        patcher, _, _ = _patch_client(_response({"data": [entry]}))
        try:
            stats = await games_fetcher.fetch(111)
        finally:
            patcher.stop()

        assert stats == GameStats(visits=0, playing=0)

    async def test_counts_become_non_negative_integers(
        self, games_fetcher: GameStatsFetcher
    ) -> None:
        """Test fractional counts are truncated and negative counts become 0."""
        patcher, _, _ = _patch_client(
            _response({"data": [{"id": 111, "visits": 1500.9, "playing": -3}]})
        )
        try:
            stats = await games_fetcher.fetch(111)
        finally:
            patcher.stop()

        assert stats == GameStats(visits=1500, playing=0)
        assert isinstance(stats.visits, int)

    async def test_http_error_status(self, games_fetcher: GameStatsFetcher) -> None:
        """Test a non-success status is a fetch failure."""
        response = _response({})
        response.status_code = 500
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Server error", request=mock.MagicMock(), response=response
        )
        patcher, _, _ = _patch_client(response)
        try:
            with pytest.raises(GameStatsFetchError, match="500") as exc_info:
                await games_fetcher.fetch(222)
        finally:
            patcher.stop()

        assert exc_info.value.details["status_code"] == 500

    async def test_network_error(self, games_fetcher: GameStatsFetcher) -> None:
        """Test transport errors are fetch failures."""
        patcher, _, _ = _patch_client(error=httpx.ConnectError("Connection failed"))
        try:
            with pytest.raises(GameStatsFetchError, match="Failed to fetch"):
                await games_fetcher.fetch(111)
        finally:
            patcher.stop()

    async def test_timeout(self, games_fetcher: GameStatsFetcher) -> None:
        """Test a timed-out request is a fetch failure."""
        patcher, _, _ = _patch_client(error=httpx.ReadTimeout("timed out"))
        try:
            with pytest.raises(GameStatsFetchError):
                await games_fetcher.fetch(111)
        finally:
            patcher.stop()

    async def test_invalid_json(self, games_fetcher: GameStatsFetcher) -> None:
        """Test an unparseable body is a fetch failure."""
        patcher, _, _ = _patch_client(_response(json_error=ValueError("Invalid JSON")))
        try:
            with pytest.raises(GameStatsFetchError, match="Invalid response body"):
                await games_fetcher.fetch(111)
        finally:
            patcher.stop()

    @pytest.mark.parametrize(
        "body",
        [
            {"data": []},
            {"data": None},
            {"errors": [{"code": 0}]},
            [],
            {"data": ["not an object"]},
        ],
    )
    async def test_missing_data_entry(
        self, games_fetcher: GameStatsFetcher, body: Any
    ) -> None:
        """Test a body without a usable data entry is a fetch failure."""
        patcher, _, _ = _patch_client(_response(body))
        try:
            with pytest.raises(GameStatsFetchError, match="No data returned"):
                await games_fetcher.fetch(111)
        finally:
            patcher.stop()
