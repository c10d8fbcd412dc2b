"""
Tests for the HTTP API and dashboard routes.
"""

from __future__ import annotations

import time
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from rbx_tracker.config import AppConfig
from rbx_tracker.fetcher import GameStats, GameStatsFetchError
from rbx_tracker.metrics.storage import Sample
from rbx_tracker.web.app import create_app

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def app_config(data_dir: Path) -> AppConfig:
    """Configuration tracking universes 111 and 222."""
    return AppConfig(
        tracker={"universe_ids": [111, 222], "fetch_interval_minutes": 60},
        storage={"data_dir": str(data_dir)},
    )


@pytest.fixture
def app(app_config: AppConfig, fetcher: AsyncMock) -> FastAPI:
    """Application with polling disabled."""
    return create_app(app_config, fetcher=fetcher, start_polling=False)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client that does not run the lifespan."""
    return TestClient(app)


async def _seed(app: FastAPI) -> None:
    store = app.state.store
    await store.append(111, Sample("2026-01-01T00:00:00.000Z", 100, 10))
    await store.append(111, Sample("2026-01-01T00:10:00.000Z", 150, 5, 50.0, -50.0))


# =============================================================================
# Tests for /api routes
# =============================================================================


class TestDataRoutes:
    """Tests for /api/data and /api/data/{id}."""

    async def test_all_data(self, app: FastAPI, client: TestClient) -> None:
        """Test all tracked universes are returned keyed by id."""
        await _seed(app)

        response = client.get("/api/data")

        assert response.status_code == 200
        body = response.json()
        assert list(body) == ["111", "222"]
        assert len(body["111"]) == 2
        assert body["222"] == []

    async def test_single_universe(self, app: FastAPI, client: TestClient) -> None:
        """Test one universe's history is returned as an array."""
        await _seed(app)

        response = client.get("/api/data/111")

        assert response.status_code == 200
        body = response.json()
        assert [entry["visits"] for entry in body] == [100, 150]
        assert body[1]["visitsGrowth"] == 50
        assert body[1]["playingGrowth"] == -50

    @pytest.mark.parametrize("universe_id", ["333", "abc"])
    def test_single_universe_not_tracked(
        self, client: TestClient, universe_id: str
    ) -> None:
        """Test untracked ids return a structured 404."""
        response = client.get(f"/api/data/{universe_id}")

        assert response.status_code == 404
        assert response.json() == {
            "error": f"Universe {universe_id} is not being tracked.",
            "error_code": "not_found",
        }


class TestGrowthRoute:
    """Tests for /api/growth/{id}."""

    async def test_growth(self, app: FastAPI, client: TestClient) -> None:
        """Test growth entries carry only timestamp and growth fields."""
        await _seed(app)

        response = client.get("/api/growth/111")

        assert response.status_code == 200
        body = response.json()
        assert len(body) == 2
        for entry in body:
            assert set(entry) == {"timestamp", "visitsGrowth", "playingGrowth"}

    def test_growth_not_tracked(self, client: TestClient) -> None:
        """Test untracked ids return 404 rather than an empty array."""
        response = client.get("/api/growth/333")

        assert response.status_code == 404
        assert response.json()["error_code"] == "not_found"


class TestStatusRoute:
    """Tests for /api/status."""

    def test_status_when_not_polling(self, client: TestClient) -> None:
        """Test status reports a stopped supervisor and its pollers."""
        response = client.get("/api/status")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "stopped"
        assert body["interval_seconds"] == 3600
        assert [p["universe_id"] for p in body["pollers"]] == [111, 222]


# =============================================================================
# Tests for the dashboard
# =============================================================================


class TestDashboard:
    """Tests for static dashboard files."""

    def test_index(self, client: TestClient) -> None:
        """Test / serves the dashboard page."""
        response = client.get("/")

        assert response.status_code == 200
        assert "gameSelect" in response.text

    def test_script(self, client: TestClient) -> None:
        """Test the chart script is served."""
        response = client.get("/script.js")

        assert response.status_code == 200
        assert "/api/data" in response.text


# =============================================================================
# Tests for the lifespan
# =============================================================================


@pytest.mark.integration
class TestLifespan:
    """Tests for polling driven by the application lifespan."""

    def test_polls_on_startup(self, app_config: AppConfig, fetcher: AsyncMock) -> None:
        """Test startup records one sample per universe and shutdown stops polling."""
        fetcher.fetch.side_effect = [
            GameStats(visits=100, playing=10),
            GameStatsFetchError("Failed to fetch game data for 222: 500"),
        ]
        app = create_app(app_config, fetcher=fetcher)

        with TestClient(app) as client:
            for _ in range(200):
                pollers = client.get("/api/status").json()["pollers"]
                if all(p["sample_count"] + p["error_count"] >= 1 for p in pollers):
                    break
                time.sleep(0.01)
            status = client.get("/api/status").json()
            data = client.get("/api/data").json()

        assert status["status"] == "running"
        assert len(data["111"]) == 1
        assert data["111"][0]["visitsGrowth"] == 0
        assert data["222"] == []
        assert app.state.supervisor.get_status().status.value == "stopped"
