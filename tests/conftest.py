"""
Pytest configuration for the Roblox game analytics tracker tests.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from rbx_tracker.fetcher import GameStats
from rbx_tracker.metrics.storage import SampleStore


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (deselect with '-m \"not integration\"')",
    )


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Directory for per-universe sample files."""
    return tmp_path / "data"


@pytest.fixture
def store(data_dir: Path) -> SampleStore:
    """A SampleStore backed by a temporary directory."""
    return SampleStore(data_dir)


@pytest.fixture
def fetcher() -> AsyncMock:
    """A fetcher stand-in whose fetch() returns scripted GameStats."""
    mock_fetcher = AsyncMock()
    mock_fetcher.fetch.return_value = GameStats(visits=100, playing=10)
    return mock_fetcher
