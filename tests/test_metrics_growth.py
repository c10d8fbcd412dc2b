"""
Tests for growth metric derivation.
"""

from __future__ import annotations

import pytest

from rbx_tracker.metrics.growth import compute_growth


class TestComputeGrowth:
    """Tests for compute_growth."""

    @pytest.mark.parametrize("current", [0, 1, 150, -5, 10**9])
    def test_no_baseline_is_zero(self, current: int) -> None:
        """Test that a missing previous value yields zero growth."""
        assert compute_growth(current, None) == 0

    @pytest.mark.parametrize("current", [0, 1, 150, -5, 10**9])
    def test_zero_baseline_is_zero(self, current: int) -> None:
        """Test that a zero previous value yields zero growth."""
        assert compute_growth(current, 0) == 0
        assert compute_growth(current, 0.0) == 0

    def test_increase(self) -> None:
        """Test positive growth."""
        assert compute_growth(150, 100) == 50

    def test_decrease(self) -> None:
        """Test negative growth."""
        assert compute_growth(50, 100) == -50

    def test_more_than_doubling(self) -> None:
        """Test growth above 100 percent."""
        assert compute_growth(350, 100) == 250

    def test_drop_to_zero(self) -> None:
        """Test a drop to zero is -100 percent."""
        assert compute_growth(0, 40) == -100

    def test_fractional(self) -> None:
        """Test non-integer percentages are preserved."""
        assert compute_growth(4, 3) == pytest.approx(33.333333, rel=1e-6)
