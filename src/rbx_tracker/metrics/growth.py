"""
Growth metric derivation.
"""

from __future__ import annotations


def compute_growth(current: float, previous: float | None) -> float:
    """
    Percentage change from previous to current.

    A missing baseline and a zero baseline both yield 0.0, so the first sample
    of a history and a sample following a zero count report no growth.

    Args:
        current: The new value.
        previous: The value of the preceding sample, or None if there is none.

    Returns:
        ((current - previous) / previous) * 100, which is negative for a
        decline and above 100 when the value more than doubled.
    """
    if previous is None or previous == 0:
        return 0.0
    return ((current - previous) / previous) * 100
