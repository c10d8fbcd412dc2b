"""
Metrics module for the Roblox game analytics tracker.

Components:
- growth: percentage change between consecutive samples
- storage: per-universe JSON sample histories
- sampler: background polling tasks that record samples
"""

from rbx_tracker.metrics.growth import compute_growth
from rbx_tracker.metrics.sampler import TrackerSupervisor, UniversePoller
from rbx_tracker.metrics.storage import Sample, SampleStore

__all__ = [
    "compute_growth",
    "Sample",
    "SampleStore",
    "TrackerSupervisor",
    "UniversePoller",
]
