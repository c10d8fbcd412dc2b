"""
Roblox Game Analytics Tracker.

This package polls the Roblox Games API for a fixed set of universes, stores
each sample with growth percentages, and serves the history over HTTP with a
chart dashboard.
"""

__version__ = "0.1.0"
