"""
HTTP layer for the Roblox game analytics tracker.
"""

from rbx_tracker.web.app import create_app

__all__ = ["create_app"]
