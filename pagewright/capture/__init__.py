"""
Capture package for pagewright.
Handles the HTML replay log with screenshots and DOM snapshots.
"""

from .replay import ReplayLog

__all__ = [
    "ReplayLog",
]
