# pagewright/driver/__init__.py
"""
Driver package
--------------
The Driver protocol the core talks to. The Playwright implementation lives
in pagewright.driver.playwright_driver and is imported on demand.
"""

from .base import Driver, Handle, MissingHandle, is_missing

__all__ = [
    "Driver",
    "Handle",
    "MissingHandle",
    "is_missing",
]
