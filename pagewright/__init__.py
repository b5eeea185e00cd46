"""
pagewright
----------
Page-object resilience layer over browser automation: a Session that knows
which page it is on, element proxies that survive flaky remote drivers, and
polling page transitions with bounded budgets.
"""

from .core.descriptors import ElementDescriptor, PageDescriptor, PageRegistry, element
from .core.page import ArrivalReport, Page
from .core.session import Session, TransitionResult
from .elements.proxy import ElementProxy
from .errors import (
    ArrivalTimeout,
    ConfigurationError,
    PagewrightError,
    ProtocolError,
    ResolutionError,
    StaleHandleError,
    TransitionTimeout,
    WriteVerificationError,
    WrongPageError,
)

__all__ = [
    "ElementDescriptor",
    "PageDescriptor",
    "PageRegistry",
    "element",
    "ArrivalReport",
    "Page",
    "Session",
    "TransitionResult",
    "ElementProxy",
    "ArrivalTimeout",
    "ConfigurationError",
    "PagewrightError",
    "ProtocolError",
    "ResolutionError",
    "StaleHandleError",
    "TransitionTimeout",
    "WriteVerificationError",
    "WrongPageError",
]
