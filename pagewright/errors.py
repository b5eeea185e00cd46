from __future__ import annotations

"""Error taxonomy
----------------
Every failure raised by pagewright derives from PagewrightError. Transient
driver conditions (ProtocolError, StaleHandleError) are recovered locally a
bounded number of times; the rest are surfaced with enough state to diagnose.
"""

from typing import Optional, Sequence


class PagewrightError(RuntimeError):
    pass


class ConfigurationError(PagewrightError):
    """A programming mistake: unknown page/element, missing entry URL, bad destination."""


class ProtocolError(PagewrightError):
    """Transient failure reported by the driver."""


class StaleHandleError(PagewrightError):
    """The handle no longer refers to a node attached to the live document."""


class ResolutionError(PagewrightError):
    def __init__(self, message: str, *, element: Optional[str] = None, page: Optional[str] = None) -> None:
        super().__init__(message)
        self.element = element
        self.page = page


class WriteVerificationError(PagewrightError):
    def __init__(self, message: str, *, element: str, expected: object, actual: object) -> None:
        super().__init__(message)
        self.element = element
        self.expected = expected
        self.actual = actual


class ArrivalTimeout(PagewrightError):
    """A page's own signals (title, URL, validators) never settled."""

    def __init__(
        self,
        message: str,
        *,
        page: str,
        url: str,
        missing: Sequence[str] = (),
        failed_predicates: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.page = page
        self.url = url
        self.missing = list(missing)
        self.failed_predicates = list(failed_predicates)


class WrongPageError(PagewrightError):
    """The live URL matches none of the pages the session considers acceptable."""

    def __init__(self, message: str, *, url: str, acceptable: Sequence[str]) -> None:
        super().__init__(message)
        self.url = url
        self.acceptable = list(acceptable)


class TransitionTimeout(PagewrightError):
    def __init__(self, message: str, *, url: str, acceptable: Sequence[str], attempts: int) -> None:
        super().__init__(message)
        self.url = url
        self.acceptable = list(acceptable)
        self.attempts = attempts


__all__ = [
    "PagewrightError",
    "ConfigurationError",
    "ProtocolError",
    "StaleHandleError",
    "ResolutionError",
    "WriteVerificationError",
    "ArrivalTimeout",
    "WrongPageError",
    "TransitionTimeout",
]
