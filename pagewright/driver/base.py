from __future__ import annotations

"""Driver interface
------------------
The capability pagewright consumes from a browser automation backend.
Handles are opaque to the core; only the driver interprets them.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol, runtime_checkable


Handle = Any


@dataclass(frozen=True)
class MissingHandle:
    """
    Stand-in returned when an element cannot be resolved to exactly one node.
    It never matches anything, so existence checks on it degrade to False
    instead of raising.
    """
    element: str
    reason: str

    def __bool__(self) -> bool:
        return False


def is_missing(handle: Any) -> bool:
    return isinstance(handle, MissingHandle)


@runtime_checkable
class Driver(Protocol):
    """
    Every method may raise StaleHandleError (the handle's node left the
    document) or ProtocolError (anything else the backend reports).
    """

    def current_url(self) -> str: ...

    def current_title(self) -> str: ...

    def navigate(self, url: str) -> None: ...

    def find_all(self, kind: str, selector: Mapping[str, Any], scope: Optional[Handle] = None) -> List[Handle]: ...

    def click(self, handle: Handle) -> None: ...

    def type(self, handle: Handle, text: str) -> None: ...

    def is_present(self, handle: Handle) -> bool: ...

    def is_visible(self, handle: Handle) -> bool: ...

    def handle_value(self, handle: Handle) -> str: ...

    def text(self, handle: Handle) -> str: ...

    def is_checked(self, handle: Handle) -> bool: ...

    def set_checked(self, handle: Handle, checked: bool) -> None: ...

    def screenshot(self, path: Path) -> None: ...

    def html(self) -> str: ...

    def accept_dialog(self, timeout_ms: int) -> bool: ...
