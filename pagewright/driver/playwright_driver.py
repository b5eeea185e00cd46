from __future__ import annotations

"""Playwright driver
-------------------
Implements the Driver protocol on a Playwright sync Page, using
ElementHandles as handles so that node replacement surfaces as staleness.
"""

import contextlib
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional

from playwright.sync_api import (
    Browser,
    Dialog,
    ElementHandle,
    Error as PWError,
    Page,
    TimeoutError as PWTimeoutError,
    sync_playwright,
)

from pagewright.errors import ProtocolError, StaleHandleError
from pagewright.selectors.query import compile_query
from pagewright.utils.config import Settings, get_settings
from pagewright.utils.logger import get_logger
from pagewright.utils.timing import wait_for

_STALE_MARKERS = (
    "not attached to the dom",
    "element is not attached",
    "element is detached",
    "node is detached",
    "execution context was destroyed",
)


def _translate(exc: PWError) -> Exception:
    msg = str(exc)
    if any(marker in msg.lower() for marker in _STALE_MARKERS):
        return StaleHandleError(msg)
    if isinstance(exc, PWTimeoutError):
        return ProtocolError(f"timeout: {msg}")
    return ProtocolError(msg)


@contextlib.contextmanager
def _protocol() -> Iterator[None]:
    try:
        yield
    except PWError as exc:
        raise _translate(exc) from exc


class PlaywrightDriver:
    """Driver over a single Playwright page."""

    def __init__(self, page: Page, settings: Optional[Settings] = None) -> None:
        self.page = page
        self.settings = settings or get_settings()
        self.log = get_logger(__name__)
        self._dialogs: List[Dialog] = []
        page.on("dialog", self._dialogs.append)

    # ---------- Page-level ----------

    def current_url(self) -> str:
        return self.page.url or ""

    def current_title(self) -> str:
        with _protocol():
            return self.page.title() or ""

    def navigate(self, url: str) -> None:
        self.log.debug(f"navigate -> {url}")
        with _protocol():
            self.page.goto(url, wait_until="domcontentloaded", timeout=self.settings.PAGE_LOAD_TIMEOUT)

    def screenshot(self, path: Path) -> None:
        with _protocol():
            self.page.screenshot(path=str(path), full_page=True)

    def html(self) -> str:
        with _protocol():
            return self.page.content()

    def accept_dialog(self, timeout_ms: int) -> bool:
        try:
            wait_for(lambda: bool(self._dialogs), timeout_ms, interval_ms=100, description="dialog")
        except TimeoutError:
            return False
        dialog = self._dialogs.pop(0)
        self.log.debug(f"accepting {dialog.type} dialog: {dialog.message!r}")
        with _protocol():
            dialog.accept()
        return True

    # ---------- Element queries ----------

    def find_all(self, kind: str, selector: Mapping[str, Any], scope: Optional[ElementHandle] = None) -> List[ElementHandle]:
        query = compile_query(kind, selector)
        root = scope if scope is not None else self.page
        with _protocol():
            handles = root.query_selector_all(query.selector)
            if not query.filters:
                return handles
            return [h for h in handles if query.accepts(lambda attr, h=h: self._read(h, attr))]

    @staticmethod
    def _read(handle: ElementHandle, attr: str) -> Optional[str]:
        if attr == "text":
            return handle.inner_text()
        return handle.get_attribute(attr)

    # ---------- Element operations ----------

    def click(self, handle: ElementHandle) -> None:
        with _protocol():
            handle.click()

    def type(self, handle: ElementHandle, text: str) -> None:
        with _protocol():
            handle.fill(text)

    def _ensure_attached(self, handle: ElementHandle) -> None:
        with _protocol():
            connected = handle.evaluate("el => el.isConnected")
        if not connected:
            raise StaleHandleError("element is not attached to the DOM")

    def is_present(self, handle: ElementHandle) -> bool:
        self._ensure_attached(handle)
        return True

    def is_visible(self, handle: ElementHandle) -> bool:
        self._ensure_attached(handle)
        with _protocol():
            return handle.is_visible()

    def handle_value(self, handle: ElementHandle) -> str:
        with _protocol():
            return handle.input_value()

    def text(self, handle: ElementHandle) -> str:
        with _protocol():
            return handle.inner_text()

    def is_checked(self, handle: ElementHandle) -> bool:
        with _protocol():
            return handle.is_checked()

    def set_checked(self, handle: ElementHandle, checked: bool) -> None:
        with _protocol():
            handle.set_checked(checked)


@contextlib.contextmanager
def launch_driver(settings: Optional[Settings] = None) -> Iterator[PlaywrightDriver]:
    """
    Launch the configured browser and yield a PlaywrightDriver on a fresh page.
    Cookies start empty; everything is closed on exit.
    """
    s = settings or get_settings()
    log = get_logger(__name__)
    with sync_playwright() as p:
        browser_type = getattr(p, s.BROWSER_TYPE.value)
        log.info(f"Launching {s.BROWSER_TYPE.value} (headless={s.HEADLESS})")
        browser: Browser = browser_type.launch(**s.playwright_launch_kwargs())
        try:
            context = browser.new_context(**s.playwright_context_kwargs())
            context.clear_cookies()
            yield PlaywrightDriver(context.new_page(), settings=s)
        finally:
            browser.close()
