import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
from PIL import Image

from pagewright.core.descriptors import PageRegistry
from pagewright.core.session import Session
from pagewright.errors import ProtocolError, StaleHandleError
from pagewright.utils.config import EnvConfig, Settings


class FakeNode:
    """
    One scripted DOM node.

    hidden_for:   number of queries that skip this node before it "appears"
    stale_times:  operations that raise StaleHandleError first (-1 = always)
    drop_writes:  type()/set_checked() calls silently ignored (-1 = always)
    """

    def __init__(
        self,
        kind: str = "element",
        text: str = "",
        value: str = "",
        checked: bool = False,
        visible: bool = True,
        parent: Optional["FakeNode"] = None,
        hidden_for: int = 0,
        stale_times: int = 0,
        drop_writes: int = 0,
        on_click: Optional[Callable[["FakeDriver"], None]] = None,
        **attrs: str,
    ):
        self.kind = kind
        self.text = text
        self.value = value
        self.checked = checked
        self.visible = visible
        self.parent = parent
        self.hidden_for = hidden_for
        self.stale_times = stale_times
        self.drop_writes = drop_writes
        self.on_click = on_click
        self.attrs: Dict[str, str] = attrs
        self.attached = True
        self.touches = 0
        self.clicks = 0
        self.writes: List[Any] = []

    def __repr__(self):
        return f"FakeNode({self.kind}, {self.attrs})"

    def within(self, scope: "FakeNode") -> bool:
        node = self.parent
        while node is not None:
            if node is scope:
                return True
            node = node.parent
        return False

    def matches(self, kind: str, selector: Dict[str, Any]) -> bool:
        if kind != "element" and self.kind != kind:
            return False
        for key, want in selector.items():
            have = self.text if key == "text" else self.attrs.get(key)
            if have is None:
                return False
            if isinstance(want, re.Pattern):
                if not want.search(have):
                    return False
            elif key == "class":
                if not set(str(want).split()) <= set(have.split()):
                    return False
            elif have != str(want):
                return False
        return True


class FakeDriver:
    """In-memory Driver with a scripted DOM and a call log."""

    def __init__(self, url: str = "about:blank", title: str = "", nodes: Optional[List[FakeNode]] = None):
        self.url = url
        self.title = title
        self.nodes: List[FakeNode] = list(nodes or [])
        self.queries = 0
        self.failing_queries = 0
        self.navigations: List[str] = []
        self.redirect_once: Dict[str, str] = {}
        self.dialogs: List[str] = []
        self.page_html = "<html><body>fake</body></html>"
        self.screenshot_error: Optional[Exception] = None

    # ---------- page-level ----------

    def current_url(self) -> str:
        return self.url

    def current_title(self) -> str:
        return self.title

    def navigate(self, url: str) -> None:
        self.navigations.append(url)
        self.url = self.redirect_once.pop(url, url)

    def screenshot(self, path: Path) -> None:
        if self.screenshot_error is not None:
            raise self.screenshot_error
        Image.new("RGB", (800, 600), "white").save(path)

    def html(self) -> str:
        return self.page_html

    def accept_dialog(self, timeout_ms: int) -> bool:
        if not self.dialogs:
            return False
        self.dialogs.pop(0)
        return True

    # ---------- elements ----------

    def find_all(self, kind, selector, scope=None):
        self.queries += 1
        if self.failing_queries:
            self.failing_queries -= 1
            raise ProtocolError("connection reset by remote end")
        found = []
        for node in self.nodes:
            if not node.attached or not node.matches(kind, selector):
                continue
            if scope is not None and not node.within(scope):
                continue
            if node.hidden_for > 0:
                node.hidden_for -= 1
                continue
            found.append(node)
        return found

    def _touch(self, node: FakeNode) -> None:
        node.touches += 1
        if node.stale_times:
            if node.stale_times > 0:
                node.stale_times -= 1
            raise StaleHandleError("element is not attached to the DOM")

    def click(self, node):
        self._touch(node)
        node.clicks += 1
        if node.on_click is not None:
            node.on_click(self)

    def type(self, node, text):
        self._touch(node)
        node.writes.append(text)
        if node.drop_writes:
            if node.drop_writes > 0:
                node.drop_writes -= 1
            return
        node.value = text

    def _ensure_attached(self, node: FakeNode) -> None:
        if not node.attached:
            raise StaleHandleError("element is not attached to the DOM")

    def is_present(self, node):
        self._ensure_attached(node)
        return True

    def is_visible(self, node):
        self._ensure_attached(node)
        return node.visible

    def handle_value(self, node):
        self._touch(node)
        return node.value

    def text(self, node):
        self._touch(node)
        return node.text

    def is_checked(self, node):
        self._touch(node)
        return node.checked

    def set_checked(self, node, checked):
        self._touch(node)
        node.writes.append(checked)
        if node.drop_writes:
            if node.drop_writes > 0:
                node.drop_writes -= 1
            return
        node.checked = checked


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        VALIDATOR_WAIT_MS=0,
        SET_WAIT_MS=0,
        TRANSITION_INTERVAL_MS=0,
        REVALIDATION_INTERVAL_MS=0,
        RESOLVE_RETRY_DELAY_MS=0,
        TRANSITION_ATTEMPTS=5,
        REVALIDATION_ATTEMPTS=3,
        CONFIG_DIR=tmp_path / "config",
        REPLAY_DIR=tmp_path / "replay",
        DEBUG_MODE=False,
        LOG_TO_FILE=False,
    )


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def make_session(driver: FakeDriver, settings: Settings):
    def _make(pages, *, config: Optional[dict] = None, settings_: Optional[Settings] = None, **kwargs) -> Session:
        s = settings_ or settings
        return Session(
            driver,
            PageRegistry(list(pages)),
            settings=s,
            config=EnvConfig(s, data=config or {}),
            **kwargs,
        )

    return _make
