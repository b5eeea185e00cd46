import pytest
from playwright.sync_api import Error as PWError

from pagewright.driver.playwright_driver import PlaywrightDriver
from pagewright.errors import ProtocolError, StaleHandleError
from pagewright.utils.config import Settings


class StubPage:
    url = "https://app.test/home"

    def __init__(self):
        self.listeners = {}

    def on(self, event, callback):
        self.listeners[event] = callback


class StubHandle:
    def __init__(self, connected=True, visible=True, error=None):
        self.connected = connected
        self.visible = visible
        self.error = error

    def evaluate(self, expression):
        if self.error is not None:
            raise self.error
        return self.connected

    def is_visible(self):
        return self.visible


@pytest.fixture
def pw_driver():
    return PlaywrightDriver(StubPage(), Settings())


def test_attached_handle_is_present(pw_driver):
    handle = StubHandle(visible=False)
    assert pw_driver.is_present(handle) is True
    assert pw_driver.is_visible(handle) is False


def test_detached_handle_is_stale(pw_driver):
    handle = StubHandle(connected=False)
    with pytest.raises(StaleHandleError):
        pw_driver.is_present(handle)
    with pytest.raises(StaleHandleError):
        pw_driver.is_visible(handle)


def test_playwright_errors_are_translated(pw_driver):
    with pytest.raises(StaleHandleError):
        pw_driver.is_present(StubHandle(error=PWError("Element is not attached to the DOM")))
    with pytest.raises(ProtocolError):
        pw_driver.is_present(StubHandle(error=PWError("Target closed")))


def test_dialogs_are_collected(pw_driver):
    assert "dialog" in pw_driver.page.listeners
    assert pw_driver.current_url() == "https://app.test/home"
