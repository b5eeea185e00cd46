from __future__ import annotations

"""Session
----------
The state machine tracking which logical page the browser is on.

Every call from the application goes through `dispatch` (or `element`),
which first makes sure the current page is still the right one:

  - fast path: URL unchanged since the last check and the current page is
    acceptable -> no work
  - otherwise re-derive the page from the acceptable set by URL, confirm it
    with its validators, or raise WrongPageError

Clicks on elements with a destination go through `change_pages`, which
polls until one of the destination pages is confirmed and reports the
outcome as a TransitionResult instead of raising.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from pagewright.core.descriptors import PageDescriptor, PageRegistry
from pagewright.core.page import Page
from pagewright.driver.base import Driver
from pagewright.elements.proxy import ElementProxy
from pagewright.errors import ConfigurationError, TransitionTimeout, WrongPageError
from pagewright.utils.config import EnvConfig, Settings, get_settings
from pagewright.utils.logger import configure_from, get_logger, redact
from pagewright.utils.timing import attempts, measure


@dataclass(frozen=True)
class TransitionResult:
    ok: bool
    page: Optional[str]
    attempts: int
    url: str
    reason: str = ""
    acceptable: Tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return self.ok

    def raise_for_failure(self) -> "TransitionResult":
        if not self.ok:
            raise TransitionTimeout(
                self.reason or f"None of {', '.join(self.acceptable)} was confirmed",
                url=self.url,
                acceptable=self.acceptable,
                attempts=self.attempts,
            )
        return self


class Session:
    def __init__(
        self,
        driver: Driver,
        registry: PageRegistry,
        *,
        settings: Optional[Settings] = None,
        config: Optional[EnvConfig] = None,
        replay: Any = None,
        on_debug_pause: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.driver = driver
        self.registry = registry
        self.settings = settings or get_settings()
        self.config = config if config is not None else EnvConfig(self.settings)
        self.replay = replay
        self.on_debug_pause = on_debug_pause
        self.log = get_logger(__name__)

        configure_from(self.config)
        self.debug: bool = bool(self.config.get_default(self.settings.DEBUG_MODE, "global", "debug"))
        self.cache_default: bool = bool(self.config.get_default(self.settings.CACHE_ELEMENTS, "global", "cache"))
        self.screenshots: bool = bool(
            self.config.get_default(self.settings.REPLAY_SCREENSHOTS, "global", "screenshots")
        )
        self.thumbnails: bool = bool(
            self.config.get_default(self.settings.REPLAY_THUMBNAILS, "global", "thumbnails")
        )

        self._pages: Dict[str, Page] = {d.name: Page(d, self) for d in registry}
        self.current_page: Optional[Page] = None
        self._acceptable: Optional[Tuple[Page, ...]] = None
        self.previous_url: Optional[str] = None
        self.revalidations = 0

        self.log.debug(f"Session started with pages: {', '.join(self._pages) or '<none>'}")

    # ---------- Pages ----------

    @property
    def pages(self) -> Dict[str, Page]:
        return dict(self._pages)

    def page(self, name: str) -> Page:
        try:
            return self._pages[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown page {name!r}; registered pages: {', '.join(self._pages) or '<none>'}"
            ) from None

    def get_config(self, *path: str) -> Any:
        return self.config.get(*path)

    def resolve_pages(self, destination: Any) -> Tuple[Page, ...]:
        """
        Turn a destination (page name, Page, PageDescriptor, or a collection
        of those) into registered Pages, in order and without duplicates.
        """
        if isinstance(destination, Page):
            return (self.page(destination.name),)
        if isinstance(destination, PageDescriptor):
            return (self.page(destination.name),)
        if isinstance(destination, str):
            return (self.page(destination),)
        if isinstance(destination, (list, tuple, set, frozenset)):
            out: List[Page] = []
            for item in destination:
                for page in self.resolve_pages(item):
                    if page not in out:
                        out.append(page)
            if not out:
                raise ConfigurationError("A page destination cannot be empty")
            return tuple(out)
        raise ConfigurationError(
            f"Unhandled page destination of type {type(destination).__name__}: {destination!r}"
        )

    @property
    def acceptable_pages(self) -> Optional[Tuple[Page, ...]]:
        return self._acceptable

    @acceptable_pages.setter
    def acceptable_pages(self, destination: Any) -> None:
        if destination is None:
            self.log.debug("Any registered page is now acceptable")
            self._acceptable = None
            return
        pages = self.resolve_pages(destination)
        self.log.debug(f"Acceptable pages set to: {', '.join(p.name for p in pages)}")
        self._acceptable = pages

    def _candidates(self) -> Tuple[Page, ...]:
        return self._acceptable if self._acceptable is not None else tuple(self._pages.values())

    def _switch_to(self, page: Page) -> None:
        departed = self.current_page
        if departed is not None and departed is not page:
            departed.clear_cache()
        page.clear_cache()
        self.current_page = page

    # ---------- Entering ----------

    def enter(self, page: Any) -> Page:
        """Go straight to a page through its entry URL and confirm arrival."""
        pages = self.resolve_pages(page)
        if len(pages) != 1:
            raise ConfigurationError(f"enter() needs exactly one page, got {', '.join(p.name for p in pages)}")
        target = pages[0]
        if not target.descriptor.entry_url:
            raise ConfigurationError(f"Page {target.name} has no entry URL; it cannot be entered directly")

        self.log.info(f"Entering the site directly using the entry point for {target.name}")
        self._switch_to(target)
        self.acceptable_pages = target
        target.enter()
        self.previous_url = self.driver.current_url()
        self.log.info(f"Entered {target.name} at {self.previous_url}")
        return target

    # ---------- Passive re-validation ----------

    def ensure_current_page(self) -> Page:
        url = self.driver.current_url()
        current = self.current_page
        acceptable = self._acceptable
        if current is not None and acceptable and url == self.previous_url and current in acceptable:
            return current
        self.log.debug(f"URL is {url} (was {self.previous_url}); checking which page we are on")
        return self._revalidate()

    def _revalidate(self) -> Page:
        candidates = self._candidates()
        names = [p.name for p in candidates]
        self.revalidations += 1

        found: Optional[Page] = None
        url = ""
        for attempt in attempts(self.settings.REVALIDATION_ATTEMPTS, self.settings.REVALIDATION_INTERVAL_MS):
            url = self.driver.current_url()
            found = next((p for p in candidates if p.matches_url(url)), None)
            if found is not None:
                break
            self.log.debug(f"sweep {attempt}: {url} matches none of {', '.join(names)}")

        if found is None:
            raise WrongPageError(
                f"Current URL is {url}, which matches none of the acceptable pages: {', '.join(names)}",
                url=url,
                acceptable=names,
            )

        self._switch_to(found)
        found.ensure_arrived()
        url = self.driver.current_url()
        if not found.matches_url(url):
            raise WrongPageError(
                f"URL moved to {url} while confirming {found.name}",
                url=url,
                acceptable=names,
            )
        self.previous_url = url
        self.log.info(f"We are currently on page {found.name}, as we should be")
        return found

    # ---------- Transitions ----------

    @measure("page transition")
    def change_pages(self, destination: Any, click_action: Callable[[], Any]) -> TransitionResult:
        """
        Run `click_action` and poll until one of the destination pages is
        confirmed. The click is repeated whenever the URL matches none of the
        destinations. Never raises for an unconfirmed transition.
        """
        self.acceptable_pages = destination
        acceptable = self._candidates()
        names = tuple(p.name for p in acceptable)
        departed = self.current_page

        reason = ""
        right_page_seen = False
        url = ""
        attempt = 0
        for attempt in attempts(self.settings.TRANSITION_ATTEMPTS, self.settings.TRANSITION_INTERVAL_MS):
            url = self.driver.current_url()
            matching = [p for p in acceptable if p.matches_url(url)]
            if attempt == 1 or not matching:
                self.log.debug(f"transition attempt {attempt}: clicking")
                click_action()
                url = self.driver.current_url()
                matching = [p for p in acceptable if p.matches_url(url)]

            if not matching:
                if not right_page_seen:
                    reason = f"URL {url} matches none of the acceptable pages: {', '.join(names)}"
                continue

            for page in matching:
                report = page.check_arrival()
                if report.ok:
                    self._switch_to(page)
                    self.previous_url = url
                    self.log.info(
                        f"Moved from {departed.name if departed else '<nowhere>'} to {page.name} "
                        f"after {attempt} attempt(s)"
                    )
                    if self.debug:
                        self.capture()
                    return TransitionResult(ok=True, page=page.name, attempts=attempt, url=url, acceptable=names)
                right_page_seen = True
                reason = f"URL {url} matches {page.name} but {report.describe()}"

        self.log.warning(f"Transition to {', '.join(names)} not confirmed after {attempt} attempt(s): {reason}")
        return TransitionResult(ok=False, page=None, attempts=attempt, url=url, reason=reason, acceptable=names)

    # ---------- Forwarding ----------

    def dispatch(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        """Check the current page, then run `operation` (an action or element name) on it."""
        self.log.debug(redact(f"dispatch {operation} {args!r}"))
        page = self.ensure_current_page()
        result = page.perform(operation, *args, **kwargs)
        if not isinstance(result, ElementProxy):
            self.log.debug(redact(f"{operation} returned {result!r}"))
        return result

    def element(self, name: str, *args: Any) -> ElementProxy:
        return self.ensure_current_page().element(name, *args)

    def handle_alert(self, timeout_ms: Optional[int] = None) -> bool:
        """Accept a pending JavaScript dialog; False if none showed up in time."""
        timeout = self.settings.DIALOG_TIMEOUT_MS if timeout_ms is None else timeout_ms
        accepted = self.driver.accept_dialog(timeout)
        self.log.debug(f"dialog {'accepted' if accepted else 'not found'} within {timeout} ms")
        return accepted

    # ---------- Debugging ----------

    def pause(self, message: str) -> bool:
        if not (self.debug and self.on_debug_pause):
            return False
        self.log.warning(f"Pausing: {message}")
        self.on_debug_pause(message)
        return True

    def capture(self) -> None:
        if self.replay is not None:
            self.replay.capture(self.driver, self)
