from __future__ import annotations

"""Page
-------
Runtime counterpart of a PageDescriptor, owned by a Session. Hands out
element proxies and answers "are we really on this page?".
"""

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from pagewright.core.descriptors import PageDescriptor
from pagewright.elements.proxy import ElementProxy
from pagewright.errors import ArrivalTimeout, ConfigurationError
from pagewright.utils.logger import get_logger, log_with_context
from pagewright.utils.timing import measure

if TYPE_CHECKING:
    from pagewright.core.session import Session


@dataclass
class ArrivalReport:
    """Outcome of one arrival check. `title_ok` is None when the title was not checked."""
    page: str
    url: str
    url_ok: bool
    missing: List[str] = field(default_factory=list)
    failed_predicates: List[str] = field(default_factory=list)
    title_ok: Optional[bool] = None
    title: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.url_ok and not self.missing and not self.failed_predicates and self.title_ok is not False

    def describe(self) -> str:
        if self.ok:
            return f"on {self.page}"
        problems = []
        if not self.url_ok:
            problems.append(f"URL {self.url} does not match the {self.page} URL patterns")
        if self.title_ok is False:
            problems.append(f"title {self.title!r} is not the expected one")
        if self.missing:
            problems.append(f"validator element(s) not present: {', '.join(self.missing)}")
        if self.failed_predicates:
            problems.append(f"validation failed: {', '.join(self.failed_predicates)}")
        return "; ".join(problems)


class Page:
    def __init__(self, descriptor: PageDescriptor, session: "Session") -> None:
        self.descriptor = descriptor
        self.session = session
        self.driver = session.driver
        self.settings = session.settings
        self.last_failure: Optional[str] = None
        self._last_report: Optional[ArrivalReport] = None
        self._proxies: Dict[Tuple[str, Tuple[Any, ...]], ElementProxy] = {}
        self.log = log_with_context(get_logger(__name__), page=descriptor.name)

    @property
    def name(self) -> str:
        return self.descriptor.name

    def __repr__(self) -> str:
        return f"<Page {self.name}>"

    # ---------- Elements and actions ----------

    def element(self, name: str, *args: Any) -> ElementProxy:
        """The proxy for `name` (memoized per argument tuple)."""
        descriptor = self.descriptor.get_element(name)
        key = (descriptor.name, args)
        try:
            proxy = self._proxies.get(key)
        except TypeError:
            # unhashable arguments: a fresh proxy per call
            return ElementProxy(self, descriptor, args)
        if proxy is None:
            proxy = self._proxies[key] = ElementProxy(self, descriptor, args)
        return proxy

    def perform(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        """Run a page action, or return the proxy of the element named `operation`."""
        action = self.descriptor.actions.get(operation)
        if action is not None:
            return action(self, *args, **kwargs)
        if self.descriptor.has_element(operation):
            if kwargs:
                raise ConfigurationError(f"Element {operation!r} on {self.name} takes no keyword arguments")
            return self.element(operation, *args)
        raise ConfigurationError(f"Page {self.name} has no action or element named {operation!r}")

    def clear_cache(self) -> None:
        for proxy in self._proxies.values():
            proxy.invalidate()

    # ---------- Recognition ----------

    def matches_url(self, url: str) -> bool:
        return self.descriptor.matches_url(url)

    def _title_matches(self, title: str) -> bool:
        expected = self.descriptor.expected_title
        if isinstance(expected, re.Pattern):
            return bool(expected.search(title))
        return title == expected

    def check_arrival(self, wait_ms: int = 0, check_title: bool = False) -> ArrivalReport:
        """
        One pass over every recognition rule: URL, validator elements (each
        given up to `wait_ms` to become present), custom predicates and,
        when asked, the expected title.
        """
        url = self.driver.current_url()
        report = ArrivalReport(page=self.name, url=url, url_ok=self.matches_url(url))

        if check_title and self.descriptor.expected_title is not None:
            report.title = self.driver.current_title()
            report.title_ok = self._title_matches(report.title)

        for name in self.descriptor.validator_elements:
            if not self.element(name).wait_until_present(wait_ms):
                report.missing.append(name)

        for predicate in self.descriptor.validators:
            if not predicate(self.driver, self.session):
                report.failed_predicates.append(getattr(predicate, "__name__", repr(predicate)))

        return report

    def arrived(self, pre_action: Optional[Callable[[], Any]] = None) -> bool:
        """
        Soft-check arrival up to ARRIVAL_ATTEMPTS times, running `pre_action`
        before an attempt whenever the URL does not match yet, then a final
        hard check that also looks at the title. Never raises; on failure the
        reason is kept in `last_failure`.
        """
        total = self.settings.ARRIVAL_ATTEMPTS
        wait_ms = self.settings.VALIDATOR_WAIT_MS

        for attempt in range(1, total + 1):
            if pre_action is not None and not self.matches_url(self.driver.current_url()):
                self.log.debug(f"URL does not match {self.name} yet; running the pre-action")
                pre_action()
            report = self.check_arrival(wait_ms)
            if report.ok:
                self.log.debug(f"arrived at {self.name} on attempt {attempt}")
                self.last_failure = None
                return True
            self.log.debug(f"attempt {attempt}/{total}: {report.describe()}")

        report = self.check_arrival(wait_ms, check_title=True)
        if report.ok:
            self.last_failure = None
            return True

        self.last_failure = report.describe()
        self._last_report = report
        self.log.warning(f"Not on {self.name}: {self.last_failure}")
        self.session.pause(f"Arrival check for {self.name} failed: {self.last_failure}")
        return False

    def ensure_arrived(self, pre_action: Optional[Callable[[], Any]] = None) -> None:
        if self.arrived(pre_action):
            return
        report = self._last_report or self.check_arrival(check_title=True)
        raise ArrivalTimeout(
            f"Not on page {self.name}: {self.last_failure}",
            page=self.name,
            url=report.url,
            missing=report.missing,
            failed_predicates=report.failed_predicates,
        )

    @measure("page entry")
    def enter(self) -> None:
        """Navigate to the entry URL and confirm arrival, re-navigating as needed."""
        entry = self.descriptor.entry_url
        if not entry:
            raise ConfigurationError(f"Page {self.name} has no entry URL; it cannot be entered directly")

        def go() -> None:
            self.log.info(f"going to {entry} (from {self.driver.current_url() or '<blank>'})")
            self.driver.navigate(entry)

        go()
        self.ensure_arrived(pre_action=go)
