from __future__ import annotations

"""Element proxy
----------------
Resolves one ElementDescriptor to a live handle and keeps it usable:

  - lazy resolution with parent scoping, required-children filtering and a
    visible-first tie-break when several nodes match
  - per-proxy handle cache, invalidated by the Session on page changes
  - one transparent re-resolve-and-retry when a handle goes stale; a proxy
    that ever needed it stops caching for good
  - write verification for text fields and toggles, whose writes remote
    protocols are known to drop
  - click destinations, handed to Session.change_pages
"""

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from pagewright.driver.base import Handle, MissingHandle, is_missing
from pagewright.errors import (
    ConfigurationError,
    ProtocolError,
    ResolutionError,
    StaleHandleError,
    WriteVerificationError,
)
from pagewright.utils.logger import get_logger, log_with_context, redact
from pagewright.utils.timing import retry, sleep_ms, wait_for

if TYPE_CHECKING:
    from pagewright.core.descriptors import ElementDescriptor
    from pagewright.core.page import Page
    from pagewright.core.session import TransitionResult


TEXT_KINDS = frozenset({"text_field", "textarea", "text_area", "input", "password"})
TOGGLE_KINDS = frozenset({"checkbox", "radio"})

# invoke() operation -> Driver method
OPERATIONS: Dict[str, str] = {
    "click": "click",
    "type": "type",
    "value": "handle_value",
    "text": "text",
    "is_present": "is_present",
    "is_visible": "is_visible",
    "is_checked": "is_checked",
    "set_checked": "set_checked",
}


class ElementProxy:
    def __init__(
        self,
        page: "Page",
        descriptor: "ElementDescriptor",
        args: Tuple[Any, ...] = (),
        scope: Optional[Handle] = None,
    ) -> None:
        self.page = page
        self.descriptor = descriptor
        self.args = tuple(args)
        self.driver = page.driver
        self.session = page.session

        settings = page.settings
        self.cache_enabled: bool = descriptor.cache if descriptor.cache is not None else self.session.cache_default
        self.set_retries: int = settings.SET_RETRIES
        self.set_wait_ms: int = settings.SET_WAIT_MS
        self.resolve_retries: int = settings.RESOLVE_RETRIES
        self.resolve_delay_ms: int = settings.RESOLVE_RETRY_DELAY_MS

        self._scope = scope
        self._cached: Optional[Handle] = None
        self._children: Dict[str, Handle] = {}
        self.log = log_with_context(get_logger(__name__), page=page.name, element=descriptor.name)

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def children(self) -> Dict[str, Handle]:
        """Required-child handles found under the most recently resolved node."""
        return dict(self._children)

    def __repr__(self) -> str:
        args = f"({', '.join(map(repr, self.args))})" if self.args else ""
        return f"<{self.page.name}.{self.name}{args}>"

    # ---------- Tunables ----------

    def with_retries(self, retries: int) -> "ElementProxy":
        self.set_retries = max(0, retries)
        return self

    def with_timeout(self, wait_ms: int) -> "ElementProxy":
        self.set_wait_ms = max(0, wait_ms)
        return self

    def invalidate(self) -> None:
        self._cached = None
        self._children = {}

    def scoped_under(self, handle: Handle) -> "ElementProxy":
        """The same element, looked up under `handle` instead of its declared parent."""
        return ElementProxy(self.page, self.descriptor, self.args, scope=handle)

    # ---------- Resolution ----------

    def resolve(self, use_cache: Optional[bool] = None) -> Any:
        """
        Return the handle for this element, a MissingHandle when there is no
        single match, or a list for plural elements.
        """
        use_cache = self.cache_enabled if use_cache is None else use_cache
        if use_cache and self._cached is not None:
            return self._cached

        try:
            handle = retry(
                self._lookup,
                exceptions=(ProtocolError, StaleHandleError),
                tries=self.resolve_retries + 1,
                delay_ms=self.resolve_delay_ms,
                before_retry=self._before_retry,
            )
        except (ProtocolError, StaleHandleError) as exc:
            message = f"Could not resolve {self!r} after {self.resolve_retries + 1} attempt(s): {exc}"
            if self.session.pause(message):
                return MissingHandle(self.name, message)
            raise ResolutionError(message, element=self.name, page=self.page.name) from exc

        if use_cache and not is_missing(handle) and handle != []:
            self._cached = handle
        return handle

    def _before_retry(self, attempt: int, exc: BaseException) -> None:
        self.log.debug(f"resolution attempt {attempt} of {self!r} failed: {exc!r}")
        if isinstance(exc, StaleHandleError) and self.descriptor.parent and self._scope is None:
            self.page.element(self.descriptor.parent).invalidate()

    def _nothing(self, reason: str) -> Any:
        return [] if self.descriptor.plural else MissingHandle(self.name, reason)

    def _lookup(self) -> Any:
        d = self.descriptor
        scope = self._scope
        if scope is None and d.parent:
            parent = self.page.element(d.parent)
            if parent.descriptor.plural:
                raise ConfigurationError(f"{self!r}: parent {d.parent!r} is plural and cannot scope a lookup")
            scope = parent.resolve()
            if is_missing(scope):
                return self._nothing(f"parent {d.parent!r} not found ({scope.reason})")

        if d.resolver is not None:
            result = d.resolver(scope, self.page, *self.args)
            return self._nothing("resolver returned nothing") if result is None else result

        matches: List[Handle] = self.driver.find_all(d.kind, d.selector or {}, scope)
        found: List[Dict[str, Handle]] = []
        if d.children:
            pairs = [(m, self._children_of(m)) for m in matches]
            matches = [m for m, kids in pairs if kids is not None]
            found = [kids for _, kids in pairs if kids is not None]

        if d.unique and len(matches) > 1:
            self.log.warning(f"{self!r} must be unique but {len(matches)} nodes match {d.selector!r}")
            return MissingHandle(self.name, f"not unique: {len(matches)} nodes match")

        if d.plural:
            return list(matches)
        if not matches:
            return MissingHandle(self.name, f"no {d.kind} matches {d.selector!r}")

        index = self._pick(matches)
        if found:
            self._children = found[index]
        return matches[index]

    def _pick(self, matches: List[Handle]) -> int:
        if len(matches) == 1:
            return 0
        for i, m in enumerate(matches):
            if self.driver.is_present(m) and self.driver.is_visible(m):
                self.log.debug(f"{self!r}: {len(matches)} nodes match; using the first visible one")
                return i
        self.log.debug(f"{self!r}: {len(matches)} nodes match and none is visible; using the first")
        return 0

    def _children_of(self, candidate: Handle) -> Optional[Dict[str, Handle]]:
        found: Dict[str, Handle] = {}
        for child in self.descriptor.children:
            handle = self.page.element(child).scoped_under(candidate).resolve(use_cache=False)
            if is_missing(handle) or handle == []:
                return None
            found[child] = handle
        return found

    # ---------- Operations ----------

    def _operation(self, operation: str) -> Callable[..., Any]:
        try:
            return getattr(self.driver, OPERATIONS[operation])
        except KeyError:
            raise ConfigurationError(
                f"Unknown element operation {operation!r}; expected one of {sorted(OPERATIONS)}"
            ) from None

    def _require(self, handle: Any) -> Handle:
        if is_missing(handle):
            raise ResolutionError(f"{self!r}: {handle.reason}", element=self.name, page=self.page.name)
        if isinstance(handle, list):
            raise ConfigurationError(f"{self!r} is plural; operate on the handles from resolve() instead")
        return handle

    def _trace(self, operation: str, args: Tuple[Any, ...]) -> None:
        d = self.descriptor
        self.log.debug(redact(f"{operation} {args!r} on {d.kind} {d.selector or '<resolver>'!r} ({self!r})"))
        if self.session.debug:
            self.session.capture()

    def _call(self, method: Callable[..., Any], handle: Handle, *args: Any) -> Any:
        try:
            return method(handle, *args)
        except StaleHandleError as exc:
            fresh = self._require(self._recover(exc))
            result = method(fresh, *args)
            self._stop_caching()
            return result

    def _recover(self, exc: StaleHandleError) -> Any:
        self.log.warning(f"{self!r}: stale handle ({exc}); re-resolving and retrying once")
        self.invalidate()
        return self.resolve(use_cache=False)

    def _stop_caching(self) -> None:
        if self.cache_enabled:
            self.log.info(f"{self!r}: handle went stale once; caching disabled for this element")
            self.cache_enabled = False

    def invoke(self, operation: str, *args: Any) -> Any:
        """Run one enumerated driver operation on the resolved handle."""
        method = self._operation(operation)
        self._trace(operation, args)
        return self._call(method, self._require(self.resolve()), *args)

    # ---------- Readers ----------

    def _observe(self, handle: Handle, visible: bool) -> bool:
        if not self.driver.is_present(handle):
            return False
        return not visible or bool(self.driver.is_visible(handle))

    def _check(self, use_cache: Optional[bool], visible: bool) -> bool:
        handle = self.resolve(use_cache)
        if is_missing(handle):
            return False
        if isinstance(handle, list):
            return bool(handle)
        try:
            return self._observe(handle, visible)
        except StaleHandleError as exc:
            fresh = self._recover(exc)
            if is_missing(fresh):
                return False
            result = self._observe(fresh, visible)
            self._stop_caching()
            return result

    def exists(self, use_cache: Optional[bool] = None) -> bool:
        return self._check(use_cache, visible=False)

    def present(self, use_cache: Optional[bool] = None) -> bool:
        """Exists and is visible."""
        return self._check(use_cache, visible=True)

    def wait_until_present(self, timeout_ms: Optional[int] = None) -> bool:
        timeout = self.page.settings.VALIDATOR_WAIT_MS if timeout_ms is None else timeout_ms
        try:
            return wait_for(lambda: self.present(use_cache=False), timeout, description=repr(self))
        except TimeoutError:
            return False

    def visible(self) -> bool:
        return bool(self.invoke("is_visible"))

    def value(self) -> str:
        return self.invoke("value")

    def text(self) -> str:
        return self.invoke("text")

    def checked(self) -> bool:
        return bool(self.invoke("is_checked"))

    # ---------- Writes ----------

    def click(self) -> Optional["TransitionResult"]:
        """
        Click the element. When the element declares a click destination the
        Session confirms arrival on one of those pages and the outcome is
        returned; otherwise None.
        """
        destination = self.descriptor.click_destination
        if destination is None:
            self.invoke("click")
            return None
        self.log.debug(f"{self!r} has a destination when clicked: {destination!r}")
        self.session.acceptable_pages = destination
        return self.session.change_pages(destination, self._click_attempt)

    def _click_attempt(self) -> None:
        try:
            self.invoke("click")
        except (ResolutionError, StaleHandleError) as exc:
            # the element may already be gone because the navigation started
            self.log.debug(f"click on {self!r} did not go through: {exc}")

    def set(self, value: Any = None) -> "ElementProxy":
        kind = self.descriptor.kind
        if kind in TEXT_KINDS:
            text = "" if value is None else str(value)
            self.invoke("type", text)
            self._converge(
                expected=text,
                read=lambda: self._fresh("value"),
                write=lambda: self.invoke("type", text),
                what="text entry",
            )
        elif kind in TOGGLE_KINDS:
            checked = True if value is None else bool(value)
            self.invoke("set_checked", checked)
            self._converge(
                expected=checked,
                read=lambda: bool(self._fresh("is_checked")),
                write=lambda: self.invoke("set_checked", checked),
                what=f"{kind} selection",
            )
        else:
            self.invoke("type", "" if value is None else str(value))
        return self

    def _fresh(self, operation: str) -> Any:
        self.invalidate()
        return self.invoke(operation)

    def _converge(self, *, expected: Any, read: Callable[[], Any], write: Callable[[], Any], what: str) -> None:
        for attempt in range(1, self.set_retries + 1):
            self.log.debug(f"{self!r}: checking that the {what} worked")
            if read() == expected:
                break
            self.log.debug(f"{self!r}: it did not (check {attempt}/{self.set_retries}); sleeping {self.set_wait_ms} ms then retrying")
            sleep_ms(self.set_wait_ms)
            write()

        actual = read()
        if actual != expected:
            shown = redact(f"{expected!r} / {actual!r}") if self._sensitive() else f"{expected!r}, got {actual!r}"
            raise WriteVerificationError(
                f"{self!r}: {what} never converged after {self.set_retries} retries (expected {shown})",
                element=self.name,
                expected=expected,
                actual=actual,
            )
        self.log.debug(f"{self!r}: the {what} worked")

    def _sensitive(self) -> bool:
        return redact(f"{self.name} {self.descriptor.selector!r} {self.descriptor.kind}") == "[redacted]"
