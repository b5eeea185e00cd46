from __future__ import annotations

"""Page and element descriptors
-------------------------------
Immutable pydantic models describing the pages of an application and the
elements on them, plus the registry handed to a Session at construction.
"""

import re
from typing import Any, Callable, Dict, Iterator, List, Optional, Pattern, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pagewright.errors import ConfigurationError


BASE_URL_TOKEN = ":base_url"

# Keyword arguments of element() that configure the descriptor rather than
# select the node; anything else is promoted into the selector.
ELEMENT_OPTIONS = (
    "selector",
    "resolver",
    "parent",
    "children",
    "click_destination",
    "cache",
    "unique",
    "plural",
    "validator",
)


def _compile_url_pattern(value: Any) -> Pattern[str]:
    if isinstance(value, re.Pattern):
        return value
    if isinstance(value, str):
        return re.compile(re.escape(value))
    raise ValueError(f"URL patterns must be strings or compiled regexes, got {type(value).__name__}")


class ElementDescriptor(BaseModel):
    """
    How to locate one logical UI component on a page.

    Exactly one strategy is active: a `resolver` callable
    `(scope, page, *args) -> handle`, or `kind` + `selector`. When neither
    is given the selector defaults to {"id": name}.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    kind: str = Field(default="element")
    selector: Optional[Dict[str, Any]] = None
    resolver: Optional[Callable[..., Any]] = None
    parent: Optional[str] = None
    children: Tuple[str, ...] = Field(default_factory=tuple)
    click_destination: Optional[Any] = None
    cache: Optional[bool] = None
    unique: bool = False
    plural: bool = False
    validator: bool = False

    @model_validator(mode="before")
    @classmethod
    def _one_strategy(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        has_resolver = data.get("resolver") is not None
        has_selector = bool(data.get("selector"))
        if has_resolver and has_selector:
            raise ValueError(f"element {data.get('name')!r}: give either a resolver or a selector, not both")
        if not has_resolver and not has_selector:
            data = dict(data)
            data["selector"] = {"id": str(data.get("name", ""))}
        return data

    @field_validator("name")
    @classmethod
    def _name_non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("element name cannot be empty")
        return v.replace("-", "_")

    @field_validator("children", mode="before")
    @classmethod
    def _children_tuple(cls, v: Any) -> Any:
        if isinstance(v, str):
            return (v,)
        return v

    @model_validator(mode="after")
    def _no_self_reference(self) -> "ElementDescriptor":
        if self.parent == self.name or self.name in self.children:
            raise ValueError(f"element {self.name!r} cannot be its own parent or child")
        return self


def element(name: str, kind: str = "element", /, **opts: Any) -> ElementDescriptor:
    """
    Build an ElementDescriptor; keyword arguments that are not descriptor
    options become the selector:

        element("email", "text_field", name="email", validator=True)
        element("home", "link", href="https://github.com/", click_destination="LoginPage")
    """
    options = {k: v for k, v in opts.items() if k in ELEMENT_OPTIONS}
    promoted = {k: v for k, v in opts.items() if k not in ELEMENT_OPTIONS}
    if promoted:
        if options.get("selector"):
            raise ConfigurationError(f"element {name!r}: selector given twice ({sorted(promoted)})")
        options["selector"] = promoted
    return ElementDescriptor(name=name, kind=kind, **options)


Validator = Callable[[Any, Any], bool]
PageAction = Callable[..., Any]


class PageDescriptor(BaseModel):
    """
    Static description of one page: how to recognise it (URL patterns, title,
    validator elements, custom predicates), how to get there directly
    (entry_url) and what lives on it (elements, actions).
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    url_patterns: Tuple[Pattern[str], ...] = Field(default_factory=tuple)
    entry_url: Optional[str] = None
    elements: Tuple[ElementDescriptor, ...] = Field(default_factory=tuple)
    validators: Tuple[Validator, ...] = Field(default_factory=tuple)
    expected_title: Optional[Union[str, Pattern[str]]] = None
    actions: Dict[str, PageAction] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _name_non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("page name cannot be empty")
        return v

    @field_validator("url_patterns", mode="before")
    @classmethod
    def _compile_patterns(cls, v: Any) -> Any:
        if v is None:
            return ()
        if isinstance(v, (str, re.Pattern)):
            v = [v]
        return tuple(_compile_url_pattern(p) for p in v)

    @field_validator("elements")
    @classmethod
    def _unique_elements(cls, v: Tuple[ElementDescriptor, ...]) -> Tuple[ElementDescriptor, ...]:
        seen: set[str] = set()
        for e in v:
            if e.name in seen:
                raise ValueError(f"duplicate element name {e.name!r}")
            seen.add(e.name)
        names = seen
        for e in v:
            for ref in ([e.parent] if e.parent else []) + list(e.children):
                if ref not in names:
                    raise ValueError(f"element {e.name!r} refers to unknown element {ref!r}")
        return v

    # ---------- Queries ----------

    @property
    def validator_elements(self) -> List[str]:
        return [e.name for e in self.elements if e.validator]

    def get_element(self, name: str) -> ElementDescriptor:
        key = name.replace("-", "_")
        for e in self.elements:
            if e.name == key:
                return e
        raise ConfigurationError(f"Page {self.name} has no element named {name!r}")

    def has_element(self, name: str) -> bool:
        key = name.replace("-", "_")
        return any(e.name == key for e in self.elements)

    def matches_url(self, url: str) -> bool:
        """True if `url` matches any declared pattern; False when there are none."""
        return any(p.search(url) for p in self.url_patterns)

    # ---------- Derivation ----------

    def extend(self, name: str, **fields: Any) -> "PageDescriptor":
        """
        Derive a page from this one by value. Elements and actions are merged
        (the extension wins on name clashes), validators accumulate; URL
        patterns, entry URL and expected title come from `fields` only.
        """
        own_elements = tuple(fields.pop("elements", ()))
        own_names = {e.name for e in own_elements}
        elements = tuple(e for e in self.elements if e.name not in own_names) + own_elements
        validators = self.validators + tuple(fields.pop("validators", ()))
        actions = {**self.actions, **fields.pop("actions", {})}
        return PageDescriptor(
            name=name,
            elements=elements,
            validators=validators,
            actions=actions,
            **fields,
        )

    def bind(self, base_url: str) -> "PageDescriptor":
        """Return a copy with :base_url substituted in the entry URL and URL patterns."""
        if not base_url:
            return self
        patterns = tuple(
            re.compile(p.pattern.replace(BASE_URL_TOKEN, re.escape(base_url)), p.flags)
            for p in self.url_patterns
        )
        entry = self.entry_url.replace(BASE_URL_TOKEN, base_url) if self.entry_url else None
        return self.model_copy(update={"url_patterns": patterns, "entry_url": entry})


class PageRegistry:
    """
    Ordered, name-keyed set of PageDescriptors handed to a Session.

        registry = PageRegistry([login, search, repo]).bind("https://github.com")
    """

    def __init__(self, pages: Optional[List[PageDescriptor]] = None) -> None:
        self._pages: Dict[str, PageDescriptor] = {}
        for p in pages or []:
            self.register(p)

    def register(self, page: PageDescriptor) -> PageDescriptor:
        if page.name in self._pages:
            raise ConfigurationError(f"Page {page.name!r} is already registered")
        self._pages[page.name] = page
        return page

    def get(self, name: str) -> PageDescriptor:
        try:
            return self._pages[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown page {name!r}; registered pages: {', '.join(self._pages) or '<none>'}"
            ) from None

    def bind(self, base_url: str) -> "PageRegistry":
        return PageRegistry([p.bind(base_url) for p in self._pages.values()])

    def names(self) -> List[str]:
        return list(self._pages)

    def __contains__(self, name: object) -> bool:
        return name in self._pages

    def __iter__(self) -> Iterator[PageDescriptor]:
        return iter(self._pages.values())

    def __len__(self) -> int:
        return len(self._pages)


__all__ = [
    "ElementDescriptor",
    "PageDescriptor",
    "PageRegistry",
    "element",
]
