from __future__ import annotations

"""Selector compilation
-----------------------
Translate an element kind plus a selector map (attribute -> string or
compiled regex) into a Playwright selector string and a list of
post-filters for the matchers CSS cannot express.
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Pattern, Tuple

from pagewright.errors import ConfigurationError
from pagewright.utils.logger import get_logger

log = get_logger(__name__)


# Kind -> CSS alternatives. Unknown kinds are used as a raw tag name.
KIND_CSS: dict[str, Tuple[str, ...]] = {
    "element": ("*",),
    "link": ("a",),
    "button": ("button", "input[type=submit]", "input[type=button]", "input[type=reset]", "input[type=image]"),
    "text_field": (
        "input:not([type])",
        "input[type=text]",
        "input[type=email]",
        "input[type=password]",
        "input[type=search]",
        "input[type=tel]",
        "input[type=url]",
        "input[type=number]",
    ),
    "password": ("input[type=password]",),
    "textarea": ("textarea",),
    "text_area": ("textarea",),
    "checkbox": ("input[type=checkbox]",),
    "radio": ("input[type=radio]",),
    "select_list": ("select",),
    "image": ("img",),
    "list_item": ("li",),
}

# Selector keys that are not element attributes.
RAW_KEYS = ("css", "xpath")
TEXT_KEY = "text"

_CSS_ESCAPE = re.compile(r'(["\\])')


@dataclass(frozen=True)
class Query:
    """
    `selector` is passed to the backend's query-all; `filters` are applied to
    each candidate afterwards as (attribute, pattern) pairs, where attribute
    "text" means the node's visible text.
    """
    selector: str
    filters: Tuple[Tuple[str, Pattern[str]], ...] = field(default_factory=tuple)

    def accepts(self, read) -> bool:
        """`read(attr)` returns the candidate's attribute (or text) value, or None."""
        for attr, pattern in self.filters:
            value = read(attr)
            if value is None or not pattern.search(value):
                return False
        return True


def _quote(value: str) -> str:
    return '"' + _CSS_ESCAPE.sub(r"\\\1", value) + '"'


def _attr_css(attr: str, value: str) -> str:
    if attr == "class":
        # whitespace-separated tokens must all be present
        return "".join(f"[class~={_quote(token)}]" for token in value.split())
    return f"[{attr}={_quote(value)}]"


def compile_query(kind: str, selector: Mapping[str, Any]) -> Query:
    """
    Build a Query for `kind` + `selector`.

    - {"css": "..."} and {"xpath": "..."} are used verbatim (kind ignored).
    - string values become exact attribute matches; "class" matches tokens.
    - compiled regexes and {"text": ...} become post-filters.
    """
    if not selector:
        raise ConfigurationError(f"Empty selector for element kind {kind!r}")

    filters: List[Tuple[str, Pattern[str]]] = []

    if "xpath" in selector:
        base = [f"xpath={selector['xpath']}"]
    elif "css" in selector:
        base = [str(selector["css"])]
    else:
        base = list(KIND_CSS.get(kind, (kind,)))

    attr_css = ""
    for attr, matcher in selector.items():
        if attr in RAW_KEYS:
            continue
        if isinstance(matcher, re.Pattern):
            filters.append((attr, matcher))
        elif attr == TEXT_KEY:
            filters.append((attr, re.compile(r"^\s*" + re.escape(str(matcher)) + r"\s*$")))
        elif base[0].startswith("xpath="):
            raise ConfigurationError(f"Attribute {attr!r} cannot be combined with an xpath selector")
        else:
            attr_css += _attr_css(attr, str(matcher))

    if attr_css:
        base = [alt + attr_css for alt in base]

    query = Query(selector=", ".join(base), filters=tuple(filters))
    log.debug(f"Compiled {kind}:{selector!r} -> {query.selector!r} (+{len(filters)} filter(s))")
    return query
