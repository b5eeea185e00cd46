# pagewright/core/page_loader.py
from __future__ import annotations

"""Page file schema and loader
------------------------------
Declarative page definitions in YAML (multi-document allowed), validated
with pydantic and turned into PageDescriptors.

    pages:
      - name: SearchPage
        extends: BasePage
        url: {regex: "^:base_url/search"}
        entry_url: ":base_url/search"
        elements:
          - {name: search_form, kind: form, id: search_form, validator: true}
          - {name: search_input, kind: text_field, class: search-page-input, parent: search_form}
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pagewright.core.descriptors import ELEMENT_OPTIONS, PageDescriptor, PageRegistry, element


# ---------- Helpers ----------

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _subst_env(obj: Any) -> Any:
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, list):
        return [_subst_env(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _subst_env(v) for k, v in obj.items()}
    return obj


def _matcher(value: Any) -> Any:
    """{"regex": "..."} -> compiled pattern; anything else unchanged."""
    if isinstance(value, dict) and set(value) == {"regex"}:
        return re.compile(str(value["regex"]))
    return value


def _format_errors(header: str, ve: ValidationError) -> str:
    lines = [header]
    for e in ve.errors():
        loc = ".".join(str(p) for p in e.get("loc", []))
        msg = e.get("msg", "invalid value")
        lines.append(f"  - {loc}: {msg}")
    return "\n".join(lines)


# ---------- File models ----------

class ElementSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    kind: str = Field(default="element")
    selector: Optional[Dict[str, Any]] = None
    parent: Optional[str] = None
    children: List[str] = Field(default_factory=list)
    click_destination: Optional[Union[str, List[str]]] = None
    cache: Optional[bool] = None
    unique: bool = False
    plural: bool = False
    validator: bool = False

    def to_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            k: getattr(self, k)
            for k in ELEMENT_OPTIONS
            if k != "resolver" and getattr(self, k, None) not in (None, [], False)
        }
        if self.cache is False:
            kwargs["cache"] = False
        if self.selector:
            kwargs["selector"] = {k: _matcher(v) for k, v in self.selector.items()}
        # unknown keys are promoted into the selector, like element()
        for k, v in (self.model_extra or {}).items():
            kwargs[k] = _matcher(v)
        return kwargs


class PageSpec(BaseModel):
    name: str
    extends: Optional[str] = None
    url: List[Any] = Field(default_factory=list)
    entry_url: Optional[str] = None
    expected_title: Optional[Any] = None
    elements: List[ElementSpec] = Field(default_factory=list)

    @field_validator("url", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> Any:
        if v is None:
            return []
        return v if isinstance(v, list) else [v]

    @field_validator("url")
    @classmethod
    def _patterns(cls, v: List[Any]) -> List[Any]:
        out = []
        for item in v:
            m = _matcher(item)
            if not isinstance(m, (str, re.Pattern)):
                raise ValueError(f"url entries must be strings or {{regex: ...}}, got {item!r}")
            out.append(m)
        return out


class PagesDocument(BaseModel):
    pages: List[PageSpec]


# ---------- Public API ----------

def _build(doc: PagesDocument, known: Dict[str, PageDescriptor], origin: str) -> List[PageDescriptor]:
    built: List[PageDescriptor] = []
    for spec in doc.pages:
        fields: Dict[str, Any] = {
            "url_patterns": spec.url,
            "entry_url": spec.entry_url,
            "expected_title": _matcher(spec.expected_title),
            "elements": [element(e.name, e.kind, **e.to_kwargs()) for e in spec.elements],
        }
        try:
            if spec.extends:
                if spec.extends not in known:
                    raise ValueError(f"{origin}: page {spec.name!r} extends unknown page {spec.extends!r}")
                page = known[spec.extends].extend(spec.name, **fields)
            else:
                page = PageDescriptor(name=spec.name, **fields)
        except ValidationError as ve:
            raise ValueError(_format_errors(f"Invalid page {spec.name!r} in {origin}:", ve)) from ve
        known[page.name] = page
        built.append(page)
    return built


def load_pages(path: Path | str, known: Optional[Dict[str, PageDescriptor]] = None) -> List[PageDescriptor]:
    """
    Load every page defined in a YAML file (supports multi-document).
    `known` maps names of previously loaded pages usable with `extends`;
    it is updated in place.
    """
    pages_path = Path(path)
    if not pages_path.exists():
        raise FileNotFoundError(f"Page file not found: {pages_path}")
    known = {} if known is None else known

    try:
        docs = list(yaml.safe_load_all(pages_path.read_text(encoding="utf-8")))
    except yaml.YAMLError as ye:
        raise ValueError(f"YAML parse error in {pages_path}: {ye}") from ye

    out: List[PageDescriptor] = []
    for idx, data in enumerate(docs, start=1):
        if data is None:
            continue
        if not isinstance(data, dict):
            raise ValueError(f"Document {idx} in {pages_path} must be a mapping/object.")
        try:
            doc = PagesDocument.model_validate(_subst_env(data))
        except ValidationError as ve:
            raise ValueError(_format_errors(f"Invalid page file '{pages_path}' (document {idx}):", ve)) from ve
        out.extend(_build(doc, known, f"{pages_path} (document {idx})"))

    if not out:
        raise ValueError(f"No pages found in {pages_path}")
    return out


def find_page_files(root: Path, recursive: bool = True) -> List[Path]:
    if recursive:
        return sorted(list(root.rglob("*.yaml")) + list(root.rglob("*.yml")))
    return sorted(list(root.glob("*.yaml")) + list(root.glob("*.yml")))


def load_directory(root: Path | str, recursive: bool = True) -> List[PageDescriptor]:
    """Load and merge the pages of every *.yaml / *.yml file under `root`."""
    known: Dict[str, PageDescriptor] = {}
    out: List[PageDescriptor] = []
    for fp in find_page_files(Path(root), recursive):
        out.extend(load_pages(fp, known))
    return out


def load_registry(*paths: Path | str, base_url: str = "") -> PageRegistry:
    """Load pages from files and/or directories into one bound registry."""
    files: List[Path] = []
    for p in map(Path, paths):
        files.extend(find_page_files(p) if p.is_dir() else [p])
    known: Dict[str, PageDescriptor] = {}
    registry = PageRegistry()
    for fp in files:
        for page in load_pages(fp, known):
            registry.register(page)
    return registry.bind(base_url)


__all__ = [
    "ElementSpec",
    "PageSpec",
    "load_pages",
    "load_registry",
    "find_page_files",
    "load_directory",
]
