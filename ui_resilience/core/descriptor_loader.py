# ui_resilience/core/descriptor_loader.py
from __future__ import annotations

"""Element repository
---------------------
YAML files declaring, per page, the elements a test suite interacts with:
a primary selector, optional explicit fallbacks and the semantic descriptor
used for healing. Files may hold several documents (one page each).

    page: login
    url: ${BASE_URL}/login
    elements:
      - name: submit
        primary: "#login-submit"
        fallbacks:
          - { strategy: role, value: "button|Sign in" }
        descriptor:
          purpose: Login Button
          element_kind: button
          accessible_role: button
          text_patterns: ["Sign in", "Log in"]
"""

import os
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml
from playwright.sync_api import Locator, Page
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ui_resilience.reporting.healing import HealingReporter
from ui_resilience.selectors.descriptor import ElementDescriptor
from ui_resilience.selectors.locator import LocatorOptions, ResilientLocator
from ui_resilience.utils.config import get_settings
from ui_resilience.utils.logger import get_logger

log = get_logger(__name__)

_ENV_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


# ---------- Selectors ----------


class SelectorStrategy(str, Enum):
    css = "css"
    text = "text"
    role = "role"
    xpath = "xpath"
    test_id = "test_id"


class Selector(BaseModel):
    value: str = Field(..., description="Selector string (css/text/role/xpath/test_id)")
    strategy: SelectorStrategy = Field(default=SelectorStrategy.css)

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, data: Any) -> Any:
        # a bare string is a CSS selector
        if isinstance(data, str):
            return {"value": data}
        return data

    @field_validator("value")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("selector value cannot be empty")
        return v


def _parse_role_value(value: str) -> Tuple[str, Optional[str]]:
    """
    "button"              → role="button"
    "button|Sign in"      → role="button", name="Sign in"
    "button name=Sign in" → same as above
    """
    v = value.strip()
    for sep in ("|", " name="):
        if sep in v:
            role, name = v.split(sep, 1)
            return role.strip(), name.strip() or None
    return v, None


def resolve_selector(page: Page, sel: Selector) -> Locator:
    """Convert a declared Selector into a Playwright Locator."""
    if sel.strategy == SelectorStrategy.text:
        return page.get_by_text(sel.value, exact=False)
    if sel.strategy == SelectorStrategy.role:
        role, name = _parse_role_value(sel.value)
        return page.get_by_role(role, name=name) if name else page.get_by_role(role)
    if sel.strategy == SelectorStrategy.xpath:
        return page.locator(f"xpath={sel.value}")
    if sel.strategy == SelectorStrategy.test_id:
        return page.get_by_test_id(sel.value)
    return page.locator(sel.value)


# ---------- Schema ----------


class ElementDefinition(BaseModel):
    name: str
    primary: Selector
    fallbacks: List[Selector] = Field(default_factory=list)
    descriptor: ElementDescriptor

    @model_validator(mode="before")
    @classmethod
    def _default_purpose(cls, data: Any) -> Any:
        # purpose defaults to the element name
        if isinstance(data, dict) and isinstance(data.get("descriptor"), dict):
            desc = data["descriptor"]
            if not desc.get("purpose") and data.get("name"):
                data = {**data, "descriptor": {**desc, "purpose": str(data["name"])}}
        return data

    @field_validator("name")
    @classmethod
    def _name_non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("element name cannot be empty")
        return v


class PageElements(BaseModel):
    page: str = Field(..., description="Page key, e.g. 'login'")
    url: Optional[str] = None
    description: Optional[str] = None
    elements: List[ElementDefinition] = Field(default_factory=list)

    @field_validator("page")
    @classmethod
    def _page_non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("page cannot be empty")
        return v

    @field_validator("elements")
    @classmethod
    def _unique_names(cls, v: List[ElementDefinition]) -> List[ElementDefinition]:
        seen = set()
        for el in v:
            if el.name in seen:
                raise ValueError(f"duplicate element name '{el.name}'")
            seen.add(el.name)
        return v

    def element(self, name: str) -> ElementDefinition:
        for el in self.elements:
            if el.name == name:
                return el
        raise KeyError(f"No element '{name}' on page '{self.page}'")


# ---------- Loading ----------


def _subst_env(obj: Any) -> Any:
    """Replace ${VAR} in every string; unknown variables are left as-is."""
    if isinstance(obj, str):
        return _ENV_RE.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, list):
        return [_subst_env(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _subst_env(v) for k, v in obj.items()}
    return obj


def _format_validation_error(ve: ValidationError, header: str) -> str:
    lines = [header]
    for e in ve.errors():
        loc = ".".join(str(p) for p in e.get("loc", []))
        msg = e.get("msg", "invalid value")
        lines.append(f"  - {loc}: {msg}")
    return "\n".join(lines)


def load_descriptor_file(path: Path | str) -> List[PageElements]:
    """Load every page document from a YAML file (multi-document supported)."""
    fp = Path(path)
    if not fp.exists():
        raise FileNotFoundError(f"Descriptor file not found: {fp}")
    try:
        docs = list(yaml.safe_load_all(fp.read_text(encoding="utf-8")))
    except yaml.YAMLError as ye:
        raise ValueError(f"YAML parse error in {fp}: {ye}") from ye

    out: List[PageElements] = []
    for idx, data in enumerate(docs, start=1):
        if data is None:
            continue
        if not isinstance(data, dict):
            raise ValueError(f"Document {idx} in {fp} must be a mapping/object.")
        try:
            out.append(PageElements.model_validate(_subst_env(data)))
        except ValidationError as ve:
            raise ValueError(_format_validation_error(ve, f"Invalid descriptor file '{fp}' (document {idx}):")) from ve
    if not out:
        raise ValueError(f"No page documents found in {fp}")
    return out


def find_yaml_files(root: Path, recursive: bool = True) -> List[Path]:
    if recursive:
        return sorted(list(root.rglob("*.yaml")) + list(root.rglob("*.yml")))
    return sorted(list(root.glob("*.yaml")) + list(root.glob("*.yml")))


# ---------- Repository ----------


class ElementRepository:
    """Page key → declared elements, with ResilientLocator construction."""

    def __init__(self, pages: Optional[List[PageElements]] = None) -> None:
        self._pages: Dict[str, PageElements] = {}
        for p in pages or []:
            self.add(p)

    def add(self, page: PageElements) -> None:
        existing = self._pages.get(page.page)
        if existing is None:
            self._pages[page.page] = page
            return
        # same page split across documents: merge, names stay unique
        merged = existing.model_dump() | {"elements": [*existing.elements, *page.elements]}
        merged["url"] = existing.url or page.url
        self._pages[page.page] = PageElements.model_validate(merged)

    @classmethod
    def from_directory(cls, root: Optional[Path | str] = None, *, recursive: bool = True) -> "ElementRepository":
        base = Path(root) if root is not None else get_settings().DESCRIPTORS_DIR
        repo = cls()
        for fp in find_yaml_files(base, recursive=recursive):
            try:
                pages = load_descriptor_file(fp)
            except (OSError, ValueError) as e:
                log.warning(f"Skipping {fp}: {e}")
                continue
            for p in pages:
                repo.add(p)
        log.debug(f"Loaded {len(repo.pages())} page(s) from {base}")
        return repo

    def pages(self) -> List[str]:
        return sorted(self._pages)

    def page(self, key: str) -> PageElements:
        try:
            return self._pages[key]
        except KeyError:
            raise KeyError(f"No page '{key}' in element repository") from None

    def get(self, page_key: str, name: str) -> ElementDefinition:
        return self.page(page_key).element(name)

    def __iter__(self) -> Iterator[Tuple[str, ElementDefinition]]:
        for key in self.pages():
            for el in self._pages[key].elements:
                yield key, el

    def locator(
        self,
        page: Page,
        page_key: str,
        name: str,
        *,
        options: Optional[LocatorOptions] = None,
        reporter: Optional[HealingReporter] = None,
    ) -> ResilientLocator:
        el = self.get(page_key, name)
        return ResilientLocator(
            page,
            resolve_selector(page, el.primary),
            el.descriptor,
            [resolve_selector(page, f) for f in el.fallbacks],
            options,
            reporter=reporter,
        )


__all__ = [
    "SelectorStrategy",
    "Selector",
    "ElementDefinition",
    "PageElements",
    "ElementRepository",
    "resolve_selector",
    "load_descriptor_file",
    "find_yaml_files",
]
