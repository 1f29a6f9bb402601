from __future__ import annotations

"""Element descriptors
----------------------
Declarative, purpose-labelled descriptions of UI elements. A descriptor is
built once per logical element and drives the semantic fallback strategies
when a primary locator stops matching.
"""

import functools
import re
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------- Core enums ----------


class ElementKind(str, Enum):
    button = "button"
    input = "input"
    link = "link"
    heading = "heading"
    text = "text"
    dropdown = "dropdown"
    checkbox = "checkbox"
    radio = "radio"
    image = "image"
    custom = "custom"


class AriaRole(str, Enum):
    """ARIA roles accepted by Playwright's get_by_role."""
    alert = "alert"
    alertdialog = "alertdialog"
    application = "application"
    article = "article"
    banner = "banner"
    blockquote = "blockquote"
    button = "button"
    caption = "caption"
    cell = "cell"
    checkbox = "checkbox"
    code = "code"
    columnheader = "columnheader"
    combobox = "combobox"
    complementary = "complementary"
    contentinfo = "contentinfo"
    definition = "definition"
    deletion = "deletion"
    dialog = "dialog"
    directory = "directory"
    document = "document"
    emphasis = "emphasis"
    feed = "feed"
    figure = "figure"
    form = "form"
    generic = "generic"
    grid = "grid"
    gridcell = "gridcell"
    group = "group"
    heading = "heading"
    img = "img"
    insertion = "insertion"
    link = "link"
    list = "list"
    listbox = "listbox"
    listitem = "listitem"
    log = "log"
    main = "main"
    marquee = "marquee"
    math = "math"
    meter = "meter"
    menu = "menu"
    menubar = "menubar"
    menuitem = "menuitem"
    menuitemcheckbox = "menuitemcheckbox"
    menuitemradio = "menuitemradio"
    navigation = "navigation"
    none = "none"
    note = "note"
    option = "option"
    paragraph = "paragraph"
    presentation = "presentation"
    progressbar = "progressbar"
    radio = "radio"
    radiogroup = "radiogroup"
    region = "region"
    row = "row"
    rowgroup = "rowgroup"
    rowheader = "rowheader"
    scrollbar = "scrollbar"
    search = "search"
    searchbox = "searchbox"
    separator = "separator"
    slider = "slider"
    spinbutton = "spinbutton"
    status = "status"
    strong = "strong"
    subscript = "subscript"
    superscript = "superscript"
    switch = "switch"
    tab = "tab"
    table = "table"
    tablist = "tablist"
    tabpanel = "tabpanel"
    term = "term"
    textbox = "textbox"
    time = "time"
    timer = "timer"
    toolbar = "toolbar"
    tooltip = "tooltip"
    tree = "tree"
    treegrid = "treegrid"
    treeitem = "treeitem"


class PatternMode(str, Enum):
    regex = "regex"
    contains = "contains"
    exact = "exact"


# ---------- Patterns ----------


@functools.lru_cache(maxsize=1024)
def _compile(value: str, mode: PatternMode) -> re.Pattern[str]:
    if mode == PatternMode.exact:
        return re.compile(rf"^{re.escape(value)}$", re.IGNORECASE)
    if mode == PatternMode.contains:
        return re.compile(re.escape(value), re.IGNORECASE)
    return re.compile(value, re.IGNORECASE)


class TextPattern(BaseModel):
    """
    One case-insensitive text pattern.

    Plain strings become `regex` patterns, so "Save|Submit" matches either word.
    Use `TextPattern.contains()` for literal text with regex metacharacters.
    """

    model_config = ConfigDict(frozen=True)

    value: str
    mode: PatternMode = PatternMode.regex

    @field_validator("value")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("pattern cannot be empty")
        return v

    @model_validator(mode="after")
    def _compiles(self) -> "TextPattern":
        # fail at construction instead of at resolution time
        try:
            _compile(self.value, self.mode)
        except re.error as e:
            raise ValueError(f"invalid regex pattern {self.value!r}: {e}") from e
        return self

    @classmethod
    def regex(cls, value: str) -> "TextPattern":
        return cls(value=value, mode=PatternMode.regex)

    @classmethod
    def contains(cls, value: str) -> "TextPattern":
        return cls(value=value, mode=PatternMode.contains)

    @classmethod
    def exact(cls, value: str) -> "TextPattern":
        return cls(value=value, mode=PatternMode.exact)

    @property
    def compiled(self) -> re.Pattern[str]:
        return _compile(self.value, self.mode)

    def search(self, text: Optional[str]) -> bool:
        return bool(text) and self.compiled.search(text) is not None

    def __str__(self) -> str:
        return self.value


def _coerce_pattern(v: Any) -> Any:
    if isinstance(v, str):
        return {"value": v}
    return v


# ---------- Descriptor ----------


class ElementDescriptor(BaseModel):
    """
    Declarative description of one logical UI element.

    `purpose` is the stable key for healing reports. Pattern lists are ordered
    by priority within their category. At least one semantic hint (role or a
    pattern list) is needed for healing to find anything, but a descriptor
    without hints is still accepted; resolution reports the exhaustion.
    """

    model_config = ConfigDict(frozen=True)

    purpose: str = Field(..., description="Human label, e.g. 'Login Button'")
    element_kind: ElementKind = Field(default=ElementKind.custom)
    accessible_role: Optional[AriaRole] = Field(default=None)

    text_patterns: Tuple[TextPattern, ...] = ()
    label_patterns: Tuple[TextPattern, ...] = ()
    placeholder_patterns: Tuple[TextPattern, ...] = ()
    title_patterns: Tuple[TextPattern, ...] = ()
    alt_patterns: Tuple[TextPattern, ...] = ()

    test_id_patterns: Tuple[str, ...] = ()
    class_patterns: Tuple[str, ...] = ()
    attribute_patterns: Tuple[Tuple[str, str], ...] = ()  # (attribute, value) pairs, in priority order

    context_notes: Optional[str] = Field(default=None, description="Documentation only")
    form_context: Optional[str] = Field(default=None, description="Documentation only")

    @field_validator("purpose")
    @classmethod
    def _purpose_non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("purpose cannot be empty")
        return v

    @field_validator(
        "text_patterns",
        "label_patterns",
        "placeholder_patterns",
        "title_patterns",
        "alt_patterns",
        mode="before",
    )
    @classmethod
    def _coerce_patterns(cls, v: Any) -> Any:
        if v is None:
            return ()
        if isinstance(v, (str, TextPattern)):
            v = [v]
        return tuple(_coerce_pattern(p) for p in v)

    @field_validator("test_id_patterns", "class_patterns", mode="before")
    @classmethod
    def _coerce_strings(cls, v: Any) -> Any:
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        return tuple(s.strip() for s in v if isinstance(s, str) and s.strip())

    @field_validator("attribute_patterns", mode="before")
    @classmethod
    def _coerce_attributes(cls, v: Any) -> Any:
        if v is None:
            return ()
        if isinstance(v, Mapping):
            return tuple(v.items())
        return v

    def has_semantic_hints(self) -> bool:
        return bool(
            self.accessible_role
            or self.text_patterns
            or self.label_patterns
            or self.placeholder_patterns
            or self.test_id_patterns
            or self.class_patterns
            or self.attribute_patterns
            or self.title_patterns
            or self.alt_patterns
        )

    @property
    def role(self) -> Optional[str]:
        """Role value as the browser driver expects it."""
        return self.accessible_role.value if self.accessible_role else None


__all__ = [
    "ElementKind",
    "AriaRole",
    "PatternMode",
    "TextPattern",
    "ElementDescriptor",
]
