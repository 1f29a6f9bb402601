"""
In-memory stand-ins for Playwright's Page and Locator.

FakePage holds a flat, document-ordered list of FakeElement objects and
answers the get_by_* queries and a small CSS/XPath subset. Locators are
lazy: every call re-runs the query, so tests can mutate the page between
resolutions the way a re-rendering app would.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

import pytest
from playwright.sync_api import Error as PlaywrightError

from ui_resilience.reporting.healing import HealingReporter
from ui_resilience.selectors.locator import LocatorOptions

NamePattern = Union[str, re.Pattern, None]

_IMPLICIT_ROLES = {
    "button": "button",
    "a": "link",
    "select": "combobox",
    "textarea": "textbox",
    "img": "img",
    "option": "option",
    "li": "listitem",
    "h1": "heading",
    "h2": "heading",
    "h3": "heading",
    "h4": "heading",
    "h5": "heading",
    "h6": "heading",
}

_INPUT_ROLES = {"checkbox": "checkbox", "radio": "radio", "button": "button", "submit": "button"}


@dataclass(eq=False)
class FakeElement:
    tag: str
    text: Optional[str] = None
    attrs: Dict[str, str] = field(default_factory=dict)
    label: Optional[str] = None
    visible: bool = True
    enabled: bool = True
    value: str = ""
    checked: bool = False
    ignore_fill: bool = False
    fail_clicks: int = 0
    clicks: int = 0
    hovers: int = 0

    @property
    def role(self) -> Optional[str]:
        if "role" in self.attrs:
            return self.attrs["role"]
        if self.tag == "input":
            return _INPUT_ROLES.get(self.attrs.get("type", "text"), "textbox")
        return _IMPLICIT_ROLES.get(self.tag)

    @property
    def accessible_name(self) -> str:
        return self.attrs.get("aria-label") or self.label or self.attrs.get("alt") or (self.text or "")


def _text_matches(pattern: NamePattern, actual: Optional[str], exact: bool = False) -> bool:
    if actual is None:
        return False
    if isinstance(pattern, re.Pattern):
        return pattern.search(actual) is not None
    if exact:
        return " ".join(actual.split()) == pattern
    return str(pattern).lower() in actual.lower()


# ---------- tiny selector engines ----------

_ATTR_RE = re.compile(r'\[([\w-]+)(\*?=)"((?:[^"\\]|\\.)*)"\]')
_SIMPLE_RE = re.compile(r"^(?P<tag>[A-Za-z][\w-]*|\*)?(?P<rest>.*)$")
_XPATH_RE = re.compile(
    r"^//(?P<node>.+?)(?:\[contains\(translate\(\., '[A-Z]+', '[a-z]+'\), (?P<needle>'[^']*'|\"[^\"]*\")\)\])?$"
)


def _unescape(v: str) -> str:
    return re.sub(r"\\(.)", r"\1", v)


def _css_simple(selector: str, el: FakeElement) -> bool:
    m = _SIMPLE_RE.match(selector.strip())
    tag, rest = m.group("tag"), m.group("rest")
    if tag and tag != "*" and tag != el.tag:
        return False
    for name, op, raw in _ATTR_RE.findall(rest):
        actual = el.attrs.get(name)
        expected = _unescape(raw)
        if actual is None:
            return False
        if op == "=" and actual != expected:
            return False
        if op == "*=" and expected not in actual:
            return False
    rest = _ATTR_RE.sub("", rest)
    for kind, name in re.findall(r"([#.])([\w-]+)", rest):
        if kind == "#" and el.attrs.get("id") != name:
            return False
        if kind == "." and name not in el.attrs.get("class", "").split():
            return False
    return True


def _css(selector: str, el: FakeElement) -> bool:
    return any(_css_simple(part, el) for part in selector.split(","))


def _xpath(expr: str, el: FakeElement) -> bool:
    m = _XPATH_RE.match(expr)
    if not m:
        raise PlaywrightError(f"unsupported xpath in fake page: {expr}")
    node = m.group("node")
    if node.startswith("*[self::"):
        if el.tag not in re.findall(r"self::(\w+)", node):
            return False
    elif "[@type=" in node:
        tag, type_ = re.match(r'(\w+)\[@type="(\w+)"\]', node).groups()
        if el.tag != tag or el.attrs.get("type") != type_:
            return False
    elif node != "*" and node != el.tag:
        return False
    needle = m.group("needle")
    if needle is None:
        return True
    return needle[1:-1] in (el.text or "").lower()


# ---------- Page / Locator ----------


class FakeLocator:
    def __init__(self, page: "FakePage", finder: Callable[[], List[FakeElement]], desc: str) -> None:
        self._page = page
        self._finder = finder
        self._desc = desc

    def __repr__(self) -> str:
        return f"<FakeLocator {self._desc}>"

    def _all(self) -> List[FakeElement]:
        return list(self._finder())

    def _one(self) -> FakeElement:
        found = self._all()
        if not found:
            raise PlaywrightError(f"Timeout: no element for {self._desc}")
        return found[0]

    @property
    def page(self) -> "FakePage":
        return self._page

    @property
    def first(self) -> "FakeLocator":
        return self.nth(0)

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self._page, lambda: self._all()[index:index + 1], f"{self._desc} >> nth={index}")

    def count(self) -> int:
        return len(self._all())

    def is_visible(self, timeout=None) -> bool:
        found = self._all()
        return bool(found) and found[0].visible

    def is_enabled(self, timeout=None) -> bool:
        return self._one().enabled

    def is_disabled(self, timeout=None) -> bool:
        return not self._one().enabled

    def wait_for(self, state: str = "visible", timeout=None) -> None:
        found = self._all()
        ok = {
            "visible": bool(found) and found[0].visible,
            "hidden": not found or not found[0].visible,
            "attached": bool(found),
            "detached": not found,
        }[state]
        if not ok:
            raise PlaywrightError(f"Timeout {timeout}ms exceeded waiting for {self._desc} to be {state}")

    def text_content(self, timeout=None) -> Optional[str]:
        return self._one().text

    def input_value(self, timeout=None) -> str:
        el = self._one()
        if el.tag not in ("input", "textarea", "select"):
            raise PlaywrightError("Error: Node is not an <input>, <textarea> or <select> element")
        return el.value

    def get_attribute(self, name: str, timeout=None) -> Optional[str]:
        return self._one().attrs.get(name)

    def evaluate(self, expression: str, arg=None):
        return self._one().tag

    def element_handle(self, timeout=None) -> "FakeHandle":
        return FakeHandle(self._one())

    def click(self, force: bool = False, timeout=None, **kwargs) -> None:
        el = self._one()
        if el.fail_clicks > 0:
            el.fail_clicks -= 1
            raise PlaywrightError("Element is not attached to the DOM")
        el.clicks += 1

    def fill(self, value: str, timeout=None, **kwargs) -> None:
        el = self._one()
        if not el.ignore_fill:
            el.value = value

    def clear(self, timeout=None, **kwargs) -> None:
        self._one().value = ""

    def select_option(self, value, timeout=None, **kwargs) -> List[str]:
        self._one().value = value
        return [value]

    def set_checked(self, checked: bool, timeout=None, **kwargs) -> None:
        self._one().checked = checked

    def hover(self, timeout=None, **kwargs) -> None:
        self._one().hovers += 1

    def scroll_into_view_if_needed(self, timeout=None) -> None:
        self._one()


class FakeHandle:
    def __init__(self, el: FakeElement) -> None:
        self._el = el
        self.disposed = False

    def evaluate(self, expression: str, arg=None):
        return {"tag": self._el.tag, "id": self._el.attrs.get("id", ""), "cls": self._el.attrs.get("class", "")}

    def dispose(self) -> None:
        self.disposed = True


class FakePage:
    def __init__(self, elements: Optional[List[FakeElement]] = None, *, broken: tuple = ()) -> None:
        self.elements: List[FakeElement] = list(elements or [])
        self.url = "https://app.test/current"
        self.broken = set(broken)  # query method names that raise
        self.queries: List[str] = []

    def add(self, *elements: FakeElement) -> "FakePage":
        self.elements.extend(elements)
        return self

    def _query(self, method: str, desc: str, pred: Callable[[FakeElement], bool]) -> FakeLocator:
        self.queries.append(method)
        if method in self.broken:
            raise RuntimeError(f"{method} exploded")
        return FakeLocator(self, lambda: [e for e in self.elements if pred(e)], desc)

    def locator(self, selector: str) -> FakeLocator:
        if selector.startswith("xpath="):
            expr = selector[len("xpath="):]
            return self._query("locator", selector, lambda e: _xpath(expr, e))
        return self._query("locator", selector, lambda e: _css(selector, e))

    def get_by_role(self, role: str, name: NamePattern = None, exact: Optional[bool] = None) -> FakeLocator:
        def pred(e: FakeElement) -> bool:
            if e.role != role:
                return False
            return name is None or _text_matches(name, e.accessible_name, bool(exact))
        return self._query("get_by_role", f"role={role}[name={name!r}]", pred)

    def get_by_text(self, text: NamePattern, exact: Optional[bool] = None) -> FakeLocator:
        return self._query("get_by_text", f"text={text!r}", lambda e: _text_matches(text, e.text, bool(exact)))

    def get_by_label(self, text: NamePattern, exact: Optional[bool] = None) -> FakeLocator:
        return self._query("get_by_label", f"label={text!r}", lambda e: _text_matches(text, e.label, bool(exact)))

    def get_by_placeholder(self, text: NamePattern, exact: Optional[bool] = None) -> FakeLocator:
        return self._query(
            "get_by_placeholder", f"placeholder={text!r}",
            lambda e: _text_matches(text, e.attrs.get("placeholder"), bool(exact)),
        )

    def get_by_test_id(self, test_id: str) -> FakeLocator:
        return self._query("get_by_test_id", f"test_id={test_id}", lambda e: e.attrs.get("data-testid") == test_id)

    def get_by_title(self, text: NamePattern, exact: Optional[bool] = None) -> FakeLocator:
        return self._query(
            "get_by_title", f"title={text!r}",
            lambda e: _text_matches(text, e.attrs.get("title"), bool(exact)),
        )

    def get_by_alt_text(self, text: NamePattern, exact: Optional[bool] = None) -> FakeLocator:
        return self._query(
            "get_by_alt_text", f"alt={text!r}",
            lambda e: _text_matches(text, e.attrs.get("alt"), bool(exact)),
        )


# ---------- fixtures ----------


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def reporter() -> HealingReporter:
    return HealingReporter()


@pytest.fixture
def options() -> LocatorOptions:
    return LocatorOptions(timeout_ms=0, probe_timeout_ms=0, max_healing_attempts=None)


@pytest.fixture
def no_sleep(monkeypatch) -> List[int]:
    """Record retry sleeps instead of sleeping."""
    slept: List[int] = []
    monkeypatch.setattr("ui_resilience.utils.timing.sleep_ms", lambda ms: slept.append(ms))
    return slept
