# ui_resilience/selectors/strategy.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from playwright.sync_api import Error as PlaywrightError, Locator, Page

from ui_resilience.selectors.descriptor import ElementDescriptor, ElementKind
from ui_resilience.utils.config import get_settings
from ui_resilience.utils.logger import get_logger, log_with_context
from ui_resilience.utils.timing import Stopwatch, driver_timeout

log = get_logger(__name__)


# Kind -> CSS tag(s) used by the class-pattern strategy
CSS_TAGS: Dict[ElementKind, Tuple[str, ...]] = {
    ElementKind.button: ("button",),
    ElementKind.input: ("input",),
    ElementKind.link: ("a",),
    ElementKind.heading: ("h1", "h2", "h3", "h4", "h5", "h6"),
    ElementKind.text: ("*",),
    ElementKind.dropdown: ("select",),
    ElementKind.checkbox: ('input[type="checkbox"]',),
    ElementKind.radio: ('input[type="radio"]',),
    ElementKind.image: ("img",),
    ElementKind.custom: ("*",),
}

# Kind -> XPath node test used by the structural text strategy
XPATH_TAGS: Dict[ElementKind, str] = {
    ElementKind.button: "button",
    ElementKind.input: "input",
    ElementKind.link: "a",
    ElementKind.heading: "*[self::h1 or self::h2 or self::h3 or self::h4 or self::h5 or self::h6]",
    ElementKind.text: "*",
    ElementKind.dropdown: "select",
    ElementKind.checkbox: 'input[@type="checkbox"]',
    ElementKind.radio: 'input[@type="radio"]',
    ElementKind.image: "img",
    ElementKind.custom: "*",
}

_UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_LOWER = "abcdefghijklmnopqrstuvwxyz"

_DESCRIBE_JS = """
el => ({
  tag: el.tagName.toLowerCase(),
  id: el.id || "",
  cls: typeof el.className === "string" ? el.className : ""
})
"""


class StrategyStatus(str, Enum):
    matched = "matched"
    skipped = "skipped"      # required pattern category absent
    not_found = "not_found"  # queries ran, nothing visible
    errored = "errored"      # the strategy raised; later strategies still run


@dataclass
class StrategyAttempt:
    name: str
    status: StrategyStatus
    error: Optional[str] = None


@dataclass
class ResolutionOutcome:
    """Result of one end-to-end healing attempt."""
    success: bool
    locator: Optional[Locator] = None
    strategy_name: Optional[str] = None
    description: Optional[str] = None
    strategies_attempted: List[str] = field(default_factory=list)
    attempts: List[StrategyAttempt] = field(default_factory=list)
    error_message: Optional[str] = None
    elapsed_ms: int = 0


CandidateFn = Callable[[Page, ElementDescriptor], Iterable[Locator]]


@dataclass(frozen=True)
class HealingStrategy:
    """
    One way of turning part of a descriptor into element queries.
    `candidates` yields locators in preference order; the chain probes each.
    """
    name: str
    priority: int
    applies: Callable[[ElementDescriptor], bool]
    candidates: CandidateFn


# ---------- Probing / description ----------

def is_locator_valid(locator: Locator, timeout_ms: int) -> bool:
    """
    True when the locator matches at least one element and the first one is
    visible, waiting at most `timeout_ms` for it to show up.
    """
    try:
        if locator.count() == 0:
            return False
        first = locator.first
        if first.is_visible():
            return True
        if timeout_ms <= 0:
            # Playwright reads timeout=0 as "wait forever"
            return False
        first.wait_for(state="visible", timeout=timeout_ms)
        return True
    except PlaywrightError:
        return False


def describe_locator(locator: Locator, timeout_ms: int = 1000) -> str:
    """
    Human-readable description of the element behind a locator,
    e.g. `button#submit.btn.primary "Continue"`. Falls back to repr(locator).
    """
    try:
        handle = locator.element_handle(timeout=driver_timeout(timeout_ms))
        if handle is None:
            return repr(locator)
        try:
            info = handle.evaluate(_DESCRIBE_JS)
        finally:
            handle.dispose()
        text = (locator.text_content(timeout=driver_timeout(timeout_ms)) or "").strip()
    except PlaywrightError:
        return repr(locator)

    desc = info.get("tag") or "*"
    if info.get("id"):
        desc += f"#{info['id']}"
    classes = (info.get("cls") or "").split()[:2]
    if classes:
        desc += "." + ".".join(classes)
    if text:
        snippet = text[:30]
        desc += f' "{snippet}{"..." if len(text) > 30 else ""}"'
    return desc


def _css_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _xpath_literal(value: str) -> str:
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    return "concat(" + ", \"'\", ".join(f"'{p}'" for p in parts) + ")"


# ---------- Candidate generators ----------

def _role_with_text(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
    for p in d.text_patterns:
        yield page.get_by_role(d.role, name=p.compiled)


def _role_with_label(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
    for p in d.label_patterns:
        yield page.get_by_role(d.role, name=p.compiled)


def _label(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
    for p in d.label_patterns:
        yield page.get_by_label(p.compiled)


def _placeholder(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
    for p in d.placeholder_patterns:
        yield page.get_by_placeholder(p.compiled)


def _text(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
    for p in d.text_patterns:
        yield page.get_by_text(p.value, exact=True)
        yield page.get_by_text(p.compiled)


def _test_id(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
    for test_id in d.test_id_patterns:
        yield page.get_by_test_id(test_id)


def _title(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
    for p in d.title_patterns:
        yield page.get_by_title(p.compiled)


def _alt_text(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
    for p in d.alt_patterns:
        yield page.get_by_alt_text(p.compiled)


def _attribute(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
    for attr, value in d.attribute_patterns:
        v = _css_value(value)
        yield page.locator(f'[{attr}="{v}"]')
        yield page.locator(f'[{attr}*="{v}"]')


def _class_pattern(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
    tags = CSS_TAGS.get(d.element_kind, ("*",))
    for pattern in d.class_patterns:
        v = _css_value(pattern)
        yield page.locator(", ".join(f'{tag}[class*="{v}"]' for tag in tags))


def _pure_role(ambiguity_limit: int, timeout_ms: int) -> CandidateFn:
    def candidates(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
        loc = page.get_by_role(d.role)
        count = loc.count()
        if count == 1:
            yield loc
            return
        if count < 2 or count >= ambiguity_limit:
            log.debug(f'pure-role: {count} "{d.role}" element(s) for "{d.purpose}", not narrowing')
            return
        for i in range(count):
            element = loc.nth(i)
            text = element.text_content(timeout=driver_timeout(timeout_ms)) or ""
            if any(p.search(text) for p in d.text_patterns):
                yield element
    return candidates


def _structural_text(page: Page, d: ElementDescriptor) -> Iterator[Locator]:
    node = XPATH_TAGS.get(d.element_kind, "*")
    for p in d.text_patterns:
        needle = _xpath_literal(p.value.lower())
        yield page.locator(f"xpath=//{node}[contains(translate(., '{_UPPER}', '{_LOWER}'), {needle})]")


def build_default_strategies(ambiguity_limit: int = 10, probe_timeout_ms: int = 1000) -> List[HealingStrategy]:
    """The fixed chain, most specific first."""
    return [
        HealingStrategy("role-with-text", 1, lambda d: bool(d.role and d.text_patterns), _role_with_text),
        HealingStrategy("role-with-label", 2, lambda d: bool(d.role and d.label_patterns), _role_with_label),
        HealingStrategy("label", 3, lambda d: bool(d.label_patterns), _label),
        HealingStrategy("placeholder", 4, lambda d: bool(d.placeholder_patterns), _placeholder),
        HealingStrategy("text", 5, lambda d: bool(d.text_patterns), _text),
        HealingStrategy("test-id", 6, lambda d: bool(d.test_id_patterns), _test_id),
        HealingStrategy("title", 7, lambda d: bool(d.title_patterns), _title),
        HealingStrategy("alt-text", 8, lambda d: bool(d.alt_patterns), _alt_text),
        HealingStrategy("attribute", 9, lambda d: bool(d.attribute_patterns), _attribute),
        HealingStrategy("class-pattern", 10, lambda d: bool(d.class_patterns), _class_pattern),
        HealingStrategy("pure-role", 11, lambda d: bool(d.role), _pure_role(ambiguity_limit, probe_timeout_ms)),
        HealingStrategy("xpath-text", 12, lambda d: bool(d.text_patterns), _structural_text),
    ]


# ---------- Resolver ----------

class StrategyChainResolver:
    """
    Tries the healing strategies strictly in priority order and accepts the
    first candidate whose first match is visible. Strategies never run in
    parallel: with several plausible matches the winner must be deterministic.
    """

    def __init__(
        self,
        *,
        probe_timeout_ms: Optional[int] = None,
        ambiguity_limit: Optional[int] = None,
        strategies: Optional[Sequence[HealingStrategy]] = None,
    ) -> None:
        s = get_settings()
        self.probe_timeout_ms = s.STRATEGY_PROBE_TIMEOUT_MS if probe_timeout_ms is None else max(0, probe_timeout_ms)
        limit = s.PURE_ROLE_AMBIGUITY_LIMIT if ambiguity_limit is None else ambiguity_limit
        chain = strategies if strategies is not None else build_default_strategies(limit, self.probe_timeout_ms)
        self.strategies: List[HealingStrategy] = sorted(chain, key=lambda st: st.priority)

    @property
    def strategy_names(self) -> List[str]:
        return [st.name for st in self.strategies]

    def _first_valid(self, strategy: HealingStrategy, page: Page, descriptor: ElementDescriptor) -> Optional[Locator]:
        for candidate in strategy.candidates(page, descriptor):
            if is_locator_valid(candidate, self.probe_timeout_ms):
                return candidate.first
        return None

    def heal(
        self,
        descriptor: ElementDescriptor,
        page: Page,
        *,
        max_applicable: Optional[int] = None,
    ) -> ResolutionOutcome:
        """
        Run the chain for `descriptor` on `page`.

        `max_applicable` caps how many strategies whose pattern category is
        present may run; None or 0 runs the whole chain.
        """
        scoped = log_with_context(log, purpose=descriptor.purpose)
        attempted: List[str] = []
        attempts: List[StrategyAttempt] = []
        evaluated = 0
        budget_hit = False

        with Stopwatch() as sw:
            for strategy in self.strategies:
                applies = strategy.applies(descriptor)
                if applies and max_applicable and evaluated >= max_applicable:
                    budget_hit = True
                    break

                attempted.append(strategy.name)
                if not applies:
                    attempts.append(StrategyAttempt(strategy.name, StrategyStatus.skipped))
                    continue

                evaluated += 1
                try:
                    found = self._first_valid(strategy, page, descriptor)
                except Exception as e:
                    scoped.debug(f'Healing strategy "{strategy.name}" failed for "{descriptor.purpose}": {e!r}')
                    attempts.append(StrategyAttempt(strategy.name, StrategyStatus.errored, error=repr(e)))
                    continue

                if found is None:
                    attempts.append(StrategyAttempt(strategy.name, StrategyStatus.not_found))
                    continue

                attempts.append(StrategyAttempt(strategy.name, StrategyStatus.matched))
                return ResolutionOutcome(
                    success=True,
                    locator=found,
                    strategy_name=strategy.name,
                    description=describe_locator(found, self.probe_timeout_ms),
                    strategies_attempted=attempted,
                    attempts=attempts,
                    elapsed_ms=sw.elapsed_ms(),
                )

        message = f'All {len(attempted)} healing strategies failed for "{descriptor.purpose}"'
        if budget_hit:
            message += f" (stopped after {evaluated} applicable strategies)"
        elif not descriptor.has_semantic_hints():
            message += " (descriptor has no role or patterns to heal with)"
        return ResolutionOutcome(
            success=False,
            strategies_attempted=attempted,
            attempts=attempts,
            error_message=message,
            elapsed_ms=sw.elapsed_ms(),
        )


__all__ = [
    "StrategyStatus",
    "StrategyAttempt",
    "ResolutionOutcome",
    "HealingStrategy",
    "StrategyChainResolver",
    "build_default_strategies",
    "describe_locator",
    "is_locator_valid",
]
