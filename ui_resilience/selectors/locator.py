# ui_resilience/selectors/locator.py
from __future__ import annotations

"""Resilient locator
--------------------
A primary Playwright locator backed by explicit fallbacks and, as a last
resort, the semantic strategy chain built from an ElementDescriptor.

    save = ResilientLocator(
        page,
        page.locator("#save-btn"),
        ElementDescriptor(purpose="Save Button", accessible_role="button", text_patterns=["Save"]),
    )
    save.click()
    if save.was_healed():
        ...

Every operation resolves first (except the hidden/detached checks, which only
ever look at the primary locator) and then acts with a bounded timeout.
Action failures propagate as Playwright raised them; no retries happen here.
"""

import re
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional, Sequence, Union

from playwright.sync_api import Error as PlaywrightError, Locator, Page

from ui_resilience.core.actions import ResilientElement
from ui_resilience.errors import HealingDisabled, ResolutionExhausted
from ui_resilience.reporting.healing import HealingEvent, HealingReporter, get_healing_reporter
from ui_resilience.selectors.descriptor import ElementDescriptor, TextPattern
from ui_resilience.selectors.strategy import (
    ResolutionOutcome,
    StrategyChainResolver,
    describe_locator,
    is_locator_valid,
)
from ui_resilience.utils.config import get_settings
from ui_resilience.utils.logger import get_logger, log_with_context
from ui_resilience.utils.timing import driver_timeout, wait_for

log = get_logger(__name__)

EXPLICIT_FALLBACK = "explicit fallback"

Expected = Union[str, re.Pattern, TextPattern]


@dataclass(frozen=True)
class LocatorOptions:
    timeout_ms: int = 10000
    enable_healing: bool = True
    max_healing_attempts: Optional[int] = None  # cap on applicable strategies; None/0 runs the whole chain
    log_healing: bool = True
    probe_timeout_ms: int = 2000

    @classmethod
    def from_settings(cls, **overrides: Any) -> "LocatorOptions":
        s = get_settings()
        opts = cls(
            timeout_ms=s.DEFAULT_TIMEOUT_MS,
            enable_healing=s.ENABLE_HEALING,
            max_healing_attempts=s.MAX_HEALING_ATTEMPTS or None,
            log_healing=s.LOG_HEALING,
            probe_timeout_ms=s.PROBE_TIMEOUT_MS,
        )
        return replace(opts, **overrides) if overrides else opts


def _normalize_ws(text: Optional[str]) -> str:
    return " ".join((text or "").split())


def _matches(expected: Expected, actual: Optional[str]) -> bool:
    if actual is None:
        return False
    if isinstance(expected, TextPattern):
        return expected.search(actual)
    if isinstance(expected, re.Pattern):
        return expected.search(actual) is not None
    return _normalize_ws(actual) == _normalize_ws(expected)


class ResilientLocator:
    def __init__(
        self,
        page: Page,
        primary: Union[Locator, str],
        descriptor: ElementDescriptor,
        fallbacks: Sequence[Union[Locator, str]] = (),
        options: Optional[LocatorOptions] = None,
        *,
        reporter: Optional[HealingReporter] = None,
        resolver: Optional[StrategyChainResolver] = None,
    ) -> None:
        self.page = page
        self.descriptor = descriptor
        self.options = options or LocatorOptions.from_settings()
        self._primary = page.locator(primary) if isinstance(primary, str) else primary
        self._fallbacks: List[Locator] = [page.locator(f) if isinstance(f, str) else f for f in fallbacks]
        self._reporter = reporter
        self._resolver = resolver
        self._healed = False
        self._strategy: Optional[str] = None
        self._last_outcome: Optional[ResolutionOutcome] = None

    def __repr__(self) -> str:
        return f"ResilientLocator(purpose={self.descriptor.purpose!r}, primary={self._primary!r})"

    # ---------- Accessors ----------

    @property
    def primary(self) -> Locator:
        return self._primary

    @property
    def fallbacks(self) -> List[Locator]:
        return list(self._fallbacks)

    @property
    def reporter(self) -> HealingReporter:
        return self._reporter if self._reporter is not None else get_healing_reporter()

    @property
    def resolver(self) -> StrategyChainResolver:
        if self._resolver is None:
            self._resolver = StrategyChainResolver()
        return self._resolver

    @property
    def last_outcome(self) -> Optional[ResolutionOutcome]:
        """Outcome of the most recent strategy-chain run, if resolution ever got that far."""
        return self._last_outcome

    @property
    def _timeout(self) -> int:
        return driver_timeout(self.options.timeout_ms)

    @property
    def _probe_timeout(self) -> int:
        return driver_timeout(self.options.probe_timeout_ms)

    def was_healed(self) -> bool:
        return self._healed

    def healing_strategy(self) -> Optional[str]:
        return self._strategy

    # ---------- Resolution ----------

    def resolve(self) -> Locator:
        """
        Return a locator for a visible element: primary, else the first
        visible explicit fallback, else whatever the strategy chain finds.

        Raises:
            HealingDisabled: primary and fallbacks failed, healing is off
            ResolutionExhausted: nothing matched at all
        """
        purpose = self.descriptor.purpose
        scoped = log_with_context(log, purpose=purpose)
        probe = self.options.probe_timeout_ms

        if is_locator_valid(self._primary, probe):
            return self._primary

        scoped.debug(f'Primary locator failed for "{purpose}"')
        for idx, fallback in enumerate(self._fallbacks):
            if is_locator_valid(fallback, probe):
                scoped.debug(f'Fallback #{idx + 1} matched for "{purpose}"')
                self._mark_healed(EXPLICIT_FALLBACK, fallback)
                return fallback

        if not self.options.enable_healing:
            msg = (
                f'Primary locator failed for "{purpose}" and healing is disabled. '
                f"No fallback locators matched ({len(self._fallbacks)} tried)."
            )
            scoped.warning(msg)
            raise HealingDisabled(msg, purpose=purpose)

        outcome = self.resolver.heal(
            self.descriptor,
            self.page,
            max_applicable=self.options.max_healing_attempts,
        )
        self._last_outcome = outcome

        if outcome.success and outcome.locator is not None:
            self._mark_healed(outcome.strategy_name or "unknown", outcome.locator, outcome.description)
            return outcome.locator

        tried = ", ".join(outcome.strategies_attempted) or "none"
        chain = "all healing strategies"
        if len(outcome.strategies_attempted) < len(self.resolver.strategy_names):
            chain = f"the first {self.options.max_healing_attempts} applicable healing strategies"
        msg = (
            f'Unable to find element "{purpose}". '
            f"Primary locator, {len(self._fallbacks)} fallback(s) and {chain} failed. "
            f"Strategies tried: {tried}"
        )
        scoped.warning(msg)
        raise ResolutionExhausted(msg, purpose=purpose, strategies_attempted=outcome.strategies_attempted)

    def _mark_healed(self, strategy: str, locator: Locator, description: Optional[str] = None) -> None:
        self._healed = True
        self._strategy = strategy
        if not self.options.log_healing:
            return
        try:
            event = HealingEvent(
                purpose=self.descriptor.purpose,
                element_kind=self.descriptor.element_kind.value,
                strategy_name=strategy,
                resolved_description=description or describe_locator(locator, self.options.probe_timeout_ms),
                page_url=getattr(self.page, "url", None),
            )
            self.reporter.add_event(event)
        except Exception as e:
            log.warning(f'Could not record healing event for "{self.descriptor.purpose}": {e!r}')

    def as_element(self, **kwargs: Any) -> ResilientElement:
        """Resolve and wrap the result for retried actions."""
        kwargs.setdefault("timeout_ms", self.options.timeout_ms)
        kwargs.setdefault("purpose", self.descriptor.purpose)
        return ResilientElement(self.resolve(), **kwargs)

    # ---------- Actions ----------

    def click(self, **kwargs: Any) -> None:
        kwargs.setdefault("timeout", self._timeout)
        self.resolve().click(**kwargs)

    def fill(self, value: str, **kwargs: Any) -> None:
        kwargs.setdefault("timeout", self._timeout)
        self.resolve().fill(value, **kwargs)

    def select_option(self, value: Any, **kwargs: Any) -> List[str]:
        kwargs.setdefault("timeout", self._timeout)
        return self.resolve().select_option(value, **kwargs)

    def set_checked(self, checked: bool, **kwargs: Any) -> None:
        kwargs.setdefault("timeout", self._timeout)
        self.resolve().set_checked(checked, **kwargs)

    def hover(self, **kwargs: Any) -> None:
        kwargs.setdefault("timeout", self._timeout)
        self.resolve().hover(**kwargs)

    def wait_for(self, state: str = "visible", timeout_ms: Optional[int] = None) -> None:
        timeout = self.options.timeout_ms if timeout_ms is None else timeout_ms
        if state in ("hidden", "detached"):
            self._primary.wait_for(state=state, timeout=driver_timeout(timeout))
            return
        self.resolve().wait_for(state=state, timeout=driver_timeout(timeout))

    # ---------- Reads ----------

    def get_text(self) -> Optional[str]:
        return self.resolve().text_content(timeout=self._timeout)

    def get_value(self) -> str:
        return self.resolve().input_value(timeout=self._timeout)

    def get_attribute(self, name: str) -> Optional[str]:
        return self.resolve().get_attribute(name, timeout=self._timeout)

    def is_visible(self) -> bool:
        return self._check(lambda loc: loc.is_visible())

    def is_enabled(self) -> bool:
        return self._check(lambda loc: loc.is_enabled(timeout=self._probe_timeout))

    def is_disabled(self) -> bool:
        return self._check(lambda loc: loc.is_disabled(timeout=self._probe_timeout))

    def _check(self, fn: Callable[[Locator], bool]) -> bool:
        try:
            return fn(self.resolve())
        except (HealingDisabled, ResolutionExhausted):
            return False
        except PlaywrightError as e:
            log.debug(f'State check on "{self.descriptor.purpose}" failed: {e!r}')
            return False

    # ---------- Assertions ----------

    def expect_visible(self, timeout_ms: Optional[int] = None) -> None:
        timeout = self.options.timeout_ms if timeout_ms is None else timeout_ms
        loc = self.resolve()
        try:
            loc.wait_for(state="visible", timeout=driver_timeout(timeout))
        except PlaywrightError as e:
            raise AssertionError(f'"{self.descriptor.purpose}" did not become visible within {timeout} ms') from e

    def expect_hidden(self, timeout_ms: Optional[int] = None) -> None:
        # Absence can only be proven for the primary locator
        timeout = self.options.timeout_ms if timeout_ms is None else timeout_ms
        try:
            self._primary.wait_for(state="hidden", timeout=driver_timeout(timeout))
        except PlaywrightError as e:
            raise AssertionError(f'"{self.descriptor.purpose}" is still visible after {timeout} ms') from e

    def expect_text(self, expected: Expected, timeout_ms: Optional[int] = None) -> None:
        loc = self.resolve()
        self._poll(lambda: loc.text_content(timeout=self._probe_timeout), expected, "text", timeout_ms)

    def expect_value(self, expected: Expected, timeout_ms: Optional[int] = None) -> None:
        loc = self.resolve()
        self._poll(lambda: loc.input_value(timeout=self._probe_timeout), expected, "value", timeout_ms)

    def expect_attribute(self, name: str, expected: Expected, timeout_ms: Optional[int] = None) -> None:
        loc = self.resolve()
        self._poll(
            lambda: loc.get_attribute(name, timeout=self._probe_timeout),
            expected,
            f"attribute {name!r}",
            timeout_ms,
        )

    def _poll(
        self,
        read: Callable[[], Optional[str]],
        expected: Expected,
        what: str,
        timeout_ms: Optional[int],
    ) -> None:
        timeout = self.options.timeout_ms if timeout_ms is None else timeout_ms
        last: List[Optional[str]] = [None]

        def check() -> bool:
            try:
                last[0] = read()
            except PlaywrightError:
                return False
            return _matches(expected, last[0])

        try:
            wait_for(check, timeout, interval_ms=100, description=f"{what} of {self.descriptor.purpose}")
        except TimeoutError:
            shown = expected.pattern if isinstance(expected, re.Pattern) else str(expected)
            raise AssertionError(
                f'Expected {what} of "{self.descriptor.purpose}" to match {shown!r}, '
                f"last seen {last[0]!r} (waited {timeout} ms)"
            ) from None


__all__ = ["ResilientLocator", "LocatorOptions", "EXPLICIT_FALLBACK"]
