# ui_resilience/core/actions.py
from __future__ import annotations

"""Resilient actions
--------------------
Retried click/fill/select/hover on one concrete Playwright locator, with
pre-checks (visible, enabled) and post-condition checks (the value stuck).
No semantic fallback happens here; use ResilientLocator.as_element() to get
an instance for a healed element.
"""

from typing import Any, Callable, Dict, Optional, TypeVar, Union

from playwright.sync_api import Error as PlaywrightError, Locator

from ui_resilience.errors import RetryExhausted, ValueNotApplied
from ui_resilience.utils.config import get_settings
from ui_resilience.utils.logger import get_logger, log_with_context
from ui_resilience.utils.timing import driver_timeout, measure, retry_with_backoff, wait_for

__all__ = ["ResilientElement", "ELEMENT_STATES"]

log = get_logger(__name__)

T = TypeVar("T")

ELEMENT_STATES = ("visible", "hidden", "attached", "detached", "enabled", "disabled")

# tags whose value can be read back with input_value()
_VALUE_TAGS = ("input", "textarea")


class ResilientElement:
    def __init__(
        self,
        locator: Locator,
        *,
        timeout_ms: Optional[int] = None,
        purpose: Optional[str] = None,
        retry_options: Optional[Dict[str, Any]] = None,
    ) -> None:
        s = get_settings()
        self.locator = locator
        self.timeout_ms = s.DEFAULT_TIMEOUT_MS if timeout_ms is None else timeout_ms
        self.purpose = purpose
        self.option_timeout_ms = s.OPTION_TIMEOUT_MS
        self.value_check_timeout_ms = s.VALUE_CHECK_TIMEOUT_MS
        self._retry: Dict[str, Any] = s.retry_kwargs()
        self._retry.update(retry_options or {})

    def __repr__(self) -> str:
        return f"ResilientElement({self.purpose or self.locator!r})"

    @property
    def _timeout(self) -> int:
        return driver_timeout(self.timeout_ms)

    @property
    def label(self) -> str:
        return f'"{self.purpose}"' if self.purpose else repr(self.locator)

    # ------------- Internals -------------

    def _run(self, action: str, op: Callable[[], T], retries: int) -> T:
        """Run `op` under backoff retry; wrap the final failure in RetryExhausted."""
        attempts = max(1, retries)
        scoped = log_with_context(log, action=action, purpose=self.purpose) if self.purpose else log
        opts = dict(self._retry)
        opts["max_attempts"] = attempts

        def on_retry(attempt: int, exc: BaseException) -> None:
            scoped.debug(f"{action} attempt {attempt}/{attempts} on {self.label} failed: {exc!r}")

        try:
            return retry_with_backoff(op, on_retry=on_retry, **opts)
        except Exception as e:
            raise RetryExhausted(action, attempts, e, purpose=self.purpose) from e

    def _wait_visible(self) -> None:
        self.locator.wait_for(state="visible", timeout=self._timeout)

    def _wait_enabled(self, timeout_ms: Optional[int] = None) -> None:
        wait_for(
            lambda: self.locator.is_enabled(),
            self.timeout_ms if timeout_ms is None else timeout_ms,
            description=f"{self.label} enabled",
        )

    def _verify_value(self, expected: str, strict: bool = False) -> None:
        """
        Wait for the filled value to read back. A mismatch is logged and
        ignored (masked and reformatting inputs rewrite what was typed)
        unless `strict`, which raises ValueNotApplied.
        """
        try:
            tag = self.locator.evaluate("el => el.tagName.toLowerCase()")
        except PlaywrightError as e:
            log.debug(f"Skipping value check on {self.label}: {e!r}")
            return
        if tag not in _VALUE_TAGS:
            return

        seen: Dict[str, Optional[str]] = {"value": None}

        def applied() -> bool:
            seen["value"] = self.locator.input_value(timeout=driver_timeout(self.value_check_timeout_ms))
            return seen["value"] == expected

        try:
            wait_for(applied, self.value_check_timeout_ms, description=f"value of {self.label}")
        except TimeoutError:
            if strict:
                raise ValueNotApplied(expected, seen["value"]) from None
            log.debug(f"Value of {self.label} reads {seen['value']!r} after filling {expected!r}; continuing")

    # ------------- Actions -------------

    @measure("click")
    def click(self, *, retries: int = 3, force: bool = False) -> None:
        def op() -> None:
            self._wait_visible()
            if not force:
                self._wait_enabled()
            self.locator.scroll_into_view_if_needed(timeout=self._timeout)
            self.locator.click(force=force, timeout=self._timeout)

        self._run("click", op, retries)

    @measure("fill")
    def fill(
        self,
        text: str,
        *,
        clear: bool = True,
        retries: int = 3,
        verify: Union[bool, str] = True,
    ) -> None:
        """
        Fill the element. `verify=True` checks the value best-effort,
        `verify="strict"` retries until it sticks, `verify=False` skips it.
        """
        if verify not in (True, False, "strict"):
            raise ValueError(f"verify must be True, False or 'strict', got {verify!r}")

        def op() -> None:
            self._wait_visible()
            self._wait_enabled()
            if clear:
                self.locator.clear(timeout=self._timeout)
            self.locator.fill(text, timeout=self._timeout)
            if verify:
                self._verify_value(text, strict=verify == "strict")

        self._run("fill", op, retries)

    @measure("select option")
    def select_option(self, text: str, *, exact: bool = False, retries: int = 3) -> None:
        """Open a custom dropdown and click the option with the given accessible name."""
        def op() -> None:
            self._wait_visible()
            self.locator.click(timeout=self._timeout)
            option = self.locator.page.get_by_role("option", name=text, exact=exact)
            option.first.wait_for(state="visible", timeout=driver_timeout(self.option_timeout_ms))
            option.first.click(timeout=self._timeout)

        self._run("select option", op, retries)

    @measure("hover")
    def hover(self, *, retries: int = 2) -> None:
        def op() -> None:
            self._wait_visible()
            self.locator.scroll_into_view_if_needed(timeout=self._timeout)
            self.locator.hover(timeout=self._timeout)

        self._run("hover", op, retries)

    # ------------- State & reads -------------

    def wait_for_state(self, state: str = "visible", timeout_ms: Optional[int] = None) -> None:
        if state not in ELEMENT_STATES:
            raise ValueError(f"unknown element state {state!r}; expected one of {', '.join(ELEMENT_STATES)}")
        timeout = self.timeout_ms if timeout_ms is None else timeout_ms
        if state == "enabled":
            self._wait_enabled(timeout)
        elif state == "disabled":
            wait_for(lambda: self.locator.is_disabled(), timeout, description=f"{self.label} disabled")
        else:
            self.locator.wait_for(state=state, timeout=driver_timeout(timeout))

    def get_text(self) -> str:
        return self.locator.text_content(timeout=self._timeout) or ""

    def get_attribute(self, name: str) -> Optional[str]:
        return self.locator.get_attribute(name, timeout=self._timeout)

    def is_visible(self) -> bool:
        try:
            return self.locator.is_visible()
        except PlaywrightError:
            return False
