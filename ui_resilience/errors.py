# ui_resilience/errors.py
"""
Exception types raised by element resolution and resilient actions.
"""

from __future__ import annotations

from typing import Optional, Sequence


class ResilienceError(RuntimeError):
    """Base exception for the package."""
    pass


class ElementResolutionError(ResilienceError):
    """
    A described element could not be resolved to a visible handle.

    Attributes:
        purpose: the descriptor's human label
        strategies_attempted: strategy names visited, in order
    """

    def __init__(self, message: str, *, purpose: str, strategies_attempted: Sequence[str] = ()):
        super().__init__(message)
        self.purpose = purpose
        self.strategies_attempted = list(strategies_attempted)


class ResolutionExhausted(ElementResolutionError):
    """Primary locator, every explicit fallback and every healing strategy failed."""
    pass


class HealingDisabled(ElementResolutionError):
    """Primary and fallbacks failed and healing was switched off for this locator."""
    pass


class RetryExhausted(ResilienceError):
    """
    A retried action ran out of attempts.
    The underlying failure is kept on `last_error` and chained as `__cause__`.
    """

    def __init__(self, action: str, attempts: int, last_error: BaseException, *, purpose: Optional[str] = None):
        target = f' on "{purpose}"' if purpose else ""
        super().__init__(f"{action}{target} failed after {attempts} attempt(s): {last_error}")
        self.action = action
        self.attempts = attempts
        self.last_error = last_error
        self.purpose = purpose


class ValueNotApplied(ResilienceError):
    """An input did not report the value that was just filled into it."""

    def __init__(self, expected: str, actual: Optional[str]):
        super().__init__(f"value not applied: expected {expected!r}, found {actual!r}")
        self.expected = expected
        self.actual = actual


__all__ = [
    "ResilienceError",
    "ElementResolutionError",
    "ResolutionExhausted",
    "HealingDisabled",
    "RetryExhausted",
    "ValueNotApplied",
]
