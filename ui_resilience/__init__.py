# ui_resilience/__init__.py
"""
ui-resilience
-------------
Self-healing element resolution for Playwright tests: a primary locator,
explicit fallbacks and a priority-ordered semantic strategy chain, plus
retried actions and a report of everything that had to be healed.
"""

from .errors import (
    ElementResolutionError,
    HealingDisabled,
    ResilienceError,
    ResolutionExhausted,
    RetryExhausted,
    ValueNotApplied,
)
from .reporting.healing import HealingEvent, HealingReporter, get_healing_reporter
from .selectors.descriptor import AriaRole, ElementDescriptor, ElementKind, TextPattern
from .selectors.locator import LocatorOptions, ResilientLocator
from .selectors.strategy import StrategyChainResolver
from .core.actions import ResilientElement
from .utils.timing import retry_with_backoff, retry_with_fixed_delay

__version__ = "0.1.0"

__all__ = [
    "ResilienceError",
    "ElementResolutionError",
    "ResolutionExhausted",
    "HealingDisabled",
    "RetryExhausted",
    "ValueNotApplied",
    "HealingEvent",
    "HealingReporter",
    "get_healing_reporter",
    "AriaRole",
    "ElementDescriptor",
    "ElementKind",
    "TextPattern",
    "LocatorOptions",
    "ResilientLocator",
    "StrategyChainResolver",
    "ResilientElement",
    "retry_with_backoff",
    "retry_with_fixed_delay",
]
