# ui_resilience/selectors/__init__.py
"""
Selectors package
-----------------
Element descriptors, the semantic strategy chain and the resilient locator
that falls back from a primary locator to both.
"""

from .descriptor import AriaRole, ElementDescriptor, ElementKind, PatternMode, TextPattern
from .strategy import ResolutionOutcome, StrategyChainResolver, describe_locator
from .locator import LocatorOptions, ResilientLocator

__all__ = [
    "AriaRole",
    "ElementDescriptor",
    "ElementKind",
    "PatternMode",
    "TextPattern",
    "ResolutionOutcome",
    "StrategyChainResolver",
    "describe_locator",
    "LocatorOptions",
    "ResilientLocator",
]
