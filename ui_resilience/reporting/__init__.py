# ui_resilience/reporting/__init__.py
"""
Reporting package
-----------------
Healing events, summaries and their console/JSON renderings.
"""

from .healing import (
    HealingEvent,
    HealingReporter,
    HealingSummary,
    get_healing_reporter,
    render_report,
)

__all__ = [
    "HealingEvent",
    "HealingReporter",
    "HealingSummary",
    "get_healing_reporter",
    "render_report",
]
