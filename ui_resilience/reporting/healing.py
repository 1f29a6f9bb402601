# ui_resilience/reporting/healing.py
from __future__ import annotations

"""Healing reporter
-------------------
Append-only, in-memory record of elements that were found by something other
than their primary locator. Summaries point at primary locators that keep
breaking so they can be rewritten.

A reporter is an ordinary object: pass one to each ResilientLocator for
isolation, or share the process default from `get_healing_reporter()`.
Appends and summaries are guarded by a lock, so one reporter can be shared
between threads.
"""

import json
import threading
from collections import Counter
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from ui_resilience.utils.config import get_settings
from ui_resilience.utils.logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class HealingEvent:
    purpose: str
    element_kind: str
    strategy_name: str
    resolved_description: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    primary_locator_failed: bool = True
    page_url: Optional[str] = None
    test_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        return d


@dataclass
class HealingSummary:
    total_healed: int
    failures_prevented: int
    strategies_used: Dict[str, int]
    elements_healed: Dict[str, List[HealingEvent]]
    recommendations: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_healed": self.total_healed,
            "failures_prevented": self.failures_prevented,
            "strategies_used": dict(self.strategies_used),
            "elements_healed": {
                purpose: [e.to_dict() for e in events]
                for purpose, events in self.elements_healed.items()
            },
            "recommendations": list(self.recommendations),
        }


def _recommend(purpose: str, events: List[HealingEvent]) -> str:
    # Counter keeps first-seen order, most_common is stable: ties go to the first strategy seen
    strategy, _ = Counter(e.strategy_name for e in events).most_common(1)[0]
    return (
        f'"{purpose}" was healed {len(events)} times. '
        f'Consider updating the primary locator to use "{strategy}" strategy.'
    )


class HealingReporter:
    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.current_test: Optional[str] = None
        self._events: List[HealingEvent] = []
        self._lock = threading.Lock()

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    def add_event(self, event: HealingEvent) -> None:
        """Append an event and log a one-line notice. No-op while disabled."""
        if not self.enabled:
            return
        if event.test_name is None and self.current_test:
            event = replace(event, test_name=self.current_test)
        with self._lock:
            self._events.append(event)
        log.info(f'HEALED: "{event.purpose}" using {event.strategy_name} -> {event.resolved_description}')

    def events(self) -> List[HealingEvent]:
        with self._lock:
            return list(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def summarize(self) -> HealingSummary:
        events = self.events()
        strategies_used: Dict[str, int] = {}
        elements_healed: Dict[str, List[HealingEvent]] = {}
        for e in events:
            strategies_used[e.strategy_name] = strategies_used.get(e.strategy_name, 0) + 1
            elements_healed.setdefault(e.purpose, []).append(e)

        recommendations = [
            _recommend(purpose, healed)
            for purpose, healed in elements_healed.items()
            if len(healed) >= 2
        ]
        return HealingSummary(
            total_healed=len(events),
            failures_prevented=sum(1 for e in events if e.primary_locator_failed),
            strategies_used=strategies_used,
            elements_healed=elements_healed,
            recommendations=recommendations,
        )

    # ---------- Rendering ----------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "summary": self.summarize().to_dict(),
            "events": [e.to_dict() for e in self.events()],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: Path | str) -> Path:
        """Write the JSON report; parent directories are created."""
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(self.to_json(), encoding="utf-8")
        log.info(f"Healing report written to {out}")
        return out

    def print_report(self, console: Optional[Console] = None) -> None:
        render_report(self.to_dict(), console)


def render_report(payload: Dict[str, Any], console: Optional[Console] = None) -> None:
    """Render a report dict (as produced by `HealingReporter.to_dict`) to the console."""
    console = console or Console(no_color=not get_settings().COLORIZED_OUTPUT)
    summary = payload.get("summary", {})
    total = summary.get("total_healed", 0)

    console.rule("Self-healing report")
    if not total:
        console.print("No elements needed healing.")
        return

    console.print(f"Total healed: {total}    Failures prevented: {summary.get('failures_prevented', total)}")

    strategies = Table(title="Strategies used")
    strategies.add_column("Strategy", style="cyan")
    strategies.add_column("Count", style="yellow", justify="right")
    for name, count in sorted(summary.get("strategies_used", {}).items(), key=lambda kv: -kv[1]):
        strategies.add_row(name, str(count))
    console.print(strategies)

    elements = Table(title="Elements healed")
    elements.add_column("Purpose", style="cyan")
    elements.add_column("Times", style="yellow", justify="right")
    elements.add_column("Strategies")
    for purpose, events in summary.get("elements_healed", {}).items():
        names = sorted({e.get("strategy_name", "?") for e in events})
        elements.add_row(purpose, str(len(events)), ", ".join(names))
    console.print(elements)

    recommendations = summary.get("recommendations", [])
    if recommendations:
        console.print("Recommendations:", style="bold")
        for r in recommendations:
            console.print(f"  - {r}", markup=False)


# ---------- Process default ----------

_default_lock = threading.Lock()
_default_reporter: Optional[HealingReporter] = None


def get_healing_reporter() -> HealingReporter:
    """Process-wide reporter, created on first use from settings."""
    global _default_reporter
    if _default_reporter is None:
        with _default_lock:
            if _default_reporter is None:
                _default_reporter = HealingReporter(enabled=get_settings().HEALING_REPORT_ENABLED)
    return _default_reporter


__all__ = [
    "HealingEvent",
    "HealingSummary",
    "HealingReporter",
    "render_report",
    "get_healing_reporter",
]
