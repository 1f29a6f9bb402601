# ui_resilience/pytest_plugin.py
"""
pytest integration for healing reports.

Enable it from a conftest.py:

    pytest_plugins = ["ui_resilience.pytest_plugin"]

Healing events are stamped with the running test's node id, a summary is
printed at the end of the session when anything healed, and the JSON report
is written to --healing-report (or HEALING_REPORT_FILE).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from ui_resilience.reporting.healing import HealingReporter, get_healing_reporter
from ui_resilience.utils.config import get_settings
from ui_resilience.utils.logger import bind, get_logger, unbind

log = get_logger(__name__)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("ui-resilience")
    group.addoption(
        "--healing-report",
        action="store",
        default=None,
        metavar="PATH",
        help="Write the self-healing report JSON to PATH at the end of the session",
    )


def _report_path(config: pytest.Config) -> Optional[Path]:
    opt = config.getoption("--healing-report", default=None)
    if opt:
        return Path(opt)
    return get_settings().HEALING_REPORT_FILE


@pytest.fixture
def healing_reporter() -> HealingReporter:
    """The shared reporter that ResilientLocator instances report to by default."""
    return get_healing_reporter()


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_call(item: pytest.Item):
    reporter = get_healing_reporter()
    reporter.current_test = item.nodeid
    bind(test=item.nodeid)
    try:
        yield
    finally:
        reporter.current_test = None
        unbind("test")


def pytest_terminal_summary(terminalreporter, exitstatus, config: pytest.Config) -> None:
    reporter = get_healing_reporter()
    summary = reporter.summarize()
    if summary.total_healed:
        terminalreporter.section("self-healing")
        terminalreporter.write_line(
            f"{summary.total_healed} element resolution(s) healed, "
            f"{len(summary.elements_healed)} distinct element(s)"
        )
        for name, count in summary.strategies_used.items():
            terminalreporter.write_line(f"  {name}: {count}")
        for rec in summary.recommendations:
            terminalreporter.write_line(f"  - {rec}")

    path = _report_path(config)
    if path is not None:
        try:
            reporter.save(path)
        except OSError as e:
            log.warning(f"Could not write healing report to {path}: {e!r}")
