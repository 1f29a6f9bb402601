# ui_resilience/cli.py
from __future__ import annotations

"""Command-line interface
------------------------
Inspect the effective configuration, list and validate element descriptor
files, and render healing reports saved by a test run.
"""

import json
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console

from ui_resilience.core.descriptor_loader import find_yaml_files, load_descriptor_file
from ui_resilience.reporting.healing import render_report
from ui_resilience.utils.config import get_settings
from ui_resilience.utils.logger import set_log_level


# -------- helpers --------


def _echo_json(obj) -> None:
    click.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _resolve_paths(paths: List[str]) -> List[Path]:
    return [Path(p).resolve() for p in paths]


# -------- CLI root --------


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL from settings",
)
@click.option("--color/--no-color", default=None, help="Force-enable/disable colorized console output")
@click.version_option(package_name="ui-resilience")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str], color: Optional[bool]):
    settings = get_settings()
    if log_level:
        set_log_level(log_level.upper())
    use_color = settings.COLORIZED_OUTPUT if color is None else color
    ctx.obj = {"console": Console(no_color=not use_color)}


# -------- commands --------


@cli.command("config")
def cmd_config():
    """Print effective configuration (after .env & env vars)."""
    _echo_json(get_settings().model_dump(mode="json"))


@cli.command("list")
@click.option(
    "--dir", "descriptors_dir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=lambda: str(get_settings().DESCRIPTORS_DIR),
    show_default=True,
    help="Directory containing element descriptor YAML files",
)
@click.option("--recursive/--no-recursive", default=True, show_default=True)
@click.option("--page", "filter_page", type=str, default=None, help="Only show this page key")
def cmd_list(descriptors_dir: str, recursive: bool, filter_page: Optional[str]):
    """List declared elements per page."""
    rows = []
    for fp in find_yaml_files(Path(descriptors_dir), recursive=recursive):
        try:
            pages = load_descriptor_file(fp)
        except Exception:
            # skip invalid files here; use `validate` for details
            continue
        for page in pages:
            if filter_page and page.page != filter_page:
                continue
            for el in page.elements:
                rows.append((fp, page.page, el))

    if not rows:
        click.echo("No elements found.")
        return

    click.echo(f"Found {len(rows)} element(s):\n")
    for fp, page_key, el in rows:
        kind = el.descriptor.element_kind.value
        click.echo(f" - [{page_key}] {el.name} ({kind}, {len(el.fallbacks)} fallbacks)  \"{el.descriptor.purpose}\"  <- {fp}")


@cli.command("validate")
@click.argument("targets", nargs=-1, required=False)
@click.option("--dir", "descriptors_dir", type=click.Path(file_okay=False, dir_okay=True, exists=True),
              help="Validate all descriptor files under this directory")
@click.option("--recursive/--no-recursive", default=True, show_default=True)
def cmd_validate(targets: List[str], descriptors_dir: Optional[str], recursive: bool):
    """Validate descriptor files or a directory (supports multi-doc YAML)."""
    paths: list[Path] = []
    if targets:
        for p in _resolve_paths(targets):
            if p.is_dir():
                paths.extend(find_yaml_files(p, recursive=True))
            else:
                paths.append(p)
    elif descriptors_dir:
        paths.extend(find_yaml_files(Path(descriptors_dir), recursive=recursive))
    else:
        click.echo("Provide file(s) or --dir to validate.")
        sys.exit(2)

    ok = True
    for fp in paths:
        try:
            for page in load_descriptor_file(fp):
                hintless = [el.name for el in page.elements if not el.descriptor.has_semantic_hints()]
                note = f"; no healing hints: {', '.join(hintless)}" if hintless else ""
                click.echo(f"OK  {fp}  ->  [{page.page}] {len(page.elements)} element(s){note}")
        except Exception as e:
            ok = False
            click.echo(f"ERR {fp}  ->  {e}")

    sys.exit(0 if ok else 1)


@cli.command("report")
@click.argument("path", type=click.Path(dir_okay=False, exists=True))
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the summary as JSON instead of tables")
@click.pass_context
def cmd_report(ctx: click.Context, path: str, as_json: bool):
    """Render a healing report JSON written by a test run."""
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        click.echo(f"ERR {path}  ->  {e}")
        sys.exit(1)

    if not isinstance(payload, dict) or "summary" not in payload:
        click.echo(f"ERR {path}  ->  not a healing report (missing 'summary')")
        sys.exit(1)

    if as_json:
        _echo_json(payload["summary"])
        return
    render_report(payload, ctx.obj["console"])


def main() -> None:
    cli(prog_name="ui-resilience")


if __name__ == "__main__":
    main()
