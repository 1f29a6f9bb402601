import json
from pathlib import Path
import textwrap

from click.testing import CliRunner

from ui_resilience.cli import cli
from ui_resilience.reporting.healing import HealingEvent, HealingReporter


def write_multi_doc_yaml(tmp_path: Path) -> Path:
    y = textwrap.dedent(
        """
        page: login
        elements:
          - name: submit
            primary: "#login-submit"
            descriptor:
              purpose: Login Button
              element_kind: button
              accessible_role: button
              text_patterns: ["Sign in"]
          - name: banner
            primary: ".banner"
            descriptor:
              purpose: Promo Banner
        ---
        page: jobs
        elements:
          - name: create
            primary: "#create-job"
            fallbacks: ["button.create"]
            descriptor:
              purpose: Create Job Button
              text_patterns: ["Create job"]
        """
    )
    p = tmp_path / "pages.yaml"
    p.write_text(y, encoding="utf-8")
    return p


def write_report(tmp_path: Path) -> Path:
    r = HealingReporter()
    for strategy in ("text", "text", "role-with-text"):
        r.add_event(HealingEvent("Submit Button", "button", strategy, 'button "Submit"'))
    return r.save(tmp_path / "healing.json")


def test_cli_list_with_multi_doc(tmp_path: Path):
    write_multi_doc_yaml(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["list", "--dir", str(tmp_path), "--no-recursive"])
    assert result.exit_code == 0
    assert "Found 3 element(s)" in result.output
    assert "[jobs] create (custom, 1 fallbacks)" in result.output


def test_cli_list_filter_by_page(tmp_path: Path):
    write_multi_doc_yaml(tmp_path)
    result = CliRunner().invoke(cli, ["list", "--dir", str(tmp_path), "--page", "jobs"])
    assert result.exit_code == 0
    assert "Found 1 element(s)" in result.output


def test_cli_validate_with_dir(tmp_path: Path):
    write_multi_doc_yaml(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["validate", "--dir", str(tmp_path), "--no-recursive"])
    assert result.exit_code == 0
    # One OK line per document
    assert result.output.count("OK  ") == 2
    assert "no healing hints: banner" in result.output


def test_cli_validate_reports_errors(tmp_path: Path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("page: login\nelements:\n  - name: x\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["validate", str(bad)])
    assert result.exit_code == 1
    assert "ERR " in result.output


def test_cli_validate_without_targets():
    result = CliRunner().invoke(cli, ["validate"])
    assert result.exit_code == 2


def test_cli_config_prints_settings():
    result = CliRunner().invoke(cli, ["config"])
    assert result.exit_code == 0
    assert '"ENABLE_HEALING"' in result.output
    assert '"PURE_ROLE_AMBIGUITY_LIMIT"' in result.output


def test_cli_report_renders_tables(tmp_path: Path):
    path = write_report(tmp_path)
    result = CliRunner().invoke(cli, ["--no-color", "report", str(path)])
    assert result.exit_code == 0
    assert "Self-healing report" in result.output
    assert "Submit Button" in result.output


def test_cli_report_json(tmp_path: Path):
    path = write_report(tmp_path)
    result = CliRunner().invoke(cli, ["report", str(path), "--json"])
    assert result.exit_code == 0
    assert '"total_healed": 3' in result.output


def test_cli_report_rejects_other_json(tmp_path: Path):
    other = tmp_path / "other.json"
    other.write_text(json.dumps({"hello": "world"}), encoding="utf-8")
    result = CliRunner().invoke(cli, ["report", str(other)])
    assert result.exit_code == 1
    assert "not a healing report" in result.output
