"""Tests for agent_testkit/cli.py."""

import json

from click.testing import CliRunner

from agent_testkit import runner
from agent_testkit.cli import build_config, main
from agent_testkit.models import BuildError
from agent_testkit.token_tracker import BUDGET_LEVELS


def invoke(*args):
    return CliRunner().invoke(main, ["--no-open", *args])


def test_build_config_defaults():
    config = build_config()
    assert config.providers == ("claude", "openai")
    assert config.templates == ("development-agent", "business-agent", "research-ops-agent")
    assert config.categories == ("simple-chat", "multi-turn", "workflows")
    assert config.budget == BUDGET_LEVELS["full"]
    assert config.timeout_ms == 60000
    assert not config.quick


def test_quick_lowers_budget_unless_given():
    assert build_config(quick=True).budget == BUDGET_LEVELS["quick"]
    assert build_config(quick=True, budget=1234).budget == 1234
    assert build_config(quick=True, full=True).budget == BUDGET_LEVELS["full"]


def test_no_fixtures_exits_with_2(tmp_path):
    result = invoke("--fixtures-dir", str(tmp_path), "--reports-dir", str(tmp_path / "reports"))
    assert result.exit_code == 2
    assert "Test runner failed" in result.output


def test_missing_agents_are_skipped_and_report_is_saved(tmp_path):
    reports = tmp_path / "reports"
    result = invoke(
        "--provider", "claude",
        "--template", "development-agent",
        "--category", "simple-chat",
        "--agents-dir", str(tmp_path / "agents"),
        "--reports-dir", str(reports),
    )

    assert result.exit_code == 0, result.output
    assert "Agent not found" in result.output

    report = json.loads((reports / "latest.json").read_text())
    assert report["summary"]["skipped"] == 1
    assert report["summary"]["pass_rate"] == "0%"
    assert report["suites"][0]["status"] == "missing_agent"
    assert report["token_usage"]["used"] == 0


def test_failed_suite_exits_with_1(tmp_path, monkeypatch):
    (tmp_path / "agents" / "development-agent").mkdir(parents=True)

    def broken_build(agent_dir, verbose=False):
        raise BuildError("npm run build failed")

    monkeypatch.setattr(runner, "ensure_built", broken_build)
    result = invoke(
        "--provider", "claude",
        "--template", "development-agent",
        "--agents-dir", str(tmp_path / "agents"),
        "--reports-dir", str(tmp_path / "reports"),
    )

    assert result.exit_code == 1, result.output
    assert "build" in result.output


def test_rejects_unknown_provider():
    result = invoke("--provider", "llama")
    assert result.exit_code == 2
