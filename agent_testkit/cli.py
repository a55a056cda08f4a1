#!/usr/bin/env python3
"""Agent Test Runner - automated black-box tests for generated CLI agents.

Examples:
  agent-testkit                                  # Full test suite
  agent-testkit --provider claude
  agent-testkit --quick
  agent-testkit --template development-agent --verbose
  agent-testkit --no-open                        # Save report without opening

Exit codes: 0 all tests passed, 1 a test failed, 2 the runner itself failed.
"""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from .fixtures import DEFAULT_CATEGORIES, FIXTURES_DIR, available_categories, load_fixtures
from .models import FixtureError
from .report import build_report, open_report, print_summary, save_report
from .runner import (
    DEFAULT_PROVIDERS,
    REPRESENTATIVE_TEMPLATES,
    RunConfig,
    run_suites,
    total_failed,
)
from .setup import PROVIDER_KEYS
from .token_tracker import BUDGET_LEVELS, TokenTracker

console = Console()


def build_config(
    providers=(),
    templates=(),
    categories=(),
    budget=None,
    timeout=60000,
    quick=False,
    full=False,
    verbose=False,
    open_report=True,
    agents_dir=None,
    fixtures_dir=None,
    reports_dir=None,
) -> RunConfig:
    """Turn parsed CLI values into a RunConfig.

    --quick lowers the budget to the quick preset unless --budget is given.
    """
    if budget is None:
        budget = BUDGET_LEVELS["quick"] if quick and not full else BUDGET_LEVELS["full"]

    defaults = RunConfig()
    return RunConfig(
        providers=tuple(providers) or tuple(DEFAULT_PROVIDERS),
        templates=tuple(templates) or tuple(REPRESENTATIVE_TEMPLATES),
        categories=tuple(categories) or tuple(DEFAULT_CATEGORIES),
        budget=budget,
        timeout_ms=timeout,
        verbose=verbose,
        quick=quick,
        open_report=open_report,
        agents_dir=Path(agents_dir) if agents_dir else defaults.agents_dir,
        fixtures_dir=Path(fixtures_dir) if fixtures_dir else FIXTURES_DIR,
        reports_dir=Path(reports_dir) if reports_dir else defaults.reports_dir,
    )


def run(config: RunConfig) -> int:
    """Run all suites for a config and return the process exit code."""
    console.rule("[bold]🧪 Agent Test Runner[/bold]")
    console.print(f"Providers:  {', '.join(config.providers)}")
    console.print(f"Templates:  {', '.join(config.templates)}")
    console.print(f"Categories: {', '.join(config.categories)}")
    console.print(f"Budget:     {config.budget} tokens")
    console.print(f"Mode:       {'Quick' if config.quick else 'Standard'}")
    console.rule()

    fixtures = load_fixtures(config.categories, config.fixtures_dir)
    if not fixtures:
        available = available_categories(config.fixtures_dir)
        hint = f" (available: {', '.join(available)})" if available else ""
        raise FixtureError(f"No test fixtures found in {config.fixtures_dir}{hint}")

    tracker = TokenTracker(config.budget)
    suites = run_suites(config, fixtures, tracker)

    print_summary(suites, tracker)
    report_path = save_report(build_report(suites, tracker), config.reports_dir)
    if config.open_report:
        open_report(report_path)

    return 1 if total_failed(suites) > 0 else 0


@click.command(epilog="Credentials are read from the environment or a local .env file.")
@click.option("--provider", "providers", multiple=True, type=click.Choice(sorted(PROVIDER_KEYS)),
              help="Provider to test (repeatable; default: claude + openai)")
@click.option("--template", "templates", multiple=True,
              help="Template to test (repeatable; default: representative set)")
@click.option("--category", "categories", multiple=True,
              help="Fixture category to run (repeatable; default: simple-chat, multi-turn, workflows)")
@click.option("--budget", type=click.IntRange(min=0), help="Token budget (default: full preset)")
@click.option("--timeout", type=click.IntRange(min=1), default=60000, show_default=True,
              help="Per-query timeout in milliseconds")
@click.option("--quick", is_flag=True, help="Run one test per category with the quick budget")
@click.option("--full", is_flag=True, help="Use the full budget preset")
@click.option("--verbose", "-v", is_flag=True, help="Show harness diagnostics and live agent output")
@click.option("--no-open", is_flag=True, help="Don't open the report in a browser")
@click.option("--agents-dir", type=click.Path(file_okay=False), envvar="AGENT_TESTKIT_AGENTS_DIR",
              help="Directory of generated agents (default: ./GENERATED_AGENTS)")
@click.option("--fixtures-dir", type=click.Path(file_okay=False), envvar="AGENT_TESTKIT_FIXTURES_DIR",
              help="Directory of fixture JSON files (default: bundled fixtures)")
@click.option("--reports-dir", type=click.Path(file_okay=False), envvar="AGENT_TESTKIT_REPORTS_DIR",
              help="Directory for report output (default: ./reports)")
def main(providers, templates, categories, budget, timeout, quick, full, verbose, no_open,
         agents_dir, fixtures_dir, reports_dir):
    """Run fixture tests against generated CLI agents."""
    load_dotenv(override=False)

    try:
        config = build_config(
            providers=providers,
            templates=templates,
            categories=categories,
            budget=budget,
            timeout=timeout,
            quick=quick,
            full=full,
            verbose=verbose,
            open_report=not no_open,
            agents_dir=agents_dir,
            fixtures_dir=fixtures_dir,
            reports_dir=reports_dir,
        )
        code = run(config)
    except Exception as e:
        console.print(f"[red]Test runner failed: {escape(str(e))}[/red]")
        code = 2

    sys.exit(code)


if __name__ == "__main__":
    main()
