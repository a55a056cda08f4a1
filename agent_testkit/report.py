"""Console summary and the ReportData value handed to report writers."""

import json
import webbrowser
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .models import SuiteResult, TokenReport
from .token_tracker import TokenTracker

console = Console()

ERROR_PREVIEW = 100


@dataclass
class ReportSummary:
    total: int
    passed: int
    failed: int
    skipped: int
    pass_rate: str
    duration: str


@dataclass
class ReportData:
    timestamp: str
    summary: ReportSummary
    token_usage: TokenReport
    suites: List[SuiteResult]


def format_duration(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    return f"{ms / 60000:.1f}m"


def build_report(suites: List[SuiteResult], tracker: TokenTracker) -> ReportData:
    total = sum(s.total for s in suites)
    passed = sum(s.passed for s in suites)
    summary = ReportSummary(
        total=total,
        passed=passed,
        failed=sum(s.failed for s in suites),
        skipped=sum(s.skipped for s in suites),
        pass_rate=f"{passed / total * 100:.0f}%" if total else "0%",
        duration=format_duration(sum(s.duration for s in suites)),
    )
    return ReportData(
        timestamp=datetime.now(timezone.utc).isoformat(),
        summary=summary,
        token_usage=tracker.report(),
        suites=suites,
    )


def _json_default(obj):
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    return str(obj)


def report_to_json(report: ReportData) -> str:
    return json.dumps(asdict(report), indent=2, default=_json_default)


def save_report(report: ReportData, reports_dir: Path) -> Path:
    """Write the report as latest.json in reports_dir."""
    reports_dir = Path(reports_dir)
    reports_dir.mkdir(parents=True, exist_ok=True)
    json_path = reports_dir / "latest.json"
    json_path.write_text(report_to_json(report), encoding="utf-8")
    console.print(f"\n[green]✓[/green] JSON Report: {json_path}")
    return json_path


def open_report(path: Path) -> None:
    webbrowser.open(Path(path).resolve().as_uri())


def print_summary(suites: List[SuiteResult], tracker: TokenTracker) -> None:
    """Print per-suite results, failing tests and token usage."""
    console.print()
    console.rule("[bold]TEST SUMMARY[/bold]")

    table = Table(show_header=True)
    table.add_column("", width=1)
    table.add_column("Suite", style="cyan")
    table.add_column("Status", style="dim")
    table.add_column("Passed", style="green", justify="right")
    table.add_column("Failed", style="red", justify="right")
    table.add_column("Skipped", style="yellow", justify="right")
    table.add_column("Duration", justify="right")

    for suite in suites:
        table.add_row(
            "✓" if suite.failed == 0 else "✗",
            f"{suite.provider}/{suite.template}",
            suite.status.value,
            f"{suite.passed}/{suite.total}",
            str(suite.failed),
            str(suite.skipped),
            format_duration(suite.duration),
        )
    console.print(table)

    for suite in suites:
        failing = [t for t in suite.tests if not t.passed]
        if not failing:
            continue
        console.print(f"\n[red]Failed tests in {suite.provider}/{suite.template}:[/red]")
        for test in failing:
            error = (test.error or "")[:ERROR_PREVIEW]
            console.print(f"  - {escape(test.name)}: {escape(error)}")

    total = sum(s.total for s in suites)
    passed = sum(s.passed for s in suites)
    failed = sum(s.failed for s in suites)
    skipped = sum(s.skipped for s in suites)
    console.print(f"\n[bold]TOTAL:[/bold] {passed}/{total} passed | {failed} failed | {skipped} skipped")

    console.print()
    console.print(escape(tracker.format_report()))
