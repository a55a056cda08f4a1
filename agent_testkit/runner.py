"""Run orchestration: provider x template suites over the loaded fixtures.

Everything runs sequentially, one agent process at a time, so the token
ledger stays exact and the console log reads in order.

For each (provider, template) pair:
1. Resolve the agent directory (skip the suite if it is missing)
2. Build the agent if needed (one failing "build" test on error)
3. Check provider credentials (skip the suite if absent)
4. Run every fixture test through the harness, consulting the token budget
5. Stop all remaining suites once the budget is exceeded
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from rich.console import Console
from rich.markup import escape

from .assertions import all_passed, format_results, run_assertions
from .fixtures import DEFAULT_CATEGORIES, FIXTURES_DIR
from .harness import DEFAULT_TIMEOUT_MS, TestHarness
from .models import (
    BuildError,
    ChatMessage,
    HistoryMessage,
    SuiteResult,
    SuiteStatus,
    TestCase,
    TestFixture,
    TestKind,
    TestResult,
)
from .setup import check_api_keys, credential_env, ensure_built, resolve_agent_dir
from .token_tracker import BUDGET_LEVELS, DEFAULT_ESTIMATED_TOKENS, TokenTracker

console = Console()

DEFAULT_PROVIDERS = ["claude", "openai"]

# Representative templates, one per domain
REPRESENTATIVE_TEMPLATES = [
    "development-agent",
    "business-agent",
    "research-ops-agent",
]


@dataclass(frozen=True)
class RunConfig:
    """Configuration snapshot for one run, built once from CLI arguments."""

    providers: Tuple[str, ...] = tuple(DEFAULT_PROVIDERS)
    templates: Tuple[str, ...] = tuple(REPRESENTATIVE_TEMPLATES)
    categories: Tuple[str, ...] = tuple(DEFAULT_CATEGORIES)
    budget: int = BUDGET_LEVELS["full"]
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    verbose: bool = False
    quick: bool = False
    open_report: bool = True
    agents_dir: Path = field(default_factory=lambda: Path.cwd() / "GENERATED_AGENTS")
    fixtures_dir: Path = FIXTURES_DIR
    reports_dir: Path = field(default_factory=lambda: Path.cwd() / "reports")


HarnessFactory = Callable[..., TestHarness]


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _estimate(test: TestCase) -> int:
    """Ledger cost of a test; an explicit 0 is charged as 0."""
    if test.estimated_tokens is None:
        return DEFAULT_ESTIMATED_TOKENS
    return test.estimated_tokens


def _run_multi_turn(test: TestCase, harness: TestHarness) -> Tuple[bool, Optional[str], List[ChatMessage]]:
    """Send turns in order, stopping at the first turn whose assertions fail."""
    chat: List[ChatMessage] = []
    history: List[HistoryMessage] = []

    for i, turn in enumerate(test.turns, 1):
        response = harness.query(turn.prompt, list(history))
        chat.extend(response.chat)
        history.append(HistoryMessage(role="user", content=turn.prompt))
        history.append(HistoryMessage(role="assistant", content=response.text))

        if turn.assertions:
            results = run_assertions(response.text, turn.assertions)
            if not all_passed(results):
                return False, f"Turn {i}: {format_results(results)}", chat

    return True, None, chat


def run_test(
    test: TestCase,
    category: str,
    harness: TestHarness,
    tracker: TokenTracker,
) -> TestResult:
    """Execute one fixture test and record it in the ledger.

    Harness errors (timeouts, spawn failures) become a failed result; they
    never propagate. The tracker is charged exactly once either way.
    """
    estimated = _estimate(test)
    start = time.monotonic()

    try:
        if test.kind is TestKind.MULTI:
            console.print(f"    🔄 {escape(test.name)}...")
            passed, error, chat = _run_multi_turn(test, harness)
            result = TestResult(
                name=test.name,
                category=category,
                passed=passed,
                duration=_elapsed_ms(start),
                error=error,
                chat=chat,
            )
        else:
            console.print(f"    🔹 {escape(test.name)}...")
            response = harness.query(test.prompt)
            results = run_assertions(response.text, test.assertions)
            passed = all_passed(results)
            summary = format_results(results)
            result = TestResult(
                name=test.name,
                category=category,
                passed=passed,
                duration=_elapsed_ms(start),
                error=None if passed else summary,
                assertions=summary,
                chat=response.chat,
            )
    except Exception as e:
        message = str(e) or type(e).__name__
        console.print(f"    [red]✗[/red] {escape(test.name)} (error: {escape(message)})")
        return TestResult(
            name=test.name,
            category=category,
            passed=False,
            duration=_elapsed_ms(start),
            error=message,
        )
    finally:
        tracker.record(test.name, estimated)

    mark = "[green]✓[/green]" if result.passed else "[red]✗[/red]"
    console.print(f"    {mark} {escape(test.name)} ({result.duration}ms)")
    return result


def _skipped_suite(provider: str, template: str, status: SuiteStatus, skipped: int) -> SuiteResult:
    return SuiteResult(provider=provider, template=template, status=status, skipped=skipped)


def run_test_suite(
    provider: str,
    template: str,
    fixtures: Dict[str, TestFixture],
    tracker: TokenTracker,
    config: RunConfig,
    harness_factory: HarnessFactory = TestHarness,
) -> SuiteResult:
    """Run all fixtures against one generated agent."""
    start = time.monotonic()
    agent_dir = resolve_agent_dir(config.agents_dir, provider, template)

    if not agent_dir.is_dir():
        console.print(f"  [yellow]⚠[/yellow] Agent not found: {agent_dir}")
        return _skipped_suite(provider, template, SuiteStatus.MISSING_AGENT, len(fixtures))

    console.print("  📦 Ensuring agent is built...")
    try:
        ensure_built(agent_dir, config.verbose)
    except BuildError as e:
        console.print("  [red]✗ Build failed[/red]")
        return SuiteResult(
            provider=provider,
            template=template,
            status=SuiteStatus.BUILD_FAILED,
            total=1,
            failed=1,
            duration=_elapsed_ms(start),
            tests=[TestResult(name="build", category="setup", passed=False, duration=0, error=str(e))],
        )

    available, key = check_api_keys(provider)
    if not available:
        console.print(f"  [yellow]⚠[/yellow] Missing API key for {provider}")
        return _skipped_suite(provider, template, SuiteStatus.MISSING_CREDENTIALS, len(fixtures))

    harness = harness_factory(
        agent_dir,
        timeout=config.timeout_ms,
        env=credential_env(provider, key),
        verbose=config.verbose,
    )

    results: List[TestResult] = []
    skipped = 0
    try:
        for category, fixture in fixtures.items():
            console.print(f"  📋 {category}")
            ran_in_category = 0

            for test in fixture.tests:
                estimated = _estimate(test)
                if not tracker.can_proceed(estimated):
                    console.print(f"    ⏸  {escape(test.name)} (skipped - budget)")
                    skipped += 1
                    continue

                # Quick mode: at most one test per category
                if config.quick and ran_in_category >= 1:
                    skipped += 1
                    continue

                results.append(run_test(test, category, harness, tracker))
                ran_in_category += 1
    finally:
        harness.kill()

    passed = sum(1 for r in results if r.passed)
    return SuiteResult(
        provider=provider,
        template=template,
        status=SuiteStatus.COMPLETED,
        total=len(results),
        passed=passed,
        failed=len(results) - passed,
        skipped=skipped,
        duration=_elapsed_ms(start),
        tests=results,
    )


def run_suites(
    config: RunConfig,
    fixtures: Dict[str, TestFixture],
    tracker: TokenTracker,
    harness_factory: HarnessFactory = TestHarness,
) -> List[SuiteResult]:
    """Run every provider/template combination in configuration order.

    Stops before the next combination once the tracker is over budget.
    """
    suites: List[SuiteResult] = []
    for provider in config.providers:
        for template in config.templates:
            console.print(f"\n🚀 Testing {provider}/{template}")
            suites.append(run_test_suite(
                provider, template, fixtures, tracker, config, harness_factory=harness_factory,
            ))

            if tracker.is_over_budget():
                console.print("\n[yellow]⚠ Token budget exhausted, stopping tests[/yellow]")
                return suites
    return suites


def total_failed(suites: List[SuiteResult]) -> int:
    return sum(s.failed for s in suites)
