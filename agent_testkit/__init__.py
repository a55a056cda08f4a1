"""
Black-box test kit for generated CLI agents.

Main components:
- harness: Spawns an agent process per query and captures its response
- assertions: Declarative checks evaluated against response text
- token_tracker: Token budget ledger shared across a run
- runner: Provider x template suites over the loaded fixtures
- cli: The agent-testkit command

Quick start:
    from agent_testkit import TestHarness, run_assertions, all_passed
    from agent_testkit.models import Assertion

    harness = TestHarness(agent_dir, timeout=30000)
    response = harness.query("What can you help me with?")
    results = run_assertions(response.text, [Assertion("notEmpty")])
    assert all_passed(results)
"""

from .assertions import all_passed, format_results, run_assertion, run_assertions
from .harness import TestHarness
from .token_tracker import BUDGET_LEVELS, TokenTracker

__all__ = [
    'BUDGET_LEVELS',
    'TestHarness',
    'TokenTracker',
    'all_passed',
    'format_results',
    'run_assertion',
    'run_assertions',
]
