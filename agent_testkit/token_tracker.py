"""Token budget tracking for cost-conscious test runs."""

import math
from typing import List, Optional

from .models import LedgerEntry, TokenReport

# Named presets; the numbers are rough guides, not behavior.
BUDGET_LEVELS = {
    "minimal": 1000,   # ~3-4 simple tests
    "quick": 2500,     # ~6-8 tests
    "standard": 5000,  # ~12-15 tests
    "full": 10000,     # full test suite
}

DEFAULT_ESTIMATED_TOKENS = 500


class TokenTracker:
    """Ledger of estimated and actual token usage against a budget.

    Usage:
        tracker = TokenTracker(BUDGET_LEVELS["quick"])
        if tracker.can_proceed(600):
            ...  # run the test
            tracker.record("greeting", 600)
    """

    def __init__(self, budget: int = BUDGET_LEVELS["standard"]):
        self._budget = budget
        self._used = 0
        self._entries: List[LedgerEntry] = []

    @property
    def budget(self) -> int:
        return self._budget

    @property
    def used(self) -> int:
        return self._used

    @property
    def entries(self) -> List[LedgerEntry]:
        return list(self._entries)

    def can_proceed(self, estimated_tokens: int) -> bool:
        """Check if a test with this estimate fits in the remaining budget."""
        return self._used + estimated_tokens <= self._budget

    def record(self, name: str, estimated: int, actual: Optional[int] = None) -> None:
        """Record usage for an attempted test; actual wins over the estimate."""
        self._entries.append(LedgerEntry(name=name, estimated=estimated, actual=actual))
        self._used += actual if actual is not None else estimated

    def remaining(self) -> int:
        return max(0, self._budget - self._used)

    def is_over_budget(self) -> bool:
        return self._used > self._budget

    def set_budget(self, budget: int) -> None:
        self._budget = budget

    def reset(self) -> None:
        """Clear the ledger for a new run. The budget is kept."""
        self._used = 0
        self._entries = []

    def report(self) -> TokenReport:
        return TokenReport(
            budget=self._budget,
            used=self._used,
            remaining=self.remaining(),
            over_budget=self.is_over_budget(),
            tests=self.entries,
        )

    def format_report(self) -> str:
        """Format the usage report for console output."""
        report = self.report()
        percentage = (report.used / report.budget * 100) if report.budget else 0.0
        status = "⚠ OVER BUDGET" if report.over_budget else "✓"

        lines = [
            "Token Usage Report",
            "-" * 40,
            f"Budget:    {report.budget:,} tokens",
            f"Used:      {report.used:,} tokens ({percentage:.1f}%)",
            f"Remaining: {report.remaining:,} tokens",
            f"Status:    {status}",
        ]
        if report.tests:
            lines.append("")
            lines.append("Per-test breakdown:")
            for entry in report.tests:
                actual = f" (actual: {entry.actual})" if entry.actual is not None else ""
                lines.append(f"  • {entry.name}: ~{entry.estimated}{actual}")
        return "\n".join(lines)


def estimate_tokens(text: str) -> int:
    """Rough token estimate, ~4 characters per token for English text."""
    return math.ceil(len(text) / 4)
