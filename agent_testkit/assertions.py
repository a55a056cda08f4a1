"""
Assertion engine for agent responses.

Assertions are declarative checks loaded from fixture files. Each one is
evaluated against the cleaned response text and produces an
AssertionResult; a failing assertion is a result, never an exception.

Text matching is case-insensitive. Length checks use the raw length.

Usage:
    results = run_assertions(response.text, test.assertions)
    if not all_passed(results):
        print(format_results(results))
"""

import re
from typing import Iterable, List, Optional

from .models import Assertion, AssertionResult

# Heuristic only: a refusal phrased some other way is not detected.
REFUSAL_PATTERNS = (
    "i cannot",
    "i can't",
    "i am unable",
    "i'm unable",
    "i don't have access",
    "i do not have access",
    "not allowed",
    "not permitted",
)

PREVIEW_LENGTH = 200


def _preview(response: str) -> str:
    """First 200 characters of the response, marked when truncated."""
    suffix = "..." if len(response) > PREVIEW_LENGTH else ""
    return response[:PREVIEW_LENGTH] + suffix


def is_refusal(response: str) -> bool:
    """Check if the response contains a known refusal phrase."""
    normalized = response.lower()
    return any(p in normalized for p in REFUSAL_PATTERNS)


def _result(passed: bool, assertion: Assertion, ok: str, fail: str,
            actual: Optional[str]) -> AssertionResult:
    return AssertionResult(
        passed=passed,
        assertion=assertion,
        message=ok if passed else fail,
        actual=actual,
    )


def run_assertion(response: str, assertion: Assertion) -> AssertionResult:
    """Run a single assertion against a response.

    Args:
        response: Cleaned agent output
        assertion: Assertion to evaluate

    Returns:
        AssertionResult; unknown assertion types fail instead of raising
    """
    normalized = response.lower()
    kind = assertion.type
    value = assertion.value

    if kind == "notEmpty":
        length = len(response.strip())
        return _result(length > 0, assertion,
                       "Response is not empty", "Response is empty",
                       f"Length: {length}")

    if kind == "minLength":
        length = len(response)
        return _result(length >= value, assertion,
                       f"Response length ({length}) >= {value}",
                       f"Response length ({length}) < {value}",
                       f"Length: {length}")

    if kind == "maxLength":
        length = len(response)
        return _result(length <= value, assertion,
                       f"Response length ({length}) <= {value}",
                       f"Response length ({length}) > {value}",
                       f"Length: {length}")

    if kind == "containsText":
        found = str(value).lower() in normalized
        return _result(found, assertion,
                       f'Response contains "{value}"',
                       f'Response does not contain "{value}"',
                       _preview(response))

    if kind == "containsAny":
        match = next((v for v in assertion.values if v.lower() in normalized), None)
        return _result(match is not None, assertion,
                       f'Response contains "{match}"',
                       f"Response does not contain any of: {', '.join(assertion.values)}",
                       _preview(response))

    if kind == "containsAll":
        missing = [v for v in assertion.values if v.lower() not in normalized]
        return _result(not missing, assertion,
                       "Response contains all required values",
                       f"Response missing: {', '.join(missing)}",
                       _preview(response))

    if kind == "matchesPattern":
        try:
            matches = re.search(str(value), response, re.IGNORECASE) is not None
        except re.error as e:
            return AssertionResult(False, assertion,
                                   f"Invalid pattern /{value}/: {e}", None)
        return _result(matches, assertion,
                       f"Response matches pattern /{value}/",
                       f"Response does not match pattern /{value}/",
                       _preview(response))

    if kind == "notContains":
        absent = str(value).lower() not in normalized
        return _result(absent, assertion,
                       f'Response does not contain "{value}"',
                       f'Response unexpectedly contains "{value}"',
                       _preview(response))

    if kind == "isRefusal":
        return _result(is_refusal(response), assertion,
                       "Response is a refusal", "Response is not a refusal",
                       _preview(response))

    if kind == "isNotRefusal":
        return _result(not is_refusal(response), assertion,
                       "Response is not a refusal", "Response is a refusal",
                       _preview(response))

    return AssertionResult(False, assertion, f"Unknown assertion type: {kind}", None)


def run_assertions(response: str, assertions: Iterable[Assertion]) -> List[AssertionResult]:
    """Run all assertions against a response, preserving order."""
    return [run_assertion(response, a) for a in assertions]


def all_passed(results: Iterable[AssertionResult]) -> bool:
    """Check if every assertion passed."""
    return all(r.passed for r in results)


def format_results(results: Iterable[AssertionResult]) -> str:
    """Format assertion results for display, one line per assertion."""
    return "\n".join(
        f"  {'✓' if r.passed else '✗'} {r.message}" for r in results
    )
