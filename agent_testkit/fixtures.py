"""Fixture loading and validation.

Each category is one JSON file named ``<category>.json``:

    {
      "category": "simple-chat",
      "description": "...",
      "tests": [
        {"name": "...", "prompt": "...", "assertions": [...], "estimatedTokens": 300},
        {"name": "...", "turns": [{"prompt": "...", "assertions": [...]}], "estimatedTokens": 800}
      ]
    }

Files are validated when loaded so a malformed fixture fails the run at
startup instead of in the middle of a suite.
"""

import json
from pathlib import Path
from typing import Dict, Iterable, List

from .models import Assertion, FixtureError, TestCase, TestFixture, TestKind, Turn

FIXTURES_DIR = Path(__file__).parent / "fixture_files"

DEFAULT_CATEGORIES = ["simple-chat", "multi-turn", "workflows"]

TEXT_ASSERTIONS = {"containsText", "matchesPattern", "notContains"}
LENGTH_ASSERTIONS = {"minLength", "maxLength"}
SET_ASSERTIONS = {"containsAny", "containsAll"}


def _parse_assertion(data, where: str) -> Assertion:
    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise FixtureError(f"{where}: assertion must be an object with a string 'type'")

    kind = data["type"]
    value = data.get("value")
    values = data.get("values") or []

    if kind in TEXT_ASSERTIONS and not isinstance(value, str):
        raise FixtureError(f"{where}: '{kind}' needs a string 'value'")
    if kind in LENGTH_ASSERTIONS and (not isinstance(value, int) or isinstance(value, bool)):
        raise FixtureError(f"{where}: '{kind}' needs an integer 'value'")
    if kind in SET_ASSERTIONS and (
        not isinstance(values, list) or not values or not all(isinstance(v, str) for v in values)
    ):
        raise FixtureError(f"{where}: '{kind}' needs a non-empty list of strings in 'values'")

    return Assertion(type=kind, value=value, values=tuple(values))


def _parse_assertions(items, where: str) -> tuple:
    if items is None:
        return ()
    if not isinstance(items, list):
        raise FixtureError(f"{where}: 'assertions' must be a list")
    return tuple(_parse_assertion(a, where) for a in items)


def _parse_test(data, where: str) -> TestCase:
    if not isinstance(data, dict):
        raise FixtureError(f"{where}: test must be an object")

    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise FixtureError(f"{where}: test needs a 'name'")
    where = f"{where}: test '{name}'"

    has_prompt = "prompt" in data
    has_turns = "turns" in data
    if has_prompt == has_turns:
        raise FixtureError(f"{where}: exactly one of 'prompt' or 'turns' is required")

    estimated = data.get("estimatedTokens")
    if estimated is not None and (not isinstance(estimated, int) or isinstance(estimated, bool)
                                  or estimated < 0):
        raise FixtureError(f"{where}: 'estimatedTokens' must be a non-negative integer")

    note = data.get("note")

    if has_prompt:
        if not isinstance(data["prompt"], str):
            raise FixtureError(f"{where}: 'prompt' must be a string")
        return TestCase(
            name=name,
            kind=TestKind.SINGLE,
            prompt=data["prompt"],
            assertions=_parse_assertions(data.get("assertions", []), where),
            estimated_tokens=estimated,
            note=note,
        )

    turns = data["turns"]
    if not isinstance(turns, list) or not turns:
        raise FixtureError(f"{where}: 'turns' must be a non-empty list")
    parsed = []
    for i, turn in enumerate(turns, 1):
        turn_where = f"{where} turn {i}"
        if not isinstance(turn, dict) or not isinstance(turn.get("prompt"), str):
            raise FixtureError(f"{turn_where}: turn needs a string 'prompt'")
        parsed.append(Turn(
            prompt=turn["prompt"],
            assertions=_parse_assertions(turn.get("assertions"), turn_where),
        ))
    return TestCase(
        name=name,
        kind=TestKind.MULTI,
        turns=tuple(parsed),
        estimated_tokens=estimated,
        note=note,
    )


def parse_fixture(data, source: str) -> TestFixture:
    """Validate a decoded fixture document.

    Raises:
        FixtureError: The document does not match the fixture shape
    """
    if not isinstance(data, dict):
        raise FixtureError(f"{source}: fixture must be a JSON object")
    tests = data.get("tests")
    if not isinstance(tests, list):
        raise FixtureError(f"{source}: 'tests' must be a list")

    return TestFixture(
        category=str(data.get("category", "")),
        description=str(data.get("description", "")),
        tests=tuple(_parse_test(t, source) for t in tests),
    )


def load_fixture(path: Path) -> TestFixture:
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise FixtureError(f"Could not read {path}: {e}") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FixtureError(f"{path.name} is invalid JSON: {e}") from e
    return parse_fixture(data, path.name)


def load_fixtures(categories: Iterable[str], fixtures_dir: Path = FIXTURES_DIR) -> Dict[str, TestFixture]:
    """Load fixtures for the given categories, in order.

    Categories without a file are skipped; the file stem is the category key.
    """
    fixtures: Dict[str, TestFixture] = {}
    for category in categories:
        path = Path(fixtures_dir) / f"{category}.json"
        if path.exists():
            fixtures[category] = load_fixture(path)
    return fixtures


def available_categories(fixtures_dir: Path = FIXTURES_DIR) -> List[str]:
    return sorted(p.stem for p in Path(fixtures_dir).glob("*.json"))
