"""Shared fixtures: fake agents are Python scripts placed at dist/cli.js."""

import sys
import textwrap
from pathlib import Path

import pytest

from agent_testkit.harness import TestHarness


@pytest.fixture
def make_agent(tmp_path):
    """Create an agent directory whose entry point runs the given Python source."""

    def _make(source: str, name: str = "development-agent") -> Path:
        agent_dir = tmp_path / name
        (agent_dir / "dist").mkdir(parents=True)
        (agent_dir / "dist" / "cli.js").write_text(textwrap.dedent(source), encoding="utf-8")
        return agent_dir

    return _make


@pytest.fixture
def make_harness():
    """Build a harness that launches the entry point with this interpreter."""

    def _make(agent_dir: Path, **kwargs) -> TestHarness:
        return TestHarness(agent_dir, command=[sys.executable], **kwargs)

    return _make
