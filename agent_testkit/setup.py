"""Agent directory resolution, build checks and provider credentials."""

import os
import subprocess
from pathlib import Path
from typing import Dict, Optional, Tuple

from rich.console import Console

from .harness import ENTRY_POINT
from .models import BuildError

console = Console()

PRIMARY_PROVIDER = "claude"

# One credential variable per provider
PROVIDER_KEYS = {
    "claude": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "copilot": "GITHUB_TOKEN",
}

INSTALL_COMMAND = ["npm", "install"]
BUILD_COMMAND = ["npm", "run", "build"]

# Characters of command output kept in a BuildError message
OUTPUT_TAIL = 500


def agent_dir_name(provider: str, template: str) -> str:
    """Directory name of a generated agent: the template for the primary
    provider, ``<template>-<provider>`` otherwise."""
    if provider == PRIMARY_PROVIDER:
        return template
    return f"{template}-{provider}"


def resolve_agent_dir(agents_dir: Path, provider: str, template: str) -> Path:
    return Path(agents_dir) / agent_dir_name(provider, template)


def _run_step(cmd, agent_dir: Path, verbose: bool) -> None:
    try:
        subprocess.run(
            cmd,
            cwd=str(agent_dir),
            check=True,
            capture_output=not verbose,
            text=True,
            errors="replace",
        )
    except OSError as e:
        raise BuildError(f"{' '.join(cmd)} failed for {agent_dir}: {e}") from e
    except subprocess.CalledProcessError as e:
        output = ((e.stdout or "") + (e.stderr or "")).strip()
        detail = f"\n{output[-OUTPUT_TAIL:]}" if output else ""
        raise BuildError(
            f"{' '.join(cmd)} failed for {agent_dir} (exit {e.returncode}){detail}"
        ) from e


def ensure_built(agent_dir: Path, verbose: bool = False) -> bool:
    """Build the agent if it has no entry point yet.

    Installs dependencies first when node_modules is missing.

    Args:
        agent_dir: Generated agent directory (with package.json)
        verbose: Stream install/build output instead of capturing it

    Returns:
        True once the entry point exists

    Raises:
        BuildError: Installation or build failed, or produced no entry point
    """
    agent_dir = Path(agent_dir)
    entry_point = agent_dir / ENTRY_POINT

    if entry_point.exists():
        if verbose:
            console.print(f"[dim]Agent already built: {agent_dir}[/dim]")
        return True

    if not (agent_dir / "node_modules").exists():
        if verbose:
            console.print("[dim]Installing dependencies...[/dim]")
        _run_step(INSTALL_COMMAND, agent_dir, verbose)

    if verbose:
        console.print("[dim]Building agent...[/dim]")
    _run_step(BUILD_COMMAND, agent_dir, verbose)

    if not entry_point.exists():
        raise BuildError(f"Build did not produce {entry_point}")
    return True


def check_api_keys(provider: str) -> Tuple[bool, Optional[str]]:
    """Check if the provider's credential is set in the environment.

    Returns:
        Tuple of (available, key)
    """
    key = os.environ.get(PROVIDER_KEYS[provider])
    return bool(key), key


def credential_env(provider: str, key: str) -> Dict[str, str]:
    """Environment variables forwarded to the agent process for a provider."""
    return {PROVIDER_KEYS[provider]: key}
