"""Process harness for generated CLI agents.

Each query spawns the agent's built entry point as a fresh process with the
prompt as its only positional argument. Multi-turn context is passed as a
JSON list of {role, content} messages on stdin. stdout and stderr are
collected while the process runs; a timeout kills the process and raises
AgentTimeoutError.
"""

import codecs
import json
import os
import re
import subprocess
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from .models import (
    AgentResponse,
    AgentTimeoutError,
    ChatMessage,
    HistoryMessage,
    ToolInvocation,
)

console = Console()

ENTRY_POINT = Path("dist") / "cli.js"
DEFAULT_TIMEOUT_MS = 60000

# Seconds to wait for the output readers after the process is gone
READER_JOIN_TIMEOUT = 5.0

ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")
SPINNER_PATTERN = re.compile(r"[⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏]")
THINKING_PATTERN = re.compile(r"thinking\.{1,3}", re.IGNORECASE)
BLANK_LINES_PATTERN = re.compile(r"\n{3,}")
TOOL_PATTERN = re.compile(r"🔧 Using tool: (\w+)")


def clean_output(output: str) -> str:
    """Strip ANSI codes, spinners and filler from raw agent output."""
    output = ANSI_PATTERN.sub("", output)
    output = output.replace("\r", "")
    output = SPINNER_PATTERN.sub("", output)
    output = THINKING_PATTERN.sub("", output)
    output = BLANK_LINES_PATTERN.sub("\n\n", output)
    return output.strip()


def extract_tool_invocations(raw_output: str) -> List[ToolInvocation]:
    """Find tool-use markers in raw (uncleaned) agent output."""
    return [ToolInvocation(name=m.group(1)) for m in TOOL_PATTERN.finditer(raw_output)]


def _pump(stream, chunks: List[str], echo) -> None:
    """Read a child pipe until EOF, decoding incrementally."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    try:
        while True:
            data = stream.read1(4096)
            if not data:
                break
            text = decoder.decode(data)
            chunks.append(text)
            if echo is not None:
                echo.write(text)
                echo.flush()
        tail = decoder.decode(b"", final=True)
        if tail:
            chunks.append(tail)
    finally:
        stream.close()


def _feed(stream, payload: bytes) -> None:
    """Write stdin payload and close; the agent may exit without reading it."""
    try:
        if payload:
            stream.write(payload)
    except OSError:
        pass
    finally:
        try:
            stream.close()
        except OSError:
            pass


class TestHarness:
    """Spawns a generated agent CLI and captures its response.

    The harness owns at most one child process at a time. It never builds the
    agent (see setup.ensure_built) and never retries.

    Usage:
        harness = TestHarness(agent_dir, timeout=30000, env={"ANTHROPIC_API_KEY": key})
        response = harness.query("Hello")
        print(response.text)
    """

    __test__ = False

    def __init__(
        self,
        agent_dir: Path,
        timeout: int = DEFAULT_TIMEOUT_MS,
        env: Optional[Dict[str, str]] = None,
        verbose: bool = False,
        command: Sequence[str] = ("node",),
    ):
        self.agent_dir = Path(agent_dir)
        self.timeout = timeout
        self.env = dict(env or {})
        self.verbose = verbose
        self.command = list(command)
        self._process: Optional[subprocess.Popen] = None

    @property
    def entry_point(self) -> Path:
        return self.agent_dir / ENTRY_POINT

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def _build_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(self.env)
        # Keep output parseable: no colors, no interactive prompts
        env.update({"CI": "true", "FORCE_COLOR": "0", "NO_COLOR": "1"})
        return env

    def query(self, prompt: str, history: Optional[List[HistoryMessage]] = None) -> AgentResponse:
        """Send one prompt to the agent and wait for its response.

        Args:
            prompt: The user query
            history: Prior user/assistant messages for multi-turn context

        Returns:
            AgentResponse with cleaned text, duration (ms), exit code, stderr
            and chat transcript. A non-zero exit code is not raised.

        Raises:
            AgentTimeoutError: The agent did not exit within the timeout
            OSError: The agent process could not be spawned
        """
        history = history or []
        started_at = datetime.now()
        start = time.monotonic()
        cmd = self.command + [str(self.entry_point), prompt]

        if self.verbose:
            console.print(f"[dim]harness:[/dim] spawning {escape(' '.join(cmd))}")
            if history:
                console.print(f"[dim]harness:[/dim] with {len(history)} history messages")

        child = subprocess.Popen(
            cmd,
            cwd=str(self.agent_dir),
            env=self._build_env(),
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        self._process = child

        stdout_chunks: List[str] = []
        stderr_chunks: List[str] = []
        payload = json.dumps([h.to_dict() for h in history]).encode("utf-8") if history else b""
        workers = [
            threading.Thread(target=_feed, args=(child.stdin, payload), daemon=True),
            threading.Thread(
                target=_pump,
                args=(child.stdout, stdout_chunks, sys.stdout if self.verbose else None),
                daemon=True,
            ),
            threading.Thread(
                target=_pump,
                args=(child.stderr, stderr_chunks, sys.stderr if self.verbose else None),
                daemon=True,
            ),
        ]
        for worker in workers:
            worker.start()

        try:
            returncode = child.wait(timeout=self.timeout / 1000)
        except subprocess.TimeoutExpired:
            child.kill()
            child.wait()
            raise AgentTimeoutError(f"Agent timed out after {self.timeout}ms") from None
        finally:
            for worker in workers:
                worker.join(READER_JOIN_TIMEOUT)
            self._process = None

        duration = int((time.monotonic() - start) * 1000)
        raw_stdout = "".join(stdout_chunks)
        stderr = "".join(stderr_chunks)
        text = clean_output(raw_stdout)

        chat = [
            ChatMessage(role="user", content=prompt, timestamp=started_at),
            ChatMessage(role="assistant", content=text, timestamp=datetime.now()),
        ]
        for tool in extract_tool_invocations(raw_stdout):
            chat.append(ChatMessage(
                role="tool",
                content=f"Tool invoked: {tool.name}",
                timestamp=datetime.now(),
                tool_name=tool.name,
            ))

        return AgentResponse(
            text=text,
            duration=duration,
            # Negative return codes mean the agent died from a signal
            exit_code=returncode if returncode >= 0 else None,
            stderr=stderr or None,
            chat=chat,
        )

    def multi_turn(self, prompts: List[str]) -> List[AgentResponse]:
        """Run prompts in order as independent queries.

        Stops after the first response with a non-zero exit code.
        """
        responses = []
        for prompt in prompts:
            response = self.query(prompt)
            responses.append(response)
            if response.exit_code not in (0, None):
                break
        return responses

    def kill(self) -> None:
        """Kill any running agent process. Safe to call when idle."""
        if self._process is not None:
            if self._process.poll() is None:
                self._process.kill()
            self._process = None
