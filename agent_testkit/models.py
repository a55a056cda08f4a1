"""Data types shared by the harness, the assertion engine and the runner."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union


class AgentTestError(Exception):
    """Base class for errors raised by the agent test kit."""


class AgentTimeoutError(AgentTestError, TimeoutError):
    """The agent process did not exit within the configured timeout."""


class BuildError(AgentTestError):
    """Installing dependencies or building the agent failed."""


class FixtureError(AgentTestError, ValueError):
    """A fixture file is missing, unreadable or malformed."""


class TestKind(Enum):
    """Discriminant for fixture test cases."""

    __test__ = False

    SINGLE = "single"
    MULTI = "multi"


class SuiteStatus(Enum):
    """Terminal state of one (provider, template) suite."""

    MISSING_AGENT = "missing_agent"
    MISSING_CREDENTIALS = "missing_credentials"
    BUILD_FAILED = "build_failed"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Assertion:
    """A declarative check applied to a response's text.

    ``value`` holds scalar arguments (text, pattern or length) and
    ``values`` the set used by containsAny / containsAll.
    """

    type: str
    value: Optional[Union[str, int]] = None
    values: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AssertionResult:
    passed: bool
    assertion: Assertion
    message: str
    actual: Optional[str] = None


@dataclass
class ChatMessage:
    role: str  # user | assistant | system | tool
    content: str
    timestamp: Optional[datetime] = None
    tool_name: Optional[str] = None


@dataclass(frozen=True)
class HistoryMessage:
    """Reduced message shape written to the agent's stdin for multi-turn context."""

    role: str  # user | assistant
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ToolInvocation:
    name: str


@dataclass
class AgentResponse:
    text: str
    duration: int
    exit_code: Optional[int]
    stderr: Optional[str] = None
    chat: List[ChatMessage] = field(default_factory=list)


@dataclass(frozen=True)
class Turn:
    prompt: str
    assertions: Tuple[Assertion, ...] = ()


@dataclass(frozen=True)
class TestCase:
    """A fixture test case, single-turn (``prompt``) or multi-turn (``turns``)."""

    __test__ = False

    name: str
    kind: TestKind
    prompt: Optional[str] = None
    turns: Tuple[Turn, ...] = ()
    assertions: Tuple[Assertion, ...] = ()
    estimated_tokens: Optional[int] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class TestFixture:
    __test__ = False

    category: str
    description: str
    tests: Tuple[TestCase, ...]


@dataclass
class TestResult:
    __test__ = False

    name: str
    category: str
    passed: bool
    duration: int
    error: Optional[str] = None
    assertions: Optional[str] = None
    chat: Optional[List[ChatMessage]] = None


@dataclass
class SuiteResult:
    provider: str
    template: str
    status: SuiteStatus
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration: int = 0
    tests: List[TestResult] = field(default_factory=list)


@dataclass(frozen=True)
class LedgerEntry:
    name: str
    estimated: int
    actual: Optional[int] = None


@dataclass
class TokenReport:
    budget: int
    used: int
    remaining: int
    over_budget: bool
    tests: List[LedgerEntry] = field(default_factory=list)
