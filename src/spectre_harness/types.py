"""Core types for the Spectre test harness.

A suite is declared once as a :class:`SuiteDeclaration`; its test cases are
produced by a factory that receives the live :class:`~.context.Context` once
the suite's foundation is up.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Sequence, Union

from .errors import UnknownFoundation

if TYPE_CHECKING:
    from .context import Context

# Bodies and hooks may be plain functions or coroutine functions.
Step = Callable[["Context"], Union[None, Awaitable[None]]]
CaseFactory = Callable[["Context"], Sequence["TestCase"]]


class FoundationKind(Enum):
    DEV = "dev"
    ZOMBIE = "zombie"

    @classmethod
    def parse(cls, value: Any) -> "FoundationKind":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise UnknownFoundation(value)


class SuiteState(Enum):
    PENDING = "pending"
    PROVISIONING = "provisioning"
    RUNNING_HOOKS = "running_hooks"
    RUNNING_CASES = "running_cases"
    TEARING_DOWN = "tearing_down"
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"
    # Never started because the run stopped early.
    SKIPPED = "skipped"


class CaseOutcome(Enum):
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class TestCase:
    name: str
    body: Step
    id: Optional[str] = None
    skip: bool = False
    timeout_s: Optional[float] = None

    # Keep pytest from collecting this class when imported into test modules.
    __test__ = False


@dataclass(frozen=True)
class Hooks:
    before_all: Optional[Step] = None
    before_each: Optional[Step] = None
    after_each: Optional[Step] = None
    after_all: Optional[Step] = None


@dataclass(frozen=True)
class SuiteDeclaration:
    id: str
    title: str
    foundation: FoundationKind
    test_cases: CaseFactory
    hooks: Hooks = field(default_factory=Hooks)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("suite id must be a non-empty string")
        if not callable(self.test_cases):
            raise ValueError(f"suite {self.id!r}: test_cases must be callable")
        object.__setattr__(self, "foundation", FoundationKind.parse(self.foundation))
