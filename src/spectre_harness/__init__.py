"""Suite orchestration harness for Spectre node dev and zombie networks."""

from __future__ import annotations

from .errors import (
    CaseFailure,
    ContextClosed,
    DuplicateSuiteId,
    ErrorCode,
    HarnessError,
    HookFailure,
    ProvisionConflict,
    ProvisionTimeout,
    TeardownFailure,
)
from .registry import SuiteRegistry, describe_suite
from .types import FoundationKind, Hooks, SuiteDeclaration, SuiteState, TestCase

__all__ = [
    "CaseFailure",
    "ContextClosed",
    "DuplicateSuiteId",
    "ErrorCode",
    "FoundationKind",
    "HarnessError",
    "HookFailure",
    "Hooks",
    "ProvisionConflict",
    "ProvisionTimeout",
    "SuiteDeclaration",
    "SuiteRegistry",
    "SuiteState",
    "TeardownFailure",
    "TestCase",
    "describe_suite",
]

__version__ = "0.1.0"
