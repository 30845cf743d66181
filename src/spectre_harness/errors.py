"""Harness error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ErrorCategory(IntEnum):
    SUCCESS = 0x00
    REGISTRY = 0x01
    PROVISION = 0x02
    LIFECYCLE = 0x03
    TEARDOWN = 0x04
    CLIENT = 0x05
    CONFIG = 0x06
    INTERNAL = 0xFF


class ErrorCode(IntEnum):
    SUCCESS = 0x0000

    # Registry
    DUPLICATE_SUITE_ID = 0x0100
    UNKNOWN_FOUNDATION = 0x0101
    INVALID_DECLARATION = 0x0102
    SUITE_IMPORT_FAILED = 0x0103

    # Provisioning
    PROVISION_TIMEOUT = 0x0200
    PROVISION_CONFLICT = 0x0201
    NODE_EXITED = 0x0202
    BINARY_NOT_FOUND = 0x0203

    # Lifecycle
    HOOK_FAILURE = 0x0300
    CASE_FAILURE = 0x0301
    CASE_TIMEOUT = 0x0302
    CONTEXT_CLOSED = 0x0303

    # Teardown
    TEARDOWN_FAILURE = 0x0400

    # Client
    RPC_TRANSPORT = 0x0500
    RPC_ERROR = 0x0501

    # Config
    INVALID_CONFIG = 0x0600

    # Internal
    INTERNAL_ERROR = 0xFF00
    UNKNOWN = 0xFFFF

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.value >> 8)


@dataclass(frozen=True)
class HarnessError(Exception):
    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen (Python 3.13 contextlib compat).
_EXCEPTION_ATTRS = frozenset(
    ("__traceback__", "__context__", "__cause__", "__suppress_context__", "__notes__")
)
_frozen_setattr = HarnessError.__setattr__


def _harness_error_setattr(self: HarnessError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


HarnessError.__setattr__ = _harness_error_setattr  # type: ignore[method-assign]


class DuplicateSuiteId(HarnessError):
    def __init__(self, suite_id: str) -> None:
        super().__init__(ErrorCode.DUPLICATE_SUITE_ID, f"suite id {suite_id!r} already registered")


class UnknownFoundation(HarnessError):
    def __init__(self, value: object) -> None:
        super().__init__(ErrorCode.UNKNOWN_FOUNDATION, f"unsupported foundation {value!r}")


class ProvisionError(HarnessError):
    """Base for failures while standing up a foundation."""


class ProvisionTimeout(ProvisionError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.PROVISION_TIMEOUT, message)


class ProvisionConflict(ProvisionError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.PROVISION_CONFLICT, message)


class NodeExited(ProvisionError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.NODE_EXITED, message)


class HookFailure(HarnessError):
    def __init__(self, hook: str, detail: str) -> None:
        super().__init__(ErrorCode.HOOK_FAILURE, f"{hook} failed: {detail}")


class CaseFailure(HarnessError):
    def __init__(self, case: str, detail: str, code: ErrorCode = ErrorCode.CASE_FAILURE) -> None:
        super().__init__(code, f"{case}: {detail}")


class TeardownFailure(HarnessError):
    def __init__(self, detail: str) -> None:
        super().__init__(ErrorCode.TEARDOWN_FAILURE, detail)


class ContextClosed(HarnessError):
    def __init__(self, attribute: str) -> None:
        super().__init__(
            ErrorCode.CONTEXT_CLOSED,
            f"context used after its foundation was torn down (accessed {attribute!r})",
        )


class RpcError(HarnessError):
    def __init__(self, message: str, code: ErrorCode = ErrorCode.RPC_ERROR) -> None:
        super().__init__(code, message)


class ConfigError(HarnessError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_CONFIG, message)


def describe(exc: BaseException) -> str:
    """Render an exception the way it appears in reports."""
    if isinstance(exc, HarnessError):
        return str(exc)
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__
