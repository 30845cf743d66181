from __future__ import annotations

import contextlib

import pytest

from spectre_harness.errors import (
    ErrorCategory,
    ErrorCode,
    HarnessError,
    HookFailure,
    ProvisionError,
    ProvisionTimeout,
    describe,
)


def test_error_rendering() -> None:
    err = ProvisionTimeout("dev@9900 not ready after 100ms")
    assert str(err) == "PROVISION_TIMEOUT(0x0200): dev@9900 not ready after 100ms"
    assert isinstance(err, ProvisionError)
    assert err.code.category is ErrorCategory.PROVISION


def test_errors_are_frozen_but_raisable() -> None:
    err = HookFailure("before_all", "boom")
    with pytest.raises(AttributeError):
        err.message = "changed"  # type: ignore[misc]

    with contextlib.suppress(HarnessError):
        try:
            raise ValueError("inner")
        except ValueError as inner:
            raise err from inner
    assert isinstance(err.__cause__, ValueError)


def test_describe() -> None:
    assert describe(AssertionError("1 != 2")) == "AssertionError: 1 != 2"
    assert describe(AssertionError()) == "AssertionError"
    assert describe(HarnessError(ErrorCode.UNKNOWN, "x")) == "UNKNOWN(0xffff): x"
