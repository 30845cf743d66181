"""
Suite lifecycle execution.

Each suite moves through PENDING -> PROVISIONING -> RUNNING_HOOKS ->
RUNNING_CASES -> TEARING_DOWN and ends PASSED, FAILED or ERRORED. Teardown
runs for every foundation that was provisioned, including when the run is
cancelled. Suites left over after ``stop_on_first_failure`` are reported
SKIPPED without being provisioned.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Iterable, Optional

from .config import HarnessConfig
from .context import Context
from .errors import (
    CaseFailure,
    ErrorCode,
    HarnessError,
    HookFailure,
    TeardownFailure,
    describe,
)
from .provisioner import Foundation, Provisioner
from .reporter import CaseResult, ReportGenerator, RunReport, SuiteResult
from .types import CaseOutcome, Hooks, Step, SuiteDeclaration, SuiteState, TestCase

logger = logging.getLogger(__name__)


async def invoke(step: Step, context: Context) -> None:
    """Call a hook or body, awaiting it if it is a coroutine function."""
    result = step(context)
    if inspect.isawaitable(result):
        await result


async def invoke_body(step: Step, context: Context) -> None:
    """Like :func:`invoke`, but plain functions run in a worker thread.

    That keeps the event loop free, so the case timeout fires even while a
    synchronous body blocks. A timed-out thread keeps running until it
    returns; only the runner moves on.
    """
    if inspect.iscoroutinefunction(step):
        await step(context)
        return
    result = await asyncio.to_thread(step, context)
    if inspect.isawaitable(result):
        await result


def _elapsed_ms(start: float) -> float:
    return (time.time() - start) * 1000


class LifecycleRunner:
    """Runs one suite against a foundation it provisions and tears down."""

    def __init__(self, provisioner: Provisioner, config: HarnessConfig):
        self.provisioner = provisioner
        self.config = config

    def _transition(self, result: SuiteResult, state: SuiteState) -> None:
        logger.debug(f"[{result.suite_id}] {result.state.value} -> {state.value}")
        result.state = state

    async def run(self, declaration: SuiteDeclaration) -> SuiteResult:
        result = SuiteResult(
            suite_id=declaration.id,
            title=declaration.title,
            foundation=declaration.foundation,
            state=SuiteState.PENDING,
        )
        logger.info(f"Running suite: {declaration.id} - {declaration.title}")
        start = time.time()

        self._transition(result, SuiteState.PROVISIONING)
        try:
            foundation = await self.provisioner.provision(
                declaration.foundation, label=declaration.id
            )
        except HarnessError as e:
            result.error = describe(e)
            self._transition(result, SuiteState.ERRORED)
            result.execution_time_ms = _elapsed_ms(start)
            return result
        except Exception as e:
            logger.exception(f"Unexpected error provisioning {declaration.id}")
            result.error = describe(e)
            self._transition(result, SuiteState.ERRORED)
            result.execution_time_ms = _elapsed_ms(start)
            return result

        context = Context(foundation, declaration.id)
        outcome = SuiteState.ERRORED
        try:
            outcome = await self._run_hooks_and_cases(declaration, context, result)
        finally:
            context.close()
            self._transition(result, SuiteState.TEARING_DOWN)
            await self._teardown(foundation, result, failed=outcome is not SuiteState.PASSED)

        self._transition(result, outcome)
        result.execution_time_ms = _elapsed_ms(start)
        logger.info(f"Suite {declaration.id}: {outcome.value.upper()}")
        return result

    async def _teardown(self, foundation: Foundation, result: SuiteResult, failed: bool) -> None:
        try:
            await self.provisioner.teardown(foundation, failed=failed)
        except TeardownFailure as e:
            logger.error(f"[{result.suite_id}] {e}")
            result.teardown_errors.append(e.message)
        except Exception as e:
            logger.exception(f"[{result.suite_id}] unexpected teardown error")
            result.teardown_errors.append(describe(e))

    async def _run_hooks_and_cases(
        self,
        declaration: SuiteDeclaration,
        context: Context,
        result: SuiteResult,
    ) -> SuiteState:
        hooks = declaration.hooks
        self._transition(result, SuiteState.RUNNING_HOOKS)

        if hooks.before_all is not None:
            try:
                await invoke(hooks.before_all, context)
            except Exception as e:
                result.error = describe(HookFailure("before_all", describe(e)))
                logger.error(f"[{declaration.id}] {result.error}")
                return SuiteState.ERRORED

        try:
            cases = self._collect_cases(declaration, context)
        except Exception as e:
            result.error = describe(HookFailure("test_cases", describe(e)))
            logger.error(f"[{declaration.id}] {result.error}")
            return SuiteState.ERRORED

        self._transition(result, SuiteState.RUNNING_CASES)
        stopped = False
        for case in cases:
            if stopped or case.skip:
                result.case_results.append(CaseResult(
                    name=case.name,
                    id=case.id,
                    outcome=CaseOutcome.SKIPPED,
                    execution_time_ms=0.0,
                ))
                logger.info(f"  [SKIP] {case.name}")
                continue

            case_result = await self._run_case(case, hooks, context)
            result.case_results.append(case_result)

            status = "PASS" if case_result.passed else "FAIL"
            logger.info(f"  [{status}] {case.name}")
            if not case_result.passed:
                logger.info(f"         {case_result.error}")
                if self.config.stop_on_first_failure:
                    stopped = True

        hook_failed = False
        if hooks.after_all is not None:
            try:
                await invoke(hooks.after_all, context)
            except Exception as e:
                result.error = describe(HookFailure("after_all", describe(e)))
                logger.error(f"[{declaration.id}] {result.error}")
                hook_failed = True

        all_passed = all(
            c.outcome in (CaseOutcome.PASSED, CaseOutcome.SKIPPED)
            for c in result.case_results
        )
        if all_passed and not hook_failed:
            return SuiteState.PASSED
        return SuiteState.FAILED

    def _collect_cases(self, declaration: SuiteDeclaration, context: Context) -> list[TestCase]:
        cases = list(declaration.test_cases(context))
        for i, case in enumerate(cases):
            if not isinstance(case, TestCase):
                raise TypeError(
                    f"test case #{i} is {type(case).__name__}, expected TestCase"
                )
        return cases

    async def _run_case(self, case: TestCase, hooks: Hooks, context: Context) -> CaseResult:
        start = time.time()
        outcome = CaseOutcome.PASSED
        error: Optional[str] = None

        if hooks.before_each is not None:
            try:
                await invoke(hooks.before_each, context)
            except Exception as e:
                return CaseResult(
                    name=case.name,
                    id=case.id,
                    outcome=CaseOutcome.ERRORED,
                    execution_time_ms=_elapsed_ms(start),
                    error=describe(HookFailure("before_each", describe(e))),
                )

        timeout = case.timeout_s if case.timeout_s is not None else self.config.case_timeout_s
        try:
            await asyncio.wait_for(invoke_body(case.body, context), timeout)
        except (AssertionError, CaseFailure) as e:
            outcome, error = CaseOutcome.FAILED, describe(e)
        except asyncio.TimeoutError:
            outcome = CaseOutcome.ERRORED
            error = describe(CaseFailure(
                case.name, f"timed out after {timeout}s", ErrorCode.CASE_TIMEOUT
            ))
        except Exception as e:
            outcome, error = CaseOutcome.ERRORED, describe(e)

        if hooks.after_each is not None:
            try:
                await invoke(hooks.after_each, context)
            except Exception as e:
                hook_error = describe(HookFailure("after_each", describe(e)))
                if outcome is CaseOutcome.PASSED:
                    outcome, error = CaseOutcome.ERRORED, hook_error
                else:
                    error = f"{error}; {hook_error}"

        return CaseResult(
            name=case.name,
            id=case.id,
            outcome=outcome,
            execution_time_ms=_elapsed_ms(start),
            error=error,
        )


class HarnessRunner:
    """Runs suites sequentially and aggregates a report."""

    def __init__(self, config: HarnessConfig, provisioner: Optional[Provisioner] = None):
        self.config = config
        self.provisioner = provisioner or Provisioner(config)
        self.lifecycle = LifecycleRunner(self.provisioner, config)
        self.reporter = ReportGenerator(config.result_dir)

    def select(self, declarations: Iterable[SuiteDeclaration]) -> list[SuiteDeclaration]:
        """Apply the configured foundation filter."""
        if self.config.foundations is None:
            return list(declarations)
        wanted = set(self.config.foundations)
        return [d for d in declarations if d.foundation.value in wanted]

    async def run_all(self, declarations: Iterable[SuiteDeclaration]) -> RunReport:
        start_time = time.time()

        selected = self.select(declarations)
        suite_results = []
        for i, declaration in enumerate(selected):
            result = await self.lifecycle.run(declaration)
            suite_results.append(result)

            if not result.ok and self.config.stop_on_first_failure:
                logger.info("Stopping after first failed suite")
                suite_results.extend(self._not_run(d) for d in selected[i + 1:])
                break

        return self.reporter.generate_report(
            suite_results=suite_results,
            execution_time_ms=_elapsed_ms(start_time),
        )

    @staticmethod
    def _not_run(declaration: SuiteDeclaration) -> SuiteResult:
        logger.info(f"  [SKIP] suite {declaration.id}")
        return SuiteResult(
            suite_id=declaration.id,
            title=declaration.title,
            foundation=declaration.foundation,
            state=SuiteState.SKIPPED,
            error="not run: stopped after a failed suite",
        )
