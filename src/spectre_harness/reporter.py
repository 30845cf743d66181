"""
Report generation for harness runs.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .types import CaseOutcome, FoundationKind, SuiteState


@dataclass
class CaseResult:
    """Result of a single test case."""
    name: str
    outcome: CaseOutcome
    execution_time_ms: float
    id: Optional[str] = None
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.outcome is CaseOutcome.PASSED


@dataclass
class SuiteResult:
    """Result of one suite run against its own foundation."""
    suite_id: str
    title: str
    foundation: FoundationKind
    state: SuiteState
    execution_time_ms: float = 0.0
    case_results: list[CaseResult] = field(default_factory=list)
    error: Optional[str] = None
    teardown_errors: list[str] = field(default_factory=list)

    def _count(self, outcome: CaseOutcome) -> int:
        return sum(1 for c in self.case_results if c.outcome is outcome)

    @property
    def total_cases(self) -> int:
        return len(self.case_results)

    @property
    def passed_cases(self) -> int:
        return self._count(CaseOutcome.PASSED)

    @property
    def failed_cases(self) -> int:
        return self._count(CaseOutcome.FAILED)

    @property
    def errored_cases(self) -> int:
        return self._count(CaseOutcome.ERRORED)

    @property
    def skipped_cases(self) -> int:
        return self._count(CaseOutcome.SKIPPED)

    @property
    def executed_cases(self) -> int:
        return self.total_cases - self.skipped_cases

    @property
    def pass_rate(self) -> float:
        if self.executed_cases == 0:
            return 0.0
        return self.passed_cases / self.executed_cases * 100

    @property
    def ok(self) -> bool:
        return self.state is SuiteState.PASSED


@dataclass
class RunReport:
    """Complete harness run report."""
    timestamp: str
    total_suites: int
    passed_suites: int
    failed_suites: int
    errored_suites: int
    total_cases: int
    total_passed: int
    total_failed: int
    total_errored: int
    total_skipped: int
    execution_time_ms: float
    suite_results: list[SuiteResult]
    skipped_suites: int = 0

    @property
    def ok(self) -> bool:
        return self.failed_suites == 0 and self.errored_suites == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


class ReportGenerator:
    """Generates harness run reports."""

    def __init__(self, result_dir: str):
        """
        Initialize report generator.

        Args:
            result_dir: Directory to write reports to
        """
        self.result_dir = result_dir

    def generate_report(
        self,
        suite_results: list[SuiteResult],
        execution_time_ms: float,
    ) -> RunReport:
        """
        Aggregate suite results into a run report.

        Args:
            suite_results: Results from all suites, in execution order
            execution_time_ms: Total execution time

        Returns:
            RunReport object
        """
        def states(state: SuiteState) -> int:
            return sum(1 for s in suite_results if s.state is state)

        return RunReport(
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            total_suites=len(suite_results),
            passed_suites=states(SuiteState.PASSED),
            failed_suites=states(SuiteState.FAILED),
            errored_suites=states(SuiteState.ERRORED),
            skipped_suites=states(SuiteState.SKIPPED),
            total_cases=sum(s.total_cases for s in suite_results),
            total_passed=sum(s.passed_cases for s in suite_results),
            total_failed=sum(s.failed_cases for s in suite_results),
            total_errored=sum(s.errored_cases for s in suite_results),
            total_skipped=sum(s.skipped_cases for s in suite_results),
            execution_time_ms=execution_time_ms,
            suite_results=suite_results,
        )

    def write_json_report(
        self,
        report: RunReport,
        filename: str = "harness-report.json",
    ) -> str:
        """
        Write report as JSON file.

        Args:
            report: RunReport to write
            filename: Output filename

        Returns:
            Path to written file
        """
        os.makedirs(self.result_dir, exist_ok=True)
        path = os.path.join(self.result_dir, filename)

        with open(path, "w") as f:
            json.dump(self.report_to_dict(report), f, indent=2)

        return path

    def write_summary(
        self,
        report: RunReport,
        filename: str = "harness-summary.txt",
    ) -> str:
        """
        Write human-readable summary.

        Returns:
            Path to written file
        """
        os.makedirs(self.result_dir, exist_ok=True)
        path = os.path.join(self.result_dir, filename)

        with open(path, "w") as f:
            f.write("\n".join(self.summary_lines(report)))

        return path

    def summary_lines(self, report: RunReport) -> list[str]:
        lines = [
            "=" * 60,
            "Spectre Harness Report",
            "=" * 60,
            f"Timestamp: {report.timestamp}",
            "",
            "Suites:",
            f"  Total:    {report.total_suites}",
            f"  Passed:   {report.passed_suites}",
            f"  Failed:   {report.failed_suites}",
            f"  Errored:  {report.errored_suites}",
            f"  Skipped:  {report.skipped_suites}",
            "",
            "Cases:",
            f"  Total:    {report.total_cases}",
            f"  Passed:   {report.total_passed}",
            f"  Failed:   {report.total_failed}",
            f"  Errored:  {report.total_errored}",
            f"  Skipped:  {report.total_skipped}",
            f"  Duration: {report.execution_time_ms:.2f}ms",
            "",
            "Suite Results:",
        ]

        for suite in report.suite_results:
            lines.append(
                f"  [{suite.state.value.upper()}] {suite.suite_id} "
                f"({suite.foundation.value}): "
                f"{suite.passed_cases}/{suite.executed_cases} "
                f"({suite.pass_rate:.1f}%)"
            )
            if suite.error:
                lines.append(f"      Error: {suite.error}")
            for case in suite.case_results:
                if case.outcome in (CaseOutcome.FAILED, CaseOutcome.ERRORED):
                    lines.append(f"      - {case.name} [{case.outcome.value}]: {case.error}")
            for teardown_error in suite.teardown_errors:
                lines.append(f"      Teardown: {teardown_error}")

        lines.append("")
        lines.append("=" * 60)
        return lines

    def print_summary(self, report: RunReport) -> None:
        """Print summary to console."""
        print("\n" + "=" * 60)
        print("Spectre Harness Results")
        print("=" * 60)
        for suite in report.suite_results:
            print(f"  [{suite.state.value.upper():7}] {suite.suite_id}: {suite.title}")
        print()
        print(f"Suites:  {report.passed_suites}/{report.total_suites} passed")
        print(f"Cases:   {report.total_passed} passed, {report.total_failed} failed, "
              f"{report.total_errored} errored, {report.total_skipped} skipped")
        print()

        problems = [
            (suite, case)
            for suite in report.suite_results
            for case in suite.case_results
            if case.outcome in (CaseOutcome.FAILED, CaseOutcome.ERRORED)
        ]
        if problems:
            print("FAILURES:")
            for suite, case in problems[:10]:  # Show first 10
                print(f"  - {suite.suite_id} > {case.name}: {case.error}")
            if len(problems) > 10:
                print(f"  ... and {len(problems) - 10} more")
            print()

        status = "PASSED" if report.ok else "FAILED"
        print(f"Overall: {status}")
        print("=" * 60)

    def report_to_dict(self, report: RunReport) -> dict[str, Any]:
        """Convert report to dictionary for JSON serialization."""
        return {
            "timestamp": report.timestamp,
            "total_suites": report.total_suites,
            "passed_suites": report.passed_suites,
            "failed_suites": report.failed_suites,
            "errored_suites": report.errored_suites,
            "skipped_suites": report.skipped_suites,
            "total_cases": report.total_cases,
            "total_passed": report.total_passed,
            "total_failed": report.total_failed,
            "total_errored": report.total_errored,
            "total_skipped": report.total_skipped,
            "execution_time_ms": report.execution_time_ms,
            "suite_results": [
                {
                    "suite_id": s.suite_id,
                    "title": s.title,
                    "foundation": s.foundation.value,
                    "state": s.state.value,
                    "error": s.error,
                    "teardown_errors": s.teardown_errors,
                    "execution_time_ms": s.execution_time_ms,
                    "pass_rate": s.pass_rate,
                    "cases": [
                        {
                            "id": c.id,
                            "name": c.name,
                            "outcome": c.outcome.value,
                            "error": c.error,
                            "execution_time_ms": c.execution_time_ms,
                        }
                        for c in s.case_results
                    ],
                }
                for s in report.suite_results
            ],
        }
