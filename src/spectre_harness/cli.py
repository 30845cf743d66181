#!/usr/bin/env python3
"""
Spectre Test Harness

Discovers suite declarations, runs each against a freshly provisioned dev or
zombie foundation and reports the aggregate result through the exit code.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional

import click

from .config import HarnessConfig
from .errors import HarnessError
from .registry import SuiteRegistry
from .reporter import ReportGenerator, RunReport
from .runner import HarnessRunner
from .types import SuiteDeclaration

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    # aiohttp is chatty at DEBUG while nodes are still booting
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def load_config(
    config_file: Optional[str],
    timeout_ms: Optional[int],
    result_dir: Optional[str],
    retain_logs: Optional[bool],
    foundations: tuple[str, ...],
    verbose: bool,
    stop_on_failure: bool,
) -> HarnessConfig:
    """Layer config: defaults, then YAML file, then environment, then flags."""
    config = HarnessConfig.from_yaml(config_file) if config_file else HarnessConfig()
    config = HarnessConfig.from_env(config)

    if timeout_ms is not None:
        config.timeout_ms = timeout_ms
    if result_dir:
        config.result_dir = result_dir
    if retain_logs is not None:
        config.retain_logs_on_failure = retain_logs
    if foundations:
        config.foundations = sorted(set(foundations))
    if verbose:
        config.verbose = True
    if stop_on_failure:
        config.stop_on_first_failure = True

    config.validate()
    return config


async def run_suites(config: HarnessConfig, declarations: list[SuiteDeclaration]) -> RunReport:
    """Run all suites; SIGTERM cancels the run like Ctrl-C does."""
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    try:
        loop.add_signal_handler(signal.SIGTERM, task.cancel)
    except (NotImplementedError, RuntimeError):
        pass

    try:
        harness = HarnessRunner(config)
        return await harness.run_all(declarations)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGTERM)
        except (NotImplementedError, RuntimeError):
            pass


@click.command()
@click.option(
    "--suites",
    "suites_path",
    default="suites",
    show_default=True,
    help="Directory (or single file) containing suite declarations",
)
@click.option(
    "--config",
    "config_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML harness configuration",
)
@click.option(
    "--foundation",
    "foundations",
    multiple=True,
    type=click.Choice(["dev", "zombie"]),
    help="Only run suites on this foundation (repeatable)",
)
@click.option(
    "--suite-id",
    "suite_ids",
    multiple=True,
    help="Only run the suite with this id (repeatable)",
)
@click.option(
    "--timeout-ms",
    type=int,
    default=None,
    help="Provisioning timeout in milliseconds",
)
@click.option(
    "--result-dir",
    default=None,
    help="Directory to write results",
)
@click.option(
    "--retain-logs/--no-retain-logs",
    default=None,
    help="Keep foundation logs when a suite fails",
)
@click.option(
    "--stop-on-failure",
    is_flag=True,
    help="Stop on first failed test case or suite",
)
@click.option(
    "--list",
    "list_only",
    is_flag=True,
    help="List discovered suites and exit",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
def main(
    suites_path: str,
    config_file: Optional[str],
    foundations: tuple[str, ...],
    suite_ids: tuple[str, ...],
    timeout_ms: Optional[int],
    result_dir: Optional[str],
    retain_logs: Optional[bool],
    stop_on_failure: bool,
    list_only: bool,
    verbose: bool,
) -> None:
    """Run Spectre node test suites."""
    try:
        config = load_config(
            config_file, timeout_ms, result_dir, retain_logs,
            foundations, verbose, stop_on_failure,
        )
    except HarnessError as e:
        raise click.UsageError(str(e))

    configure_logging(config.verbose)

    registry = SuiteRegistry()
    try:
        registry.discover(suites_path)
    except HarnessError as e:
        logger.error(str(e))
        sys.exit(1)

    declarations = registry.all()
    if suite_ids:
        missing = sorted(set(suite_ids) - {d.id for d in declarations})
        if missing:
            logger.error(f"Unknown suite ids: {', '.join(missing)}")
            sys.exit(1)
        declarations = [d for d in declarations if d.id in suite_ids]
    if config.foundations:
        declarations = [d for d in declarations if d.foundation.value in config.foundations]

    if not declarations:
        logger.error(f"No suites found in {suites_path}")
        sys.exit(1)

    if list_only:
        for d in declarations:
            click.echo(f"{d.id}\t{d.foundation.value}\t{d.title}")
        return

    logger.info(f"Found {len(declarations)} suites")

    try:
        report = asyncio.run(run_suites(config, declarations))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.error("Run interrupted; in-flight foundation was torn down")
        sys.exit(EXIT_INTERRUPTED)

    reporter = ReportGenerator(config.result_dir)
    reporter.write_json_report(report)
    reporter.write_summary(report)
    reporter.print_summary(report)

    sys.exit(report.exit_code)


if __name__ == "__main__":
    main()
