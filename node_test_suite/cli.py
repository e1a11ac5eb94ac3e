"""CLI entry point for the node test suite."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from contextlib import AsyncExitStack
from datetime import datetime
from pathlib import Path
from typing import Any

from node_test_suite.config import SuiteConfig
from node_test_suite.interrupts import InterruptHandler
from node_test_suite.ledger import ResultLedger
from node_test_suite.models.result import LedgerCounts, TestCase
from node_test_suite.node_client import NodeClient
from node_test_suite.phases import PhaseExecutor, log_header
from node_test_suite.report import collect_environment, render, write_report
from node_test_suite.tools import ToolInvoker

EXIT_INTERRUPTED = 130


def log_summary(log: logging.Logger, counts: LedgerCounts, report_path: Path) -> None:
    """Log the final counts and overall verdict."""
    log.info("=" * 80)
    log.info("TEST SUMMARY")
    log.info("=" * 80)
    log.info("Total:   %d", counts.total)
    log.info("Passed:  %d", counts.passed)
    log.info("Failed:  %d", counts.failed)
    log.info("Skipped: %d", counts.skipped)
    log.info("=" * 80)

    if counts.failed == 0:
        log.info("✓ All tests passed!")
    else:
        log.error("✗ Some tests failed. See %s for details.", report_path)


def format_output(cases: Sequence[TestCase]) -> dict[str, Any]:
    """Format recorded cases for JSON output."""
    counts = LedgerCounts.of(cases)
    return {
        "total": counts.total,
        "passed": counts.passed,
        "failed": counts.failed,
        "skipped": counts.skipped,
        "results": [
            {
                "index": case.index,
                "name": case.name,
                "outcome": case.outcome,
                "detail": case.detail,
            }
            for case in cases
        ],
    }


def exit_code(ledger: ResultLedger) -> int:
    """Zero when nothing failed; skips do not count as failures."""
    return 1 if ledger.has_failures else 0


async def run_phases(
    config: SuiteConfig, ledger: ResultLedger, invoker: ToolInvoker
) -> None:
    """Run phases one to four, stopping the node however they end."""
    async with AsyncExitStack() as cleanup:
        try:
            node_client = await cleanup.enter_async_context(
                NodeClient.from_config(config)
            )
            executor = PhaseExecutor(
                config=config,
                invoker=invoker,
                node_client=node_client,
                ledger=ledger,
                cleanup=cleanup,
            )
            await executor.run()
        finally:
            log_header("Phase 5: Cleanup & Reporting")


async def run(config: SuiteConfig) -> int:
    """Run the suite, write the report and return the exit code."""
    log = logging.getLogger("node_test_suite")
    report_path = config.path(config.report_path)

    log.info("Arkavo Node - Automated Test Suite")
    log.info("Project root: %s", config.project_root)
    log.info("Report will be saved to: %s", report_path)

    ledger = ResultLedger()
    invoker = ToolInvoker(timeout=config.tool_timeout)

    task = asyncio.current_task()
    if task is None:
        raise RuntimeError("run() must be called from a task")
    interrupts = InterruptHandler(task=task)
    interrupts.install()

    try:
        await run_phases(config, ledger, invoker)
    except asyncio.CancelledError:
        if not interrupts.interrupted:
            raise
        interrupts.acknowledge()
        log.warning("Run interrupted; remaining checks were not executed")
    finally:
        interrupts.begin_teardown()
        try:
            environment = await collect_environment(invoker, config.project_root)
            cases = ledger.snapshot()
            write_report(report_path, render(cases, environment, datetime.now()))
            log_summary(log, ledger.counts, report_path)
            print(json.dumps(format_output(cases), indent=2))
        finally:
            interrupts.remove()

    if interrupts.interrupted:
        return EXIT_INTERRUPTED
    return exit_code(ledger)


def load_config(project_root: Path | None, config_json: str) -> SuiteConfig:
    """Build the suite configuration from CLI arguments."""
    config_dict: dict[str, Any] = json.loads(config_json) if config_json else {}
    if not isinstance(config_dict, dict):
        raise ValueError("configuration must be a JSON object")
    if project_root is not None:
        config_dict["project_root"] = project_root
    return SuiteConfig(**config_dict)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Build, boot and integration-test the node and its contracts"
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=None,
        help="Node repository root (default: current directory)",
    )
    parser.add_argument(
        "--config",
        default="",
        help="JSON object overriding suite configuration fields",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args.project_root, args.config)
    except ValueError as e:
        parser.error(f"Invalid configuration: {e}")

    sys.exit(asyncio.run(run(config)))


if __name__ == "__main__":  # pragma: no cover
    main()
