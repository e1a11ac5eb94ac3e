"""Integration test for interrupting a run with a real signal."""

import asyncio
import os
import signal
from unittest.mock import patch

from node_test_suite.cli import EXIT_INTERRUPTED, run
from node_test_suite.config import SuiteConfig
from node_test_suite.ledger import ResultLedger


async def test_sigterm_tears_down_and_reports(config: SuiteConfig) -> None:
    """A termination signal stops the run, still writes the report and exits 130."""
    stopped = asyncio.Event()

    async def hang(_config: SuiteConfig, ledger: ResultLedger, _invoker: object):
        ledger.passed("Rust toolchain available")
        try:
            await asyncio.Event().wait()
        finally:
            stopped.set()

    loop = asyncio.get_running_loop()
    loop.call_later(0.2, os.kill, os.getpid(), signal.SIGTERM)

    with patch("node_test_suite.cli.run_phases", side_effect=hang):
        code = await run(config)

    assert code == EXIT_INTERRUPTED
    assert stopped.is_set()
    report = config.path(config.report_path).read_text(encoding="utf-8")
    assert "| 1 | Rust toolchain available | ✅ PASS | - |" in report
    assert asyncio.current_task().cancelling() == 0  # type: ignore[union-attr]


async def test_sigterm_while_reporting_still_writes_report(config: SuiteConfig) -> None:
    """A signal arriving after the checks finished does not abort the report."""

    async def record(_config: SuiteConfig, ledger: ResultLedger, _invoker: object):
        ledger.passed("Rust toolchain available")

    async def signalled_environment(*_args: object) -> dict[str, str]:
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.sleep(0.2)
        return {"Platform": "Linux"}

    with (
        patch("node_test_suite.cli.run_phases", side_effect=record),
        patch(
            "node_test_suite.cli.collect_environment",
            side_effect=signalled_environment,
        ),
    ):
        code = await run(config)

    assert code == EXIT_INTERRUPTED
    report = config.path(config.report_path).read_text(encoding="utf-8")
    assert "| 1 | Rust toolchain available | ✅ PASS | - |" in report
    assert "- **Platform:** Linux" in report
    assert asyncio.current_task().cancelling() == 0  # type: ignore[union-attr]
