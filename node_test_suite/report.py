"""Markdown report rendering for a suite run."""

import logging
import platform
from collections.abc import Mapping, Sequence
from datetime import datetime
from pathlib import Path

from node_test_suite.models.result import LedgerCounts, TestCase
from node_test_suite.tools import ToolInvoker

log = logging.getLogger(__name__)

NOT_AVAILABLE = "Not available"

RESULT_ICONS = {
    "pass": "✅",
    "fail": "❌",
    "skip": "⏭️",
}


def _cell(text: str) -> str:
    """Keep a value on one table row."""
    return " ".join(text.replace("|", "\\|").split())


def render(
    cases: Sequence[TestCase],
    environment: Mapping[str, str],
    generated_at: datetime,
) -> str:
    """Render recorded test cases and environment facts as Markdown.

    Args:
        cases: Ledger snapshot in recorded order
        environment: Environment facts keyed by label
        generated_at: Timestamp embedded in the report

    Returns:
        The report document

    """
    counts = LedgerCounts.of(cases)
    lines = [
        "# Arkavo Node Test Results",
        "",
        f"**Generated:** {generated_at:%Y-%m-%d %H:%M:%S}",
        f"**Total Tests:** {counts.total}",
        f"**Passed:** {counts.passed}",
        f"**Failed:** {counts.failed}",
        f"**Skipped:** {counts.skipped}",
        "",
        "## Summary",
        "",
    ]

    if counts.failed == 0:
        lines.append("✅ **All tests passed!**")
    else:
        lines.append("❌ **Some tests failed. See details below.**")

    lines += [
        "",
        "## Test Results",
        "",
        "| # | Test Name | Result | Error |",
        "|---|-----------|--------|-------|",
    ]
    for case in cases:
        icon = RESULT_ICONS.get(case.outcome, "❓")
        detail = _cell(case.detail) or "-"
        lines.append(
            f"| {case.index} | {_cell(case.name)} | {icon} {case.outcome.upper()} "
            f"| {detail} |"
        )

    lines += ["", "## Environment", ""]
    lines += [f"- **{label}:** {value}" for label, value in environment.items()]
    lines.append("")

    return "\n".join(lines)


async def _version(invoker: ToolInvoker, command: str) -> str:
    try:
        result = await invoker.run(command, "--version")
    except Exception as e:
        log.debug("Version probe for %s raised: %s", command, e)
        return NOT_AVAILABLE
    version = result.stdout.strip()
    return version if result.ok and version else NOT_AVAILABLE


async def collect_environment(
    invoker: ToolInvoker, project_root: Path
) -> dict[str, str]:
    """Gather platform and toolchain facts for the report.

    Version probes that fail degrade to "Not available"; this never raises.
    """
    return {
        "Platform": f"{platform.system()} {platform.release()}".strip()
        or NOT_AVAILABLE,
        "Rust": await _version(invoker, "rustc"),
        "Cargo": await _version(invoker, "cargo"),
        "Working Directory": str(project_root),
    }


def write_report(path: Path, document: str) -> None:
    """Write the report, replacing any previous one."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(document, encoding="utf-8")
    log.info("Report generated: %s", path)
