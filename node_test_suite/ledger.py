"""Append-only ledger of check outcomes."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from node_test_suite.models.result import LedgerCounts, Outcome, TestCase

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class ResultLedger:
    """Records check outcomes in declaration order.

    Counts are derived from the recorded sequence on every access.
    """

    _cases: list[TestCase] = field(default_factory=list)

    def record(self, name: str, outcome: Outcome, detail: str = "") -> TestCase:
        """Append a test case and emit it to the operator.

        Args:
            name: Human-readable check name
            outcome: One of "pass", "fail" or "skip"
            detail: Optional failure or skip reason

        Returns:
            The recorded test case

        """
        case = TestCase(
            index=len(self._cases) + 1,
            name=name,
            outcome=outcome,
            detail=detail,
        )
        self._cases.append(case)

        match outcome:
            case "pass":
                log.info("✓ %s", name)
            case "fail":
                log.error("✗ %s", name)
                if detail:
                    log.error("  Error: %s", detail)
            case "skip":
                log.warning("⚠ %s (skipped)", name)
                if detail:
                    log.info("  Reason: %s", detail)

        return case

    def passed(self, name: str) -> TestCase:
        """Record a passing check."""
        return self.record(name, "pass")

    def failed(self, name: str, detail: str = "") -> TestCase:
        """Record a failing check."""
        return self.record(name, "fail", detail)

    def skipped(self, name: str, detail: str = "") -> TestCase:
        """Record a skipped check."""
        return self.record(name, "skip", detail)

    def skip_all(self, names: Sequence[str], detail: str) -> None:
        """Record every named check as skipped with the same reason."""
        for name in names:
            self.skipped(name, detail)

    def snapshot(self) -> tuple[TestCase, ...]:
        """Return an immutable view of the recorded cases."""
        return tuple(self._cases)

    @property
    def counts(self) -> LedgerCounts:
        """Aggregate counts over every recorded case."""
        return LedgerCounts.of(self._cases)

    @property
    def has_failures(self) -> bool:
        """Whether any check failed."""
        return any(case.outcome == "fail" for case in self._cases)
