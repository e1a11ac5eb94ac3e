"""Models for recorded check outcomes."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, TypeAlias

Outcome: TypeAlias = Literal["pass", "fail", "skip"]


@dataclass(frozen=True, kw_only=True)
class TestCase:
    """Outcome of a single check, recorded once in declaration order."""

    __test__ = False

    index: int
    name: str
    outcome: Outcome
    detail: str = ""


@dataclass(frozen=True, kw_only=True)
class LedgerCounts:
    """Aggregate counts derived from the recorded test cases."""

    total: int
    passed: int
    failed: int
    skipped: int

    @classmethod
    def of(cls, cases: Sequence[TestCase]) -> "LedgerCounts":
        """Count outcomes over a sequence of test cases."""
        return cls(
            total=len(cases),
            passed=sum(1 for case in cases if case.outcome == "pass"),
            failed=sum(1 for case in cases if case.outcome == "fail"),
            skipped=sum(1 for case in cases if case.outcome == "skip"),
        )
