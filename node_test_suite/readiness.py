"""Bounded readiness and progress polling."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeAlias

log = logging.getLogger(__name__)

Predicate: TypeAlias = Callable[[], Awaitable[bool]]
HeightSampler: TypeAlias = Callable[[], Awaitable[int | None]]


@dataclass(frozen=True, kw_only=True)
class PollResult:
    """Result of a readiness poll."""

    ready: bool
    attempts: int


@dataclass(frozen=True, kw_only=True)
class ProgressSample:
    """Two samples of a monotonically increasing counter."""

    first: int | None
    second: int | None

    @property
    def complete(self) -> bool:
        """Whether both samples were obtained."""
        return self.first is not None and self.second is not None

    @property
    def advanced(self) -> bool:
        """Whether both samples exist and differ.

        Any change counts, including a decrease.
        """
        return self.complete and self.first != self.second


async def poll_until(
    predicate: Predicate,
    interval: float,
    max_attempts: int,
) -> PollResult:
    """Poll a predicate until it holds or the attempt budget is spent.

    The predicate must be safe to repeat. An exception raised by the predicate
    counts as a failed attempt.

    Args:
        predicate: Async callable returning True once the condition holds
        interval: Seconds to sleep after a failed attempt
        max_attempts: Maximum number of predicate calls

    Returns:
        Poll result with the number of attempts made

    Raises:
        ValueError: If max_attempts is lower than one

    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        try:
            if await predicate():
                return PollResult(ready=True, attempts=attempt)
        except Exception as e:
            log.debug("Readiness probe attempt %d raised: %s", attempt, e)

        if attempt < max_attempts:
            await asyncio.sleep(interval)

    return PollResult(ready=False, attempts=max_attempts)


async def sample_progress(sample: HeightSampler, settle: float) -> ProgressSample:
    """Sample a counter twice, ``settle`` seconds apart."""
    first = await sample()
    log.debug("First progress sample: %s", first)
    await asyncio.sleep(settle)
    second = await sample()
    log.debug("Second progress sample: %s", second)
    return ProgressSample(first=first, second=second)


def parse_hex_quantity(value: object) -> int | None:
    """Decode a hexadecimal quantity such as ``"0x1a"`` to an integer.

    Returns None for anything that is not a non-empty, unsigned hexadecimal
    string, which callers treat as a missing sample.
    """
    if not isinstance(value, str):
        return None

    digits = value.strip()
    if digits[:2] in ("0x", "0X"):
        digits = digits[2:]
    if not digits or any(c not in "0123456789abcdefABCDEF" for c in digits):
        return None
    return int(digits, 16)
