"""Translation of termination signals into task cancellation."""

import asyncio
import logging
import signal
from collections.abc import Sequence
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass(kw_only=True)
class InterruptHandler:
    """Cancels a task on the first SIGINT or SIGTERM.

    Cancellation unwinds through the task's exit stacks, which is what stops
    the node. Once `begin_teardown` has been called, or after the first
    signal, signals are only recorded and logged so that reporting runs to
    completion.
    """

    task: asyncio.Task[object]
    signals: Sequence[signal.Signals] = HANDLED_SIGNALS
    interrupted: bool = False
    tearing_down: bool = False
    _installed: list[signal.Signals] = field(default_factory=list)

    def install(self) -> None:
        """Register the handler on the running loop."""
        loop = asyncio.get_running_loop()
        for sig in self.signals:
            loop.add_signal_handler(sig, self.handle, sig)
            self._installed.append(sig)

    def remove(self) -> None:
        """Restore default handling for the registered signals."""
        loop = asyncio.get_running_loop()
        while self._installed:
            loop.remove_signal_handler(self._installed.pop())

    def begin_teardown(self) -> None:
        """Stop cancelling the task; later signals only mark the run interrupted."""
        self.tearing_down = True

    def handle(self, sig: signal.Signals) -> None:
        """Cancel the task once, unless teardown has begun."""
        if self.interrupted:
            log.warning("Received %s during cleanup, ignoring", sig.name)
            return
        self.interrupted = True
        if self.tearing_down:
            log.warning("Received %s, finishing the report before exiting", sig.name)
            return
        log.warning("Received %s, cleaning up...", sig.name)
        self.task.cancel()

    def acknowledge(self) -> None:
        """Clear the cancellation request once it has been handled."""
        self.task.uncancel()
