"""Lifecycle management for the long-running node process."""

import asyncio
import logging
import os
import signal
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, TypeAlias

log = logging.getLogger(__name__)

KILL_REAP_TIMEOUT = 5.0

ProcessState: TypeAlias = Literal["running", "stopped"]


class SpawnError(Exception):
    """Raised when a managed process cannot be started or dies while settling."""


def pid_exists(pid: int) -> bool:
    """Probe a PID with signal 0 without blocking or raising."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True  # Exists but owned by someone else
    return True


def _send_signal(pid: int, sig: signal.Signals) -> None:
    try:
        os.kill(pid, sig)
    except ProcessLookupError:
        log.debug("Process %d already gone before %s", pid, sig.name)


@dataclass(kw_only=True)
class ManagedProcess:
    """A background process whose output is captured to a log file.

    Instances are created by `spawn` and stopped exactly once by `stop`;
    further `stop` calls are no-ops.
    """

    process: asyncio.subprocess.Process = field(repr=False)
    log_path: Path
    state: ProcessState = "running"

    @property
    def pid(self) -> int:
        """Operating system PID of the process."""
        return self.process.pid

    @classmethod
    async def spawn(
        cls,
        command: str | Path,
        args: Sequence[str] = (),
        *,
        log_path: Path,
        settle: float = 3.0,
    ) -> "ManagedProcess":
        """Start a process and confirm it survives the settle delay.

        Args:
            command: Executable to run
            args: Command arguments
            log_path: File receiving combined stdout and stderr
            settle: Seconds to wait before the liveness check

        Returns:
            The running process

        Raises:
            SpawnError: If the process cannot be started or exits while settling

        """
        log_path.parent.mkdir(parents=True, exist_ok=True)
        argv = [str(command), *args]

        with open(log_path, "wb") as log_file:
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=log_file,
                    stderr=asyncio.subprocess.STDOUT,
                )
            except OSError as e:
                log_path.unlink(missing_ok=True)
                raise SpawnError(f"Cannot start {argv[0]}: {e}") from e

        managed = cls(process=process, log_path=log_path)
        log.debug("Spawned %s (PID %d), settling for %ss", argv[0], process.pid, settle)
        try:
            await asyncio.sleep(settle)
        except BaseException:
            # Nobody holds a reference yet, so stop it before propagating.
            await managed.stop(grace=0)
            raise

        if not managed.is_alive():
            code = process.returncode
            await managed.stop(grace=0)
            raise SpawnError(f"Process exited during start-up (exit code {code})")

        return managed

    def is_alive(self) -> bool:
        """Check whether the process is still running."""
        if self.state == "stopped" or self.process.returncode is not None:
            return False
        return pid_exists(self.pid)

    async def stop(self, grace: float = 2.0) -> None:
        """Terminate the process gracefully, then forcefully.

        Sends SIGTERM, waits ``grace`` seconds and sends SIGKILL if the process
        is still alive. The log file is removed in every case. Calling this
        again after the first stop does nothing.
        """
        if self.state == "stopped":
            return
        self.state = "stopped"

        try:
            if self.process.returncode is None and pid_exists(self.pid):
                log.info("Stopping process (PID: %d)...", self.pid)
                _send_signal(self.pid, signal.SIGTERM)
                await self._reap(grace)

                if self.process.returncode is None and pid_exists(self.pid):
                    log.warning("Process %d ignored SIGTERM, killing", self.pid)
                    _send_signal(self.pid, signal.SIGKILL)
                    await self._reap(KILL_REAP_TIMEOUT)
        except BaseException:
            # Cancelled while waiting on the grace period.
            if self.process.returncode is None and pid_exists(self.pid):
                _send_signal(self.pid, signal.SIGKILL)
            raise
        finally:
            self.log_path.unlink(missing_ok=True)

    async def _reap(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self.process.wait(), timeout=timeout)
        except TimeoutError:
            pass
