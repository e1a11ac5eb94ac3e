"""Integration tests for ManagedProcess against real processes."""

import asyncio
from pathlib import Path

import pytest

from node_test_suite.process import ManagedProcess, SpawnError, pid_exists
from node_test_suite.testing.scripts import ScriptWriter

SLEEPER = "import time\ntime.sleep(60)\n"

CHATTY = """
import time

print("Idle (0 peers)", flush=True)
time.sleep(60)
"""

STUBBORN = """
import signal
import sys
import time

signal.signal(signal.SIGTERM, signal.SIG_IGN)
print("ready", flush=True)
time.sleep(60)
"""


class TestSpawn:
    """Tests for ManagedProcess.spawn."""

    async def test_running_process_writes_log(
        self, python_script: ScriptWriter, tmp_path: Path
    ) -> None:
        """Captures output to the log file while running."""
        command, *args = python_script("chatty", CHATTY)
        log_path = tmp_path / "tools" / "node-test.log"

        node = await ManagedProcess.spawn(command, args, log_path=log_path, settle=1)
        try:
            assert node.is_alive()
            assert node.state == "running"
            assert "Idle (0 peers)" in log_path.read_text()
        finally:
            await node.stop(grace=1)

    async def test_immediate_exit_is_reported(
        self, python_script: ScriptWriter, tmp_path: Path
    ) -> None:
        """A process dying while settling raises and leaves no log behind."""
        command, *args = python_script("crash", "import sys\nsys.exit(1)\n")
        log_path = tmp_path / "node-test.log"

        with pytest.raises(SpawnError, match="exit code 1"):
            await ManagedProcess.spawn(command, args, log_path=log_path, settle=0.5)

        assert not log_path.exists()

    async def test_missing_executable(self, tmp_path: Path) -> None:
        """An executable that cannot be started raises SpawnError."""
        log_path = tmp_path / "node-test.log"

        with pytest.raises(SpawnError, match="Cannot start"):
            await ManagedProcess.spawn(
                tmp_path / "target" / "debug" / "arkavo-node",
                log_path=log_path,
                settle=0,
            )

        assert not log_path.exists()

    async def test_cancelled_while_settling(
        self, python_script: ScriptWriter, tmp_path: Path
    ) -> None:
        """Cancellation during the settle delay still stops the process."""
        command, *args = python_script("sleeper", SLEEPER)
        log_path = tmp_path / "node-test.log"

        spawning = asyncio.create_task(
            ManagedProcess.spawn(command, args, log_path=log_path, settle=30)
        )
        await asyncio.sleep(0.5)
        spawning.cancel()

        with pytest.raises(asyncio.CancelledError):
            await spawning

        assert not log_path.exists()


class TestStop:
    """Tests for ManagedProcess.stop."""

    async def test_stop_is_idempotent(
        self, python_script: ScriptWriter, tmp_path: Path
    ) -> None:
        """Stops once and removes the log; later calls do nothing."""
        command, *args = python_script("sleeper", SLEEPER)
        log_path = tmp_path / "node-test.log"
        node = await ManagedProcess.spawn(command, args, log_path=log_path, settle=0)
        pid = node.pid

        await node.stop(grace=2)
        await node.stop(grace=2)

        assert node.state == "stopped"
        assert not node.is_alive()
        assert not pid_exists(pid)
        assert not log_path.exists()

    async def test_escalates_to_kill(
        self, python_script: ScriptWriter, tmp_path: Path
    ) -> None:
        """A process ignoring SIGTERM is killed after the grace period."""
        command, *args = python_script("stubborn", STUBBORN)
        log_path = tmp_path / "node-test.log"
        node = await ManagedProcess.spawn(command, args, log_path=log_path, settle=1)

        await node.stop(grace=0.5)

        assert node.process.returncode is not None
        assert node.process.returncode < 0
        assert not log_path.exists()

    async def test_stop_after_exit(
        self, python_script: ScriptWriter, tmp_path: Path
    ) -> None:
        """Stopping a process that already exited only removes the log."""
        command, *args = python_script("sleeper", SLEEPER)
        log_path = tmp_path / "node-test.log"
        node = await ManagedProcess.spawn(command, args, log_path=log_path, settle=0)
        node.process.kill()
        await node.process.wait()

        await node.stop()

        assert not node.is_alive()
        assert not log_path.exists()

    async def test_cancelled_during_grace_period_kills(
        self, python_script: ScriptWriter, tmp_path: Path
    ) -> None:
        """Cancelling a stop that is waiting out the grace period kills the process."""
        command, *args = python_script("stubborn", STUBBORN)
        log_path = tmp_path / "node-test.log"
        node = await ManagedProcess.spawn(command, args, log_path=log_path, settle=1)

        stopping = asyncio.create_task(node.stop(grace=30))
        await asyncio.sleep(0.3)
        stopping.cancel()

        with pytest.raises(asyncio.CancelledError):
            await stopping

        await asyncio.wait_for(node.process.wait(), timeout=5)
        assert node.process.returncode == -9
        assert not log_path.exists()
