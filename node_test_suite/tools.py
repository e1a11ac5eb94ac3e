"""Uniform invocation of one-shot external commands."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)

EXIT_TOOL_MISSING = 127
EXIT_TIMEOUT = 124


@dataclass(frozen=True, kw_only=True)
class ToolResult:
    """Captured result of a command invocation."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        """Whether the command exited with status zero."""
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr

    def excerpt(self, max_lines: int = 20) -> str:
        """Return the first lines of the combined output."""
        return "\n".join(self.output.splitlines()[:max_lines])


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill a child and reap it."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


@dataclass(frozen=True, kw_only=True)
class ToolInvoker:
    """Runs external commands and captures their result.

    The invoker never raises for a failing command: classification is left to
    the caller. A missing executable is reported with exit code 127 and a
    command exceeding ``timeout`` is killed and reported with exit code 124.
    """

    timeout: float | None = None

    async def run(
        self,
        command: str | Path,
        *args: str | Path,
        cwd: Path | None = None,
    ) -> ToolResult:
        """Run a command to completion.

        Args:
            command: Executable name or path
            *args: Command arguments
            cwd: Working directory for the command

        Returns:
            Exit code with decoded stdout and stderr

        """
        argv = [str(command), *(str(arg) for arg in args)]
        log.debug("Running: %s", " ".join(argv))

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            log.debug("Command %s unavailable: %s", argv[0], e)
            return ToolResult(exit_code=EXIT_TOOL_MISSING, stdout="", stderr=str(e))

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except TimeoutError:
            await _kill(process)
            log.warning("Command timed out after %ss: %s", self.timeout, argv[0])
            return ToolResult(
                exit_code=EXIT_TIMEOUT,
                stdout="",
                stderr=f"Timed out after {self.timeout} seconds",
            )
        except BaseException:
            # Cancelled by an interrupt: the child must not outlive the run.
            await _kill(process)
            raise

        result = ToolResult(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        log.debug("Command %s exited with %d", argv[0], result.exit_code)
        return result
