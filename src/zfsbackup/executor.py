"""Command execution for external storage-management programs."""

from __future__ import annotations

import asyncio
from typing import Protocol

from zfsbackup.logging import get_logger
from zfsbackup.models import CommandResult

__all__ = [
    "Executor",
    "LocalExecutor",
]

# Exit status reported when a program cannot be started at all (shell convention)
NOT_FOUND_EXIT_CODE = 127

logger = get_logger("zfsbackup.executor")


class Executor(Protocol):
    """Protocol for running external programs.

    Workflows depend only on this protocol so tests can substitute a scripted
    executor without spawning processes.
    """

    async def run_command(
        self,
        program: str,
        *args: str,
        stdin: str | None = None,
        interactive: bool = False,
    ) -> CommandResult:
        """Run a program and wait for completion."""
        ...

    async def terminate_all_processes(self) -> None:
        """Terminate all tracked processes."""
        ...


class LocalExecutor:
    """Executes programs on the local machine via async subprocess."""

    def __init__(self) -> None:
        self._processes: list[asyncio.subprocess.Process] = []

    async def run_command(
        self,
        program: str,
        *args: str,
        stdin: str | None = None,
        interactive: bool = False,
    ) -> CommandResult:
        """Run a program and wait for completion.

        Args:
            program: Executable name, resolved through PATH
            *args: Argument vector, passed without a shell
            stdin: Optional secret written to standard input followed by a
                newline; the pipe is closed afterwards. Never logged.
            interactive: Inherit the terminal so the program can prompt the
                user itself. Its output goes straight to the terminal and is
                not captured. Ignored when stdin is given.

        Returns:
            CommandResult with exit code and combined stdout/stderr (empty
            for interactive commands)
        """
        logger.full("Running command", program=program, args=list(args), with_stdin=stdin is not None)

        # None inherits the parent's file descriptor
        stdout_mode: int | None = asyncio.subprocess.PIPE
        stderr_mode: int | None = asyncio.subprocess.STDOUT
        if stdin is not None:
            stdin_mode: int | None = asyncio.subprocess.PIPE
        elif interactive:
            stdin_mode = stdout_mode = stderr_mode = None
        else:
            stdin_mode = asyncio.subprocess.DEVNULL

        try:
            proc = await asyncio.create_subprocess_exec(
                program,
                *args,
                stdin=stdin_mode,
                stdout=stdout_mode,
                stderr=stderr_mode,
            )
        except OSError as e:
            logger.warning("Failed to start command", program=program, error=str(e))
            return CommandResult(exit_code=NOT_FOUND_EXIT_CODE, output=f"{program}: {e}")

        self._processes.append(proc)
        try:
            payload = (stdin + "\n").encode() if stdin is not None else None
            output, _ = await proc.communicate(payload)
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.terminate()
                await proc.wait()
            raise
        finally:
            self._processes.remove(proc)

        result = CommandResult(
            exit_code=proc.returncode or 0,
            output=output.decode(errors="replace") if output else "",
        )
        logger.full("Command finished", program=program, exit_code=result.exit_code)
        return result

    async def terminate_all_processes(self) -> None:
        """Terminate all tracked processes."""
        for proc in self._processes:
            if proc.returncode is None:  # Still running
                proc.terminate()
        await asyncio.gather(
            *(proc.wait() for proc in self._processes if proc.returncode is None),
            return_exceptions=True,
        )
