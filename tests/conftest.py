"""Shared test fixtures for zfs-backup tests."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

from zfsbackup.config import Configuration
from zfsbackup.models import CommandResult
from zfsbackup.workflows import WorkflowContext


class CommandScript:
    """Scripted responses for Executor.run_command.

    Responses are matched on a prefix of (program, *args). Later
    registrations take precedence, so a test can override a default with a
    more specific or failing response. Unmatched commands succeed with no
    output.
    """

    def __init__(self) -> None:
        self._responses: list[tuple[tuple[str, ...], CommandResult]] = []

    def on(self, *prefix: str, output: str = "", exit_code: int = 0) -> CommandScript:
        self._responses.insert(0, (prefix, CommandResult(exit_code=exit_code, output=output)))
        return self

    def fail(self, *prefix: str, output: str = "cannot open") -> CommandScript:
        return self.on(*prefix, output=output, exit_code=1)

    def __call__(
        self,
        program: str,
        *args: str,
        stdin: str | None = None,
        interactive: bool = False,
    ) -> CommandResult:
        command = (program, *args)
        for prefix, result in self._responses:
            if command[: len(prefix)] == prefix:
                return result
        return CommandResult(exit_code=0, output="")


def issued_commands(executor: MagicMock) -> list[str]:
    """Commands passed to a mock executor, as space-joined strings in call order."""
    return [" ".join(call.args) for call in executor.run_command.call_args_list]


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Undo any logging configuration a test installed."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def script() -> CommandScript:
    return CommandScript()


@pytest.fixture
def mock_executor(script: CommandScript) -> MagicMock:
    """Create a mock executor whose run_command answers from the script fixture."""
    executor = MagicMock()
    executor.run_command = AsyncMock(side_effect=script)
    executor.terminate_all_processes = AsyncMock()
    return executor


@pytest.fixture
def issued(mock_executor: MagicMock) -> Callable[[], list[str]]:
    """Return a callable listing the commands issued so far."""
    return lambda: issued_commands(mock_executor)


@pytest.fixture
def config() -> Configuration:
    return Configuration()


@pytest.fixture
def workflow_context(mock_executor: MagicMock, config: Configuration) -> WorkflowContext:
    return WorkflowContext(executor=mock_executor, config=config)
