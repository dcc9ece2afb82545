"""Core types and dataclasses for zfs-backup."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum

__all__ = [
    "CommandError",
    "CommandResult",
    "ConfigError",
    "DeviceNotDetectedError",
    "LogLevel",
    "OperationKind",
    "OperationRequest",
    "OperationResult",
    "PreconditionError",
    "SessionState",
    "WorkflowError",
]


class LogLevel(IntEnum):
    """Logging levels aligned with stdlib logging.

    FULL sits between DEBUG and INFO and carries per-command detail.
    """

    DEBUG = logging.DEBUG
    FULL = logging.DEBUG + 5
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


@dataclass(frozen=True)
class CommandResult:
    """Result of executing an external program.

    stdout and stderr are captured together, interleaved as the program wrote them.
    """

    exit_code: int
    output: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class OperationKind(StrEnum):
    """The workflows a session can trigger."""

    BACKUP = "backup"
    FORCE_BACKUP = "force-backup"
    PREPARE = "prepare"
    UNMOUNT = "unmount"

    @property
    def requires_secret(self) -> bool:
        return self in (OperationKind.BACKUP, OperationKind.FORCE_BACKUP)

    @property
    def requires_confirmation(self) -> bool:
        return self in (OperationKind.FORCE_BACKUP, OperationKind.PREPARE)

    @property
    def requires_device(self) -> bool:
        return self is OperationKind.PREPARE

    @property
    def label(self) -> str:
        return {
            OperationKind.BACKUP: "Running incremental backup",
            OperationKind.FORCE_BACKUP: "Running force backup",
            OperationKind.PREPARE: "Preparing backup device",
            OperationKind.UNMOUNT: "Unmounting backup disk",
        }[self]


class SessionState(StrEnum):
    """States of the interactive session."""

    MENU = "menu"
    CONFIRM = "confirm"
    DEVICE_INPUT = "device-input"
    SECRET_INPUT = "secret-input"
    RUNNING = "running"
    RESULT = "result"
    HELP = "help"


@dataclass(frozen=True)
class OperationRequest:
    """A fully specified request handed to the workflow engine exactly once."""

    kind: OperationKind
    device: str | None = None
    secret: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.kind.requires_secret and not self.secret:
            raise ValueError(f"{self.kind.value} requires an encryption password")
        if self.kind.requires_device and not self.device:
            raise ValueError(f"{self.kind.value} requires a device path")


@dataclass(frozen=True)
class OperationResult:
    """Transcript and outcome of one workflow run."""

    kind: OperationKind
    transcript: tuple[str, ...]
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        return "\n".join(self.transcript)


@dataclass(frozen=True)
class ConfigError:
    """A single configuration validation problem."""

    path: str  # Dotted path to invalid value, or file path for load errors
    message: str


class CommandError(Exception):
    """Raised when a required external command fails."""

    def __init__(self, program: str, args: tuple[str, ...], result: CommandResult) -> None:
        self.program = program
        self.args_ = args
        self.result = result
        super().__init__(f"{program} failed: exit status {result.exit_code}\nOutput: {result.output.strip()}")

    @property
    def output(self) -> str:
        return self.result.output


class DeviceNotDetectedError(Exception):
    """Raised when no ONLINE backup device can be found in pool status output."""

    def __init__(self, message: str = "could not detect backup device") -> None:
        super().__init__(message)


class WorkflowError(Exception):
    """Raised when a fatal workflow step fails.

    Carries the human-readable context (e.g. "failed to import pool") and the
    underlying cause, rendered as "<context>: <cause>".
    """

    def __init__(self, context: str, cause: Exception) -> None:
        self.context = context
        self.cause = cause
        super().__init__(f"{context}: {cause}")


class PreconditionError(Exception):
    """Raised when the process lacks the privileges to manage ZFS."""
