"""Unit tests for core types."""

from __future__ import annotations

import pytest

from zfsbackup.models import (
    CommandError,
    CommandResult,
    LogLevel,
    OperationKind,
    OperationRequest,
    OperationResult,
    WorkflowError,
)


class TestOperationKind:
    def test_secret_required_for_backups_only(self) -> None:
        assert {k for k in OperationKind if k.requires_secret} == {
            OperationKind.BACKUP,
            OperationKind.FORCE_BACKUP,
        }

    def test_confirmation_required_for_destructive_operations(self) -> None:
        assert {k for k in OperationKind if k.requires_confirmation} == {
            OperationKind.FORCE_BACKUP,
            OperationKind.PREPARE,
        }

    def test_every_kind_has_a_label(self) -> None:
        assert all(kind.label for kind in OperationKind)


class TestOperationRequest:
    def test_backup_without_secret_rejected(self) -> None:
        with pytest.raises(ValueError, match="encryption password"):
            OperationRequest(kind=OperationKind.BACKUP)

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            OperationRequest(kind=OperationKind.FORCE_BACKUP, secret="")

    def test_prepare_without_device_rejected(self) -> None:
        with pytest.raises(ValueError, match="device path"):
            OperationRequest(kind=OperationKind.PREPARE)

    def test_unmount_needs_nothing(self) -> None:
        assert OperationRequest(kind=OperationKind.UNMOUNT).secret is None

    def test_secret_not_in_repr(self) -> None:
        request = OperationRequest(kind=OperationKind.BACKUP, secret="hunter2")
        assert "hunter2" not in repr(request)


class TestOperationResult:
    def test_success_without_error(self) -> None:
        result = OperationResult(kind=OperationKind.UNMOUNT, transcript=("a", "b"))
        assert result.success is True
        assert result.message == "a\nb"

    def test_failure_with_error(self) -> None:
        result = OperationResult(kind=OperationKind.UNMOUNT, transcript=(), error="failed to export pool: x")
        assert result.success is False


def test_command_error_message_includes_exit_status_and_output() -> None:
    error = CommandError("zpool", ("import", "NIXBACKUPS"), CommandResult(exit_code=1, output="no such pool\n"))
    assert str(error) == "zpool failed: exit status 1\nOutput: no such pool"
    assert error.output == "no such pool\n"


def test_workflow_error_prefixes_context() -> None:
    cause = CommandError("zpool", ("export",), CommandResult(exit_code=1, output="pool is busy"))
    error = WorkflowError("failed to export pool", cause)
    assert str(error).startswith("failed to export pool: zpool failed: exit status 1")
    assert error.cause is cause


def test_full_level_between_debug_and_info() -> None:
    assert LogLevel.DEBUG < LogLevel.FULL < LogLevel.INFO
