"""Tests for the force backup workflow."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from zfsbackup.models import OperationKind, OperationRequest
from zfsbackup.workflows import WorkflowContext, run_operation

if TYPE_CHECKING:
    from conftest import CommandScript

SNAPSHOT_TABLE = """\
NAME                                     USED  AVAIL  REFER  MOUNTPOINT
NIXROOT/home@2025-01-15.10h-30-Home         0B      -   402G  -
NIXBACKUPS/home@2025-01-15.10h-30-Home      0B      -   401G  -"""


def _request() -> OperationRequest:
    return OperationRequest(kind=OperationKind.FORCE_BACKUP, secret="s3cret")


async def test_command_sequence(
    script: CommandScript, workflow_context: WorkflowContext, issued: Callable[[], list[str]]
) -> None:
    script.on("zfs", "list", "-t", "snapshot", output=SNAPSHOT_TABLE + "\n")

    result = await run_operation(_request(), workflow_context)

    assert result.success
    assert issued() == [
        "zpool import NIXBACKUPS",
        "zfs load-key NIXBACKUPS",
        "zfs snapshot NIXROOT/home@2025-01-15.10h-30-Home",
        "syncoid --force-delete NIXROOT/home NIXBACKUPS/home",
        "zfs list -t snapshot",
    ]


async def test_transcript_includes_listing(script: CommandScript, workflow_context: WorkflowContext) -> None:
    script.on("zfs", "list", "-t", "snapshot", output=SNAPSHOT_TABLE + "\n")

    result = await run_operation(_request(), workflow_context)

    assert list(result.transcript) == [
        "🔌 Mounting NIXBACKUPS volume from USB drive",
        "🔓 Loading encryption key for NIXBACKUPS",
        "🗓️  Preparing a snapshot for 2025-01-15.10h-30",
        "📸 Taking a snapshot",
        "📨 Force sending the snapshots to the external USB disk",
        "📝 Listing the snapshots now that it is copied to the USB disk",
        *SNAPSHOT_TABLE.split("\n"),
        "",
        "✅ Force backup completed successfully!",
    ]


async def test_import_is_unconditional(script: CommandScript, workflow_context: WorkflowContext) -> None:
    """Unlike the incremental backup there is no imported-pool check, so a live pool fails the import."""
    script.fail("zpool", "import", output="cannot import 'NIXBACKUPS': a pool with that name already exists")

    result = await run_operation(_request(), workflow_context)

    assert result.error is not None
    assert result.error.startswith("failed to import pool: ")
    assert result.transcript == ("🔌 Mounting NIXBACKUPS volume from USB drive",)


async def test_replication_failure_is_fatal(script: CommandScript, workflow_context: WorkflowContext) -> None:
    script.fail("syncoid", output="CRITICAL ERROR: target exists")

    result = await run_operation(_request(), workflow_context)

    assert result.error is not None
    assert result.error.startswith("syncoid failed: ")


async def test_listing_failure_warns(script: CommandScript, workflow_context: WorkflowContext) -> None:
    script.fail("zfs", "list", "-t", "snapshot")

    result = await run_operation(_request(), workflow_context)

    assert result.success
    assert result.transcript[-3].startswith("⚠️  Warning: failed to list snapshots: ")
    assert result.transcript[-1] == "✅ Force backup completed successfully!"
