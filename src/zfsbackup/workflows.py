"""Backup workflows: fixed command sequences with a human-readable transcript.

Every workflow step either succeeds, warns (best-effort steps append a
warning line and continue) or fails fatally (raises WorkflowError, which
aborts the operation). Already completed steps are never rolled back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from zfsbackup import parsers, zfs
from zfsbackup.config import Configuration
from zfsbackup.executor import Executor
from zfsbackup.logging import get_logger
from zfsbackup.models import (
    CommandError,
    DeviceNotDetectedError,
    OperationKind,
    OperationRequest,
    OperationResult,
    WorkflowError,
)

__all__ = [
    "BackupWorkflow",
    "ForceBackupWorkflow",
    "PrepareWorkflow",
    "UnmountWorkflow",
    "Workflow",
    "WorkflowContext",
    "run_operation",
]


@dataclass(frozen=True)
class WorkflowContext:
    """Context provided to workflows at execution time."""

    executor: Executor
    config: Configuration


class Workflow(ABC):
    """Abstract base class for the four backup operations."""

    kind: ClassVar[OperationKind]

    def __init__(self, context: WorkflowContext) -> None:
        self._context = context
        self.transcript: list[str] = []
        self._logger = get_logger("zfsbackup.workflows", operation=self.kind.value)

    @property
    def executor(self) -> Executor:
        return self._context.executor

    @property
    def config(self) -> Configuration:
        return self._context.config

    @abstractmethod
    async def execute(self, request: OperationRequest) -> None:
        """Run the workflow, appending to self.transcript.

        Raises:
            WorkflowError: When a fatal step fails
        """
        ...

    def _step(self, line: str) -> None:
        """Record a progress line."""
        self.transcript.append(line)
        self._logger.info(line.strip())

    def _block(self, text: str) -> None:
        """Record multi-line command output verbatim."""
        self.transcript.extend(text.rstrip("\n").split("\n"))

    def _warn(self, message: str, error: Exception | None = None) -> None:
        """Record a non-fatal failure."""
        line = f"⚠️  Warning: {message}: {error}" if error is not None else f"⚠️  {message}"
        self.transcript.append(line)
        self._logger.warning(message, error=str(error) if error is not None else None)

    @contextmanager
    def _fatal(self, context: str) -> Iterator[None]:
        """Turn command failures inside the block into a WorkflowError."""
        try:
            yield
        except (CommandError, DeviceNotDetectedError) as e:
            self._logger.error(context, error=str(e))
            raise WorkflowError(context, e) from e

    async def _load_key(self, secret: str) -> None:
        with self._fatal("failed to load encryption key"):
            await zfs.load_key(self.executor, self.config.backup_pool, secret)

    async def _take_snapshot(self, now: datetime, line: str) -> str:
        timestamp = now.strftime(zfs.SNAPSHOT_TIMESTAMP_FORMAT)
        snapshot = zfs.snapshot_name(self.config.source_dataset, now, self.config.snapshot_suffix)
        self._step(f"🗓️  Preparing a snapshot for {timestamp}")
        self._step(line.format(snapshot=snapshot))
        with self._fatal("failed to create snapshot"):
            await zfs.create_snapshot(self.executor, snapshot)
        return snapshot

    async def _export_and_power_off(self, export_line: str, *, announce_first: bool) -> None:
        """Export the backup pool, then power off its device if it was detected.

        The device must be looked up while the pool is still imported. With
        announce_first the export line precedes detection; otherwise it is
        only recorded once a device was found. Export failure is fatal even
        when detection failed.
        """
        pool = self.config.backup_pool
        if announce_first:
            self._step(export_line)
        try:
            device: str | None = await zfs.get_backup_device(self.executor, pool)
        except (CommandError, DeviceNotDetectedError) as e:
            self._logger.warning("Backup device detection failed", error=str(e))
            device = None

        if device is None:
            self._warn("Skipping device power-off due to device detection failure")
        elif not announce_first:
            self._step(export_line)
        with self._fatal("failed to export pool"):
            await zfs.export_pool(self.executor, pool)

        if device is None:
            return

        self._step(f"⚡️ Powering off the USB drive ({device})")
        try:
            await zfs.power_off(self.executor, device)
        except CommandError as e:
            self._warn("failed to power off device", e)


class BackupWorkflow(Workflow):
    """Incremental backup of the source dataset to the backup pool."""

    kind: ClassVar[OperationKind] = OperationKind.BACKUP

    async def execute(self, request: OperationRequest) -> None:
        assert request.secret is not None
        pool = self.config.backup_pool
        now = datetime.now()

        self._step(f"🐴 Checking if {pool} is already imported...")
        with self._fatal("failed to check pool status"):
            imported = await zfs.is_pool_imported(self.executor, pool)

        if not imported:
            self._step(f"🔌 Importing {pool} volume from USB drive")
            with self._fatal("failed to import pool"):
                await zfs.import_pool(self.executor, pool)
            self._step(f"🔓 Loading encryption key for {pool}")
            await self._load_key(request.secret)
        else:
            self._step(f"✅ {pool} is already imported")
            with self._fatal("failed to check key status"):
                status = await zfs.get_key_status(self.executor, pool)
            if status != "available":
                self._step(f"🔓 Loading encryption key for {pool} (key status: {status})")
                await self._load_key(request.secret)
            else:
                self._step("✅ Encryption key is already loaded")

        await self._take_snapshot(now, "📸 Creating local snapshot: {snapshot}")

        self._step("📨 Sending snapshots incrementally to backup disk")
        with self._fatal("syncoid failed"):
            await zfs.replicate(self.executor, self.config.source_dataset, self.config.backup_dataset)

        self._step(
            f"🔖 Creating bookmarks for snapshots older than {self.config.keep_local_snapshots} days "
            "and deleting snapshots"
        )
        try:
            await self._prune_local()
        except CommandError as e:
            self._warn("failed to prune local snapshots", e)

        self._step("🧹 Pruning old snapshots on backup disk (keeping monthly archives)")
        try:
            await self._prune_backup(now)
        except CommandError as e:
            self._warn("failed to prune backup snapshots", e)

        try:
            report = await self._report()
        except CommandError as e:
            self._warn("failed to generate report", e)
        else:
            self.transcript.append("")
            self._block(report.render())
            self.transcript.append("")

        await self._export_and_power_off("🔌 Exporting the backup zpool", announce_first=True)

        self.transcript.append("")
        self._step("✅ Backup completed successfully!")

    async def _prune_local(self) -> None:
        names = await zfs.list_snapshot_names(self.executor, newest_first=True)
        snapshots = parsers.snapshot_list(names, f"{self.config.source_dataset}@")
        await self._bookmark_and_destroy(
            parsers.local_prune_candidates(snapshots, self.config.keep_local_snapshots),
            "local",
        )

    async def _prune_backup(self, now: datetime) -> None:
        names = await zfs.list_snapshot_names(self.executor)
        snapshots = parsers.snapshot_list(names, f"{self.config.backup_dataset}@")
        tokens = parsers.keep_month_tokens(now, self.config.keep_backup_months)
        await self._bookmark_and_destroy(parsers.backup_prune_candidates(snapshots, tokens), "backup")

    async def _bookmark_and_destroy(self, snapshots: list[str], where: str) -> None:
        failed = []
        for snapshot in snapshots:
            if not await zfs.bookmark_and_destroy(self.executor, snapshot):
                failed.append(snapshot)
        self._logger.info("Pruned snapshots", where=where, pruned=len(snapshots) - len(failed), failed=len(failed))
        if failed:
            self._warn(f"could not destroy {len(failed)} {where} snapshot(s): {', '.join(failed)}")

    async def _report(self) -> parsers.BackupReport:
        """Collect report fields; only the snapshot count listing is required."""
        names = await zfs.list_snapshot_names(self.executor)
        local_count = len(parsers.snapshot_list(names, f"{self.config.source_dataset}@"))
        backup_count = len(parsers.snapshot_list(names, f"{self.config.backup_dataset}@"))

        oldest = local_free = backup_free = None
        try:
            listing = await zfs.list_snapshots_by_creation(self.executor)
            oldest = parsers.oldest_snapshot_line(listing, self.config.backup_dataset)
        except CommandError as e:
            self._logger.warning("Could not determine oldest backup snapshot", error=str(e))
        try:
            local_free = await zfs.free_space(self.executor, self.config.source_pool)
        except CommandError as e:
            self._logger.warning("Could not determine free space", pool=self.config.source_pool, error=str(e))
        try:
            backup_free = await zfs.free_space(self.executor, self.config.backup_pool)
        except CommandError as e:
            self._logger.warning("Could not determine free space", pool=self.config.backup_pool, error=str(e))

        return parsers.BackupReport(
            local_count=local_count,
            backup_count=backup_count,
            oldest=oldest,
            local_free=local_free,
            backup_free=backup_free,
        )


class ForceBackupWorkflow(Workflow):
    """Full backup that lets syncoid delete conflicting snapshots on the backup disk."""

    kind: ClassVar[OperationKind] = OperationKind.FORCE_BACKUP

    async def execute(self, request: OperationRequest) -> None:
        assert request.secret is not None
        pool = self.config.backup_pool
        now = datetime.now()

        self._step(f"🔌 Mounting {pool} volume from USB drive")
        with self._fatal("failed to import pool"):
            await zfs.import_pool(self.executor, pool)

        self._step(f"🔓 Loading encryption key for {pool}")
        await self._load_key(request.secret)

        await self._take_snapshot(now, "📸 Taking a snapshot")

        self._step("📨 Force sending the snapshots to the external USB disk")
        with self._fatal("syncoid failed"):
            await zfs.replicate(self.executor, self.config.source_dataset, self.config.backup_dataset, force=True)

        self._step("📝 Listing the snapshots now that it is copied to the USB disk")
        try:
            self._block(await zfs.list_snapshots_table(self.executor))
        except CommandError as e:
            self._warn("failed to list snapshots", e)

        self.transcript.append("")
        self._step("✅ Force backup completed successfully!")


class PrepareWorkflow(Workflow):
    """Create the encrypted backup pool on a new device."""

    kind: ClassVar[OperationKind] = OperationKind.PREPARE

    async def execute(self, request: OperationRequest) -> None:
        assert request.device is not None
        pool = self.config.backup_pool

        self._step(f"🔧 Preparing backup device: {request.device}")
        self._step(f"⚠️  Creating encrypted ZFS pool {pool}")
        with self._fatal("failed to create pool"):
            await zfs.create_encrypted_pool(self.executor, pool, request.device)

        self._step(f"✅ Backup device {request.device} prepared as encrypted ZFS pool {pool}")


class UnmountWorkflow(Workflow):
    """Export the backup pool and power off its drive."""

    kind: ClassVar[OperationKind] = OperationKind.UNMOUNT

    async def execute(self, request: OperationRequest) -> None:
        self._step("🔌 Unmounting the backup zpool")
        self.transcript.append("")

        self.transcript += ["📊 BEFORE STATE:", "================"]
        await self._capture_state()

        await self._export_and_power_off(f"🔓 Exporting {self.config.backup_pool} pool...", announce_first=False)

        self.transcript += ["", "📊 AFTER STATE:", "==============="]
        await self._capture_state()

        self._step("✅ Safe to unplug the external drive")

    async def _capture_state(self) -> None:
        for title, listing in (("ZFS Pools:", zfs.list_pools), ("ZFS Filesystems:", zfs.list_filesystems)):
            try:
                output = await listing(self.executor)
            except CommandError as e:
                self._warn(f"failed to capture {title.rstrip(':').lower()}", e)
                continue
            self.transcript.append(title)
            self._block(output)
            self.transcript.append("")


WORKFLOWS: dict[OperationKind, type[Workflow]] = {
    OperationKind.BACKUP: BackupWorkflow,
    OperationKind.FORCE_BACKUP: ForceBackupWorkflow,
    OperationKind.PREPARE: PrepareWorkflow,
    OperationKind.UNMOUNT: UnmountWorkflow,
}


async def run_operation(request: OperationRequest, context: WorkflowContext) -> OperationResult:
    """Run the workflow for a request and package its outcome.

    Fatal step failures are returned as a failed OperationResult carrying the
    partial transcript; they are not raised.
    """
    workflow = WORKFLOWS[request.kind](context)
    logger = get_logger("zfsbackup.workflows", operation=request.kind.value)
    logger.info("Operation started", device=request.device)

    try:
        await workflow.execute(request)
    except WorkflowError as e:
        logger.error("Operation failed", error=str(e))
        return OperationResult(kind=request.kind, transcript=tuple(workflow.transcript), error=str(e))

    logger.info("Operation completed")
    return OperationResult(kind=request.kind, transcript=tuple(workflow.transcript))
