"""ZFS, syncoid and udisksctl command wrappers.

Each function runs exactly one external command through an Executor and
raises CommandError when that command fails. Deciding whether a failure is
fatal is left to the calling workflow.
"""

from __future__ import annotations

import os
from datetime import datetime

from zfsbackup import parsers
from zfsbackup.executor import Executor
from zfsbackup.models import CommandError, CommandResult, PreconditionError

__all__ = [
    "bookmark_and_destroy",
    "check_permissions",
    "create_encrypted_pool",
    "create_snapshot",
    "export_pool",
    "free_space",
    "get_backup_device",
    "get_key_status",
    "import_pool",
    "is_pool_imported",
    "list_filesystems",
    "list_pools",
    "list_snapshot_names",
    "list_snapshots_by_creation",
    "list_snapshots_table",
    "load_key",
    "power_off",
    "replicate",
    "snapshot_name",
]

SNAPSHOT_TIMESTAMP_FORMAT = "%Y-%m-%d.%Hh-%M"

# Options for a freshly created backup pool; the passphrase is prompted by zpool itself
POOL_CREATE_OPTIONS = (
    "encryption=aes-256-gcm",
    "keyformat=passphrase",
    "keylocation=prompt",
    "compression=zstd",
    "atime=off",
)


async def _run(
    executor: Executor,
    program: str,
    *args: str,
    stdin: str | None = None,
    interactive: bool = False,
) -> CommandResult:
    """Run a command and raise CommandError if it fails."""
    result = await executor.run_command(program, *args, stdin=stdin, interactive=interactive)
    if not result.success:
        raise CommandError(program, args, result)
    return result


def snapshot_name(dataset: str, now: datetime, suffix: str) -> str:
    """Generate a snapshot name like "NIXROOT/home@2025-01-15.10h-30-Home"."""
    return f"{dataset}@{now.strftime(SNAPSHOT_TIMESTAMP_FORMAT)}-{suffix}"


async def list_pools(executor: Executor) -> str:
    """Return `zpool list` output."""
    return (await _run(executor, "zpool", "list")).output


async def list_filesystems(executor: Executor) -> str:
    """Return `zfs list` output."""
    return (await _run(executor, "zfs", "list")).output


async def is_pool_imported(executor: Executor, pool: str) -> bool:
    """Check whether a pool is currently imported."""
    return parsers.pool_imported(await list_pools(executor), pool)


async def get_key_status(executor: Executor, dataset: str) -> str:
    """Return the keystatus property of a dataset ("available" once loaded)."""
    result = await _run(executor, "zfs", "get", "-H", "-o", "value", "keystatus", dataset)
    return parsers.key_status(result.output)


async def import_pool(executor: Executor, pool: str) -> None:
    await _run(executor, "zpool", "import", pool)


async def export_pool(executor: Executor, pool: str) -> None:
    await _run(executor, "zpool", "export", pool)


async def load_key(executor: Executor, dataset: str, secret: str) -> None:
    """Load an encryption key, supplying the passphrase on standard input."""
    await _run(executor, "zfs", "load-key", dataset, stdin=secret)


async def create_snapshot(executor: Executor, snapshot: str) -> None:
    await _run(executor, "zfs", "snapshot", snapshot)


async def replicate(executor: Executor, source: str, destination: str, *, force: bool = False) -> None:
    """Replicate source to destination with syncoid.

    Incremental mode creates a bookmark on the source so later runs can
    continue after the source snapshot is pruned. Force mode lets syncoid
    delete conflicting destination snapshots.
    """
    flag = "--force-delete" if force else "--create-bookmark"
    await _run(executor, "syncoid", flag, source, destination)


async def list_snapshot_names(executor: Executor, *, newest_first: bool = False) -> str:
    """Return snapshot names, one per line, optionally sorted newest first."""
    args = ["list", "-H", "-o", "name", "-t", "snapshot"]
    if newest_first:
        args += ["-S", "creation"]
    return (await _run(executor, "zfs", *args)).output


async def list_snapshots_table(executor: Executor) -> str:
    """Return the human-readable `zfs list -t snapshot` table."""
    return (await _run(executor, "zfs", "list", "-t", "snapshot")).output


async def list_snapshots_by_creation(executor: Executor) -> str:
    """Return snapshot names with creation time, oldest first."""
    return (await _run(executor, "zfs", "list", "-t", "snapshot", "-o", "name,creation", "-s", "creation")).output


async def bookmark_and_destroy(executor: Executor, snapshot: str) -> bool:
    """Bookmark a snapshot, then destroy it.

    Both steps are best-effort: a failed bookmark (e.g. one already exists)
    does not prevent the destroy.

    Returns:
        True if the snapshot was destroyed
    """
    await executor.run_command("zfs", "bookmark", snapshot, parsers.bookmark_name(snapshot))
    result = await executor.run_command("zfs", "destroy", snapshot)
    return result.success


async def get_backup_device(executor: Executor, pool: str) -> str:
    """Detect the block device backing a pool.

    Raises:
        CommandError: If `zpool status` fails
        DeviceNotDetectedError: If no ONLINE device line is found
    """
    result = await _run(executor, "zpool", "status", pool)
    return parsers.backup_device(result.output)


async def power_off(executor: Executor, device: str) -> None:
    await _run(executor, "udisksctl", "power-off", "-b", device)


async def free_space(executor: Executor, dataset: str) -> str:
    """Return the available-space property of a dataset, e.g. "1.2T"."""
    return (await _run(executor, "zfs", "list", "-H", "-o", "available", dataset)).output.strip()


async def create_encrypted_pool(executor: Executor, pool: str, device: str) -> None:
    """Create an encrypted pool on device. zpool prompts for the passphrase on the terminal."""
    args: list[str] = ["create"]
    for option in POOL_CREATE_OPTIONS:
        args += ["-O", option]
    await _run(executor, "zpool", *args, pool, device, interactive=True)


async def check_permissions(executor: Executor, *, require_root: bool = False) -> None:
    """Verify that ZFS can be managed by this process.

    Args:
        executor: Executor used for the read-only probe
        require_root: Demand an effective uid of 0 instead of probing

    Raises:
        PreconditionError: If the process lacks the required privileges
    """
    if require_root:
        if os.geteuid() != 0:
            raise PreconditionError("this tool must be run as root.\nPlease run with: sudo zfs-backup")
        return

    result = await executor.run_command("zfs", "list", "-H", "-o", "name")
    if not result.success:
        raise PreconditionError(
            "insufficient permissions to run ZFS commands.\n"
            "Please run with: sudo zfs-backup\n"
            "Or configure ZFS delegation for your user"
        )
