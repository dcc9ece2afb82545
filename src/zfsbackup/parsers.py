"""Parsers for the line-oriented output of zpool and zfs.

All functions here are pure: they take captured command output and return
derived facts. Nothing is cached, since pool state can change between calls.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from zfsbackup.models import DeviceNotDetectedError

__all__ = [
    "BackupReport",
    "backup_device",
    "backup_prune_candidates",
    "bookmark_name",
    "keep_month_tokens",
    "key_status",
    "local_prune_candidates",
    "missing_count",
    "oldest_snapshot_line",
    "pool_imported",
    "snapshot_list",
]

DEVICE_PREFIX = "/dev/"

# Device lines in `zpool status` are indented and followed by their state
_DEVICE_LINE_RE = re.compile(r"^\s+(?P<disk>sd[a-z]+|nvme[0-9]+n[0-9]+)(?P<partition>p?[0-9]+)?\s+ONLINE")

REPORT_RULE_WIDTH = 50


def pool_imported(pool_list_output: str, pool: str) -> bool:
    """Return True if the pool name appears anywhere in `zpool list` output.

    Plain substring match: a pool whose name contains another pool's name
    will also match.
    """
    return pool in pool_list_output


def key_status(property_output: str) -> str:
    """Return the keystatus value from `zfs get -H -o value keystatus <dataset>`."""
    return property_output.strip()


def backup_device(pool_status_output: str) -> str:
    """Extract the block device backing a pool from `zpool status` output.

    Only the first ONLINE sdX/nvmeXnY line is considered; additional vdevs
    in mirrored or striped pools are ignored. A partition suffix (sda1, nvme0n1p2)
    is dropped so the whole disk can be powered off.

    Args:
        pool_status_output: Raw output of `zpool status <pool>`

    Returns:
        Device path such as "/dev/sda"

    Raises:
        DeviceNotDetectedError: If no matching device line exists
    """
    for line in pool_status_output.split("\n"):
        match = _DEVICE_LINE_RE.match(line)
        if match:
            device = match.group("disk")
            if not device.startswith(DEVICE_PREFIX):
                device = DEVICE_PREFIX + device
            return device
    raise DeviceNotDetectedError()


def snapshot_list(names_output: str, prefix: str) -> list[str]:
    """Return snapshot names starting with prefix, preserving input order.

    Args:
        names_output: Output of `zfs list -H -o name -t snapshot [-S creation]`
        prefix: Dataset prefix including the separator, e.g. "NIXROOT/home@"
    """
    return [line for line in names_output.strip().split("\n") if line.startswith(prefix)]


def bookmark_name(snapshot: str) -> str:
    """Map `dataset@label` to the bookmark name `dataset#label`."""
    return snapshot.replace("@", "#", 1)


def local_prune_candidates(snapshots_newest_first: Sequence[str], keep: int) -> list[str]:
    """Return the snapshots beyond the `keep` most recent ones."""
    if len(snapshots_newest_first) <= keep:
        return []
    return list(snapshots_newest_first[keep:])


def keep_month_tokens(now: datetime, months: int = 3) -> list[str]:
    """Return `YYYY-MM` tokens for the current and preceding calendar months.

    Examples:
        >>> keep_month_tokens(datetime(2025, 1, 15))
        ['2025-01', '2024-12', '2024-11']
    """
    tokens = []
    year, month = now.year, now.month
    for _ in range(months):
        tokens.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return tokens


def backup_prune_candidates(snapshots: Iterable[str], tokens: Sequence[str]) -> list[str]:
    """Return snapshots whose name contains none of the month tokens."""
    return [snap for snap in snapshots if not any(token in snap for token in tokens)]


def missing_count(local_count: int, backup_count: int) -> int:
    """Number of local snapshots not represented on the backup pool."""
    return max(0, local_count - backup_count)


def oldest_snapshot_line(listing_output: str, dataset: str) -> str | None:
    """Return the first line mentioning dataset from a creation-sorted listing.

    The listing comes from `zfs list -t snapshot -o name,creation -s creation`,
    so the first matching line carries the oldest snapshot and its timestamp.
    """
    for line in listing_output.split("\n"):
        if dataset in line:
            return line
    return None


@dataclass(frozen=True)
class BackupReport:
    """Summary shown at the end of an incremental backup."""

    local_count: int
    backup_count: int
    oldest: str | None = None
    local_free: str | None = None
    backup_free: str | None = None

    @property
    def missing(self) -> int:
        return missing_count(self.local_count, self.backup_count)

    def render(self) -> str:
        """Render the report in its fixed field order."""
        lines = ["📊 Backup Report Summary", "─" * REPORT_RULE_WIDTH]
        if self.oldest is not None:
            lines.append(f"• Oldest snapshot: {self.oldest}")
        lines.append(f"• Snapshots on local: {self.local_count}")
        lines.append(f"• Snapshots on backup: {self.backup_count}")
        lines.append(f"• Missing snapshots: {self.missing}")
        if self.local_free is not None:
            lines.append(f"• Free space on local: {self.local_free}")
        if self.backup_free is not None:
            lines.append(f"• Free space on backup: {self.backup_free}")
        return "\n".join(lines)
