"""Unit tests for the zpool/zfs output parsers."""

from __future__ import annotations

from datetime import datetime

import pytest

from zfsbackup import parsers
from zfsbackup.models import DeviceNotDetectedError

ZPOOL_STATUS = """\
  pool: NIXBACKUPS
 state: ONLINE
config:

\tNAME        STATE     READ WRITE CKSUM
\tNIXBACKUPS  ONLINE       0     0     0
\t  sda1      ONLINE       0     0     0

errors: No known data errors
"""


class TestPoolImported:
    def test_pool_present(self) -> None:
        output = "NAME        SIZE  ALLOC   FREE\nNIXROOT     928G   412G   516G\nNIXBACKUPS  1.8T   1.1T   700G\n"
        assert parsers.pool_imported(output, "NIXBACKUPS") is True

    def test_pool_absent(self) -> None:
        output = "NAME     SIZE  ALLOC   FREE\nNIXROOT  928G   412G   516G\n"
        assert parsers.pool_imported(output, "NIXBACKUPS") is False

    def test_substring_match_is_accepted(self) -> None:
        """A pool whose name contains the requested name counts as imported."""
        assert parsers.pool_imported("NIXBACKUPS2  1.8T\n", "NIXBACKUPS") is True


class TestKeyStatus:
    @pytest.mark.parametrize("output", ["available\n", "  available  ", "available"])
    def test_whitespace_is_stripped(self, output: str) -> None:
        assert parsers.key_status(output) == "available"

    def test_unavailable(self) -> None:
        assert parsers.key_status("unavailable\n") == "unavailable"


class TestBackupDevice:
    def test_partition_suffix_stripped(self) -> None:
        assert parsers.backup_device(ZPOOL_STATUS) == "/dev/sda"

    def test_whole_disk(self) -> None:
        assert parsers.backup_device("\t  sdb      ONLINE       0     0     0\n") == "/dev/sdb"

    def test_nvme_namespace_kept(self) -> None:
        status = "\t  nvme0n1   ONLINE       0     0     0\n"
        assert parsers.backup_device(status) == "/dev/nvme0n1"

    def test_nvme_partition_stripped(self) -> None:
        status = "\t  nvme0n1p2 ONLINE       0     0     0\n"
        assert parsers.backup_device(status) == "/dev/nvme0n1"

    def test_first_online_device_wins(self) -> None:
        status = "\t  sdc1  ONLINE  0 0 0\n\t  sdd1  ONLINE  0 0 0\n"
        assert parsers.backup_device(status) == "/dev/sdc"

    def test_offline_device_is_ignored(self) -> None:
        with pytest.raises(DeviceNotDetectedError):
            parsers.backup_device("\t  sda1      OFFLINE      0     0     0\n")

    def test_unindented_line_is_ignored(self) -> None:
        with pytest.raises(DeviceNotDetectedError):
            parsers.backup_device("sda1 ONLINE 0 0 0\n")

    def test_no_device_line(self) -> None:
        with pytest.raises(DeviceNotDetectedError, match="could not detect backup device"):
            parsers.backup_device("cannot open 'NIXBACKUPS': no such pool\n")


class TestSnapshotList:
    def test_filters_by_prefix_preserving_order(self) -> None:
        output = (
            "NIXROOT/home@2025-01-03.10h-00-Home\n"
            "NIXBACKUPS/home@2025-01-01.10h-00-Home\n"
            "NIXROOT/home@2025-01-02.10h-00-Home\n"
            "NIXROOT/nix@2025-01-02.10h-00\n"
        )
        assert parsers.snapshot_list(output, "NIXROOT/home@") == [
            "NIXROOT/home@2025-01-03.10h-00-Home",
            "NIXROOT/home@2025-01-02.10h-00-Home",
        ]

    def test_sibling_dataset_not_matched(self) -> None:
        assert parsers.snapshot_list("NIXROOT/homework@x\n", "NIXROOT/home@") == []

    def test_empty_output(self) -> None:
        assert parsers.snapshot_list("", "NIXROOT/home@") == []


def test_bookmark_name_replaces_first_separator() -> None:
    assert parsers.bookmark_name("NIXROOT/home@2025-01-15.10h-30-Home") == "NIXROOT/home#2025-01-15.10h-30-Home"


class TestLocalPruneCandidates:
    def test_nothing_pruned_at_or_below_limit(self) -> None:
        snaps = [f"NIXROOT/home@{i}" for i in range(7)]
        assert parsers.local_prune_candidates(snaps, 7) == []

    def test_oldest_beyond_limit_pruned(self) -> None:
        snaps = [f"NIXROOT/home@{i}" for i in range(10)]
        pruned = parsers.local_prune_candidates(snaps, 7)
        assert pruned == ["NIXROOT/home@7", "NIXROOT/home@8", "NIXROOT/home@9"]
        # The most recent ones are never candidates
        assert not set(pruned) & set(snaps[:7])


class TestKeepMonthTokens:
    def test_mid_year(self) -> None:
        assert parsers.keep_month_tokens(datetime(2025, 6, 30)) == ["2025-06", "2025-05", "2025-04"]

    def test_across_year_boundary(self) -> None:
        assert parsers.keep_month_tokens(datetime(2025, 2, 1)) == ["2025-02", "2025-01", "2024-12"]

    def test_custom_month_count(self) -> None:
        assert parsers.keep_month_tokens(datetime(2025, 1, 31), months=1) == ["2025-01"]

    def test_calendar_months_not_day_offsets(self) -> None:
        """March 31st minus one month is February, not early March."""
        assert parsers.keep_month_tokens(datetime(2025, 3, 31), months=2) == ["2025-03", "2025-02"]


def test_backup_prune_candidates_keep_recent_months() -> None:
    snaps = [
        "NIXBACKUPS/home@2024-10-30.09h-00-Home",
        "NIXBACKUPS/home@2024-11-02.09h-00-Home",
        "NIXBACKUPS/home@2024-12-24.09h-00-Home",
        "NIXBACKUPS/home@2025-01-15.09h-00-Home",
    ]
    tokens = parsers.keep_month_tokens(datetime(2025, 1, 15))
    assert parsers.backup_prune_candidates(snaps, tokens) == ["NIXBACKUPS/home@2024-10-30.09h-00-Home"]


@pytest.mark.parametrize(
    ("local", "backup", "expected"),
    [(10, 4, 6), (4, 4, 0), (2, 9, 0)],
)
def test_missing_count_never_negative(local: int, backup: int, expected: int) -> None:
    assert parsers.missing_count(local, backup) == expected


class TestOldestSnapshotLine:
    def test_first_matching_line(self) -> None:
        listing = (
            "NAME                                     CREATION\n"
            "NIXROOT/home@2024-09-01.10h-00-Home      Sun Sep  1 10:00 2024\n"
            "NIXBACKUPS/home@2024-11-01.10h-00-Home   Fri Nov  1 10:00 2024\n"
            "NIXBACKUPS/home@2024-12-01.10h-00-Home   Sun Dec  1 10:00 2024\n"
        )
        line = parsers.oldest_snapshot_line(listing, "NIXBACKUPS/home")
        assert line == "NIXBACKUPS/home@2024-11-01.10h-00-Home   Fri Nov  1 10:00 2024"

    def test_no_match(self) -> None:
        assert parsers.oldest_snapshot_line("NAME CREATION\n", "NIXBACKUPS/home") is None


class TestBackupReport:
    def test_full_report(self) -> None:
        report = parsers.BackupReport(
            local_count=7,
            backup_count=5,
            oldest="NIXBACKUPS/home@2024-11-01.10h-00-Home  Fri Nov  1 10:00 2024",
            local_free="516G",
            backup_free="700G",
        )
        assert report.render().split("\n") == [
            "📊 Backup Report Summary",
            "─" * 50,
            "• Oldest snapshot: NIXBACKUPS/home@2024-11-01.10h-00-Home  Fri Nov  1 10:00 2024",
            "• Snapshots on local: 7",
            "• Snapshots on backup: 5",
            "• Missing snapshots: 2",
            "• Free space on local: 516G",
            "• Free space on backup: 700G",
        ]

    def test_optional_fields_omitted(self) -> None:
        rendered = parsers.BackupReport(local_count=3, backup_count=8).render()
        assert "Oldest snapshot" not in rendered
        assert "Free space" not in rendered
        assert "• Missing snapshots: 0" in rendered
