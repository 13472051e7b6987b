"""Tests for storage/partition_table.py - parted output parsing."""

import subprocess
from unittest.mock import patch

import pytest

from oem_installer.domain import UNSET, Partitions
from oem_installer.storage import partition_table
from oem_installer.storage.exceptions import (
    CommandError,
    DeviceNotFoundError,
    ParseError,
)


class TestParsePartedOutput:
    """Tests for parse_parted_output()."""

    def test_parses_disk_and_partitions(self, parted_output):
        table = partition_table.parse_parted_output("/dev/sda", parted_output)

        assert table.disk_size == 500107862016
        assert [entry.number for entry in table.entries] == [1, 2, 3]
        assert table.last_part_nr == 3
        first = table.get(1)
        assert (first.start, first.end) == (1048576, 538968063)

    def test_empty_table(self):
        output = "BYT;\n/dev/sdb:16106127360B:scsi:512:512:gpt:USB Stick:;\n"

        table = partition_table.parse_parted_output("/dev/sdb", output)

        assert table.entries == ()
        assert table.last_part_nr == UNSET
        assert table.disk_size == 16106127360

    def test_bad_disk_size_only_warns(self):
        output = "BYT;\n/dev/sdb:garbage:scsi:512:512:gpt:x:;\n1:1048576B:2097151B:1048576B:::;\n"

        table = partition_table.parse_parted_output("/dev/sdb", output)

        assert table.disk_size == UNSET
        assert table.get(1).end == 2097151

    def test_bad_partition_offsets_raise(self):
        output = "BYT;\n/dev/sdb:100B:scsi:512:512:gpt:x:;\n1:abcB:200B:;\n"

        with pytest.raises(ParseError):
            partition_table.parse_parted_output("/dev/sdb", output)

    def test_unknown_disk_label(self):
        output = "BYT;\n/dev/sdb:32017047552B:scsi:512:512:unknown:Disk:;\n"

        table = partition_table.parse_parted_output("/dev/sdb", output)

        assert table.disk_size == 32017047552
        assert table.entries == ()


class TestReadPartitionTable:
    """Tests for read_partition_table()."""

    BLANK_DISK = "BYT;\n/dev/sdb:32017047552B:scsi:512:512:unknown:Disk:;\n"

    def test_blank_disk_reads_as_empty_table(self, recording_runner):
        recording_runner.respond(["parted"], self.BLANK_DISK, returncode=1)

        with patch("oem_installer.storage.partition_table.run_command", recording_runner):
            table = partition_table.read_partition_table("/dev/sdb")

        assert table.disk_size == 32017047552
        assert table.entries == ()
        assert table.last_part_nr == UNSET

    def test_failure_without_output_raises(self, recording_runner):
        recording_runner.respond(["parted"], "", returncode=1)

        with patch("oem_installer.storage.partition_table.run_command", recording_runner):
            with pytest.raises(CommandError):
                partition_table.read_partition_table("/dev/sdb")

    def test_malformed_partition_still_raises_on_failure(self, recording_runner):
        recording_runner.respond(
            ["parted"], self.BLANK_DISK + "1:abcB:200B:;\n", returncode=1
        )

        with patch("oem_installer.storage.partition_table.run_command", recording_runner):
            with pytest.raises(ParseError):
                partition_table.read_partition_table("/dev/sdb")


class TestApplyPartitionTable:
    """Tests for apply_partition_table()."""

    def test_sets_size_and_last_partition(self, parted_output):
        table = partition_table.parse_parted_output("/dev/sda", parted_output)
        partitions = Partitions(
            source_dev_path="/dev/sdb", target_dev_path="/dev/sda", recovery_nr=1
        )

        partition_table.apply_partition_table(partitions, table)

        assert partitions.target_size == 500107862016
        assert partitions.last_part_nr == 3
        assert partitions.recovery_end == 20479

    def test_same_device_reads_recovery_bounds(self, parted_output):
        table = partition_table.parse_parted_output("/dev/sda", parted_output)
        partitions = Partitions(
            source_dev_path="/dev/sda", target_dev_path="/dev/sda", recovery_nr=1
        )

        partition_table.apply_partition_table(partitions, table)

        assert partitions.recovery_start == 1048576
        assert partitions.recovery_end == 538968063


class TestGetPartitionBounds:
    @patch("oem_installer.storage.partition_table.run_command")
    def test_returns_bounds(self, mock_run, parted_output):
        mock_run.return_value = subprocess.CompletedProcess([], 0, parted_output, "")

        assert partition_table.get_partition_bounds("/dev/sda", 2) == (
            538968064,
            643825663,
        )
        mock_run.assert_called_once_with(
            ["parted", "-ms", "/dev/sda", "unit", "B", "print"], check=False
        )

    @patch("oem_installer.storage.partition_table.run_command")
    def test_missing_partition_raises(self, mock_run, parted_output):
        mock_run.return_value = subprocess.CompletedProcess([], 0, parted_output, "")

        with pytest.raises(DeviceNotFoundError):
            partition_table.get_partition_bounds("/dev/sda", 7)
