"""Partition table reading with ``parted`` machine-readable output.

``parted -ms /dev/sda unit B print`` prints::

    BYT;
    /dev/sda:500107862016B:scsi:512:512:gpt:ATA Samsung SSD:;
    1:1048576B:538968063B:537919488B:fat32:system-boot:boot, esp;
    2:538968064B:500106788863B:499567820800B:ext4:writable:;

The disk line gives the total size, every numbered line one partition.
"""

from __future__ import annotations

from oem_installer.domain import UNSET, Partitions, PartitionEntry, PartitionTable
from oem_installer.logging import LoggerFactory
from oem_installer.storage.commands import run_command
from oem_installer.storage.exceptions import (
    CommandError,
    DeviceNotFoundError,
    ParseError,
)


log = LoggerFactory.for_discovery()


def _parse_bytes(field: str) -> int:
    return int(field.strip().rstrip(";").rstrip("B"))


def parse_parted_output(device_path: str, output: str) -> PartitionTable:
    """Parse ``parted -ms ... unit B print`` output.

    A malformed disk size only logs a warning; a malformed partition line
    raises, since a half-read table must never drive a layout.

    Raises:
        ParseError: If a partition line has missing or invalid offsets
    """
    disk_size = UNSET
    entries: list[PartitionEntry] = []

    for line in output.splitlines():
        fields = line.strip().split(":")

        if "/dev/" in fields[0]:
            try:
                disk_size = _parse_bytes(fields[1])
            except (IndexError, ValueError):
                log.warning(f"Parsing disk size failed: {line.strip()}")
            continue

        try:
            number = int(fields[0])
        except ValueError:
            continue

        try:
            start = _parse_bytes(fields[1])
            end = _parse_bytes(fields[2])
        except (IndexError, ValueError) as error:
            raise ParseError(
                f"Malformed partition entry for {device_path}: {line.strip()}"
            ) from error

        entries.append(PartitionEntry(number=number, start=start, end=end))

    return PartitionTable(
        device_path=device_path, disk_size=disk_size, entries=tuple(entries)
    )


def read_partition_table(device_path: str) -> PartitionTable:
    """Dump and parse the partition table of a whole disk.

    parted exits non-zero on a blank disk ("unrecognised disk label") but
    still prints the disk line, so its output is parsed whatever the exit
    status. Only a dump with no output at all is an error.

    Raises:
        CommandError: If parted fails without printing anything
        ParseError: If a partition line is malformed
    """
    command = ["parted", "-ms", device_path, "unit", "B", "print"]
    result = run_command(command, check=False)
    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        if not (result.stdout or "").strip():
            raise CommandError(command, result.returncode, stderr)
        log.info(f"{device_path} has no usable partition table: {stderr}")
    table = parse_parted_output(device_path, result.stdout)
    log.debug(
        f"{device_path}: {len(table.entries)} partitions, {table.disk_size} bytes"
    )
    return table


def apply_partition_table(partitions: Partitions, table: PartitionTable) -> None:
    """Copy disk size, last partition number and, when the installer runs
    from the target disk itself, the recovery partition boundaries."""
    partitions.target_size = table.disk_size
    partitions.last_part_nr = table.last_part_nr

    if partitions.same_device and partitions.recovery_nr != UNSET:
        entry = table.get(partitions.recovery_nr)
        if entry is not None:
            partitions.recovery_start = entry.start
            partitions.recovery_end = entry.end


def get_partition_bounds(device_path: str, number: int) -> tuple[int, int]:
    """Actual (start, end) byte offsets of a partition as stored on disk.

    Raises:
        DeviceNotFoundError: If the partition does not exist
    """
    entry = read_partition_table(device_path).get(number)
    if entry is None:
        raise DeviceNotFoundError(
            f"{device_path} partition {number}", "not in partition table"
        )
    return entry.start, entry.end
