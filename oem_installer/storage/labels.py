"""Filesystem label lookup and partition path helpers.

A label is resolved with ``findfs`` to a partition device path such as
``/dev/mmcblk0p3``, which is then split into the whole-disk path and the
partition number::

    /dev/mmcblk0p3  ->  ("mmcblk0", "/dev/mmcblk0", 3)
    /dev/sda2       ->  ("sda", "/dev/sda", 2)
    /dev/nvme0n1p1  ->  ("nvme0n1", "/dev/nvme0n1", 1)
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from oem_installer.logging import LoggerFactory
from oem_installer.storage.commands import run_command
from oem_installer.storage.exceptions import (
    CommandError,
    DeviceNotFoundError,
    ParseError,
)


log = LoggerFactory.for_discovery()

# Whole-disk names that end in a digit use a "p" separator before the
# partition number (mmcblk0p1, nvme0n1p1, md126p1, loop0p1).
_WHOLE_DISK_RE = re.compile(
    r"^/dev/(?:mmcblk\d+|nvme\d+n\d+|md\d+|loop\d+|[a-z]+)$"
)


def get_device_node(device_path: str) -> str:
    """Bare device name of a path (``/dev/sda`` -> ``sda``)."""
    return PurePosixPath(device_path).name


def split_partition_path(partition_path: str) -> tuple[str, int]:
    """Split a partition device path into (whole-disk path, partition number).

    Raises:
        ParseError: If the path carries no numeric partition suffix
    """
    match = re.match(r"^(?P<disk>.*?)(?P<nr>\d+)$", partition_path)
    if not match or not match.group("disk"):
        raise ParseError(f"No partition number in device path: {partition_path}")
    disk = match.group("disk")
    if len(disk) > 1 and disk.endswith("p") and disk[-2].isdigit():
        disk = disk[:-1]
    return disk, int(match.group("nr"))


def whole_disk_path(device_path: str) -> str:
    """Return the whole-disk path for a disk or partition device path.

    NVMe paths and paths that already name a whole disk are returned as is.
    """
    if "nvme" in device_path or _WHOLE_DISK_RE.match(device_path):
        return device_path
    return split_partition_path(device_path)[0]


def partition_path(disk_path: str, number: int) -> str:
    """Device path of partition ``number`` on ``disk_path``."""
    separator = "p" if disk_path[-1].isdigit() else ""
    return f"{disk_path}{separator}{number}"


def find_partition(label: str) -> tuple[str, str, int]:
    """Resolve a filesystem label to (device node, device path, partition number).

    Args:
        label: Filesystem label, e.g. "recovery"

    Raises:
        DeviceNotFoundError: If no filesystem carries the label
        ParseError: If the resolved path has no partition number
    """
    try:
        result = run_command(["findfs", f"LABEL={label}"], log_output=False)
    except CommandError as error:
        raise DeviceNotFoundError(f"LABEL={label}", "label not found") from error

    full_path = result.stdout.strip()
    if "/dev/" not in full_path:
        raise DeviceNotFoundError(f"LABEL={label}", "label not found")

    device_path, part_nr = split_partition_path(full_path)
    device_node = get_device_node(device_path)
    log.debug(f"Label {label} is partition {part_nr} of {device_path}")
    return device_node, device_path, part_nr
