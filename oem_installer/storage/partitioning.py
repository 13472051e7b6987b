"""Partition table writes with ``sgdisk`` and ``parted``.

These are the only functions that change a disk's partition table. All
offsets are passed to parted in bytes (``<n>B``) unless noted, and parted
is allowed to round them for optimal alignment; callers that need the
final boundaries read them back with ``get_partition_bounds()``.
"""

from __future__ import annotations

from typing import Union

from oem_installer.logging import LoggerFactory
from oem_installer.storage.commands import run_command


log = LoggerFactory.for_provision()


def table_device_path(disk_path: str) -> str:
    """Path handed to sgdisk/parted (``/dev/mapper/x`` -> ``/dev/x``)."""
    return disk_path.replace("mapper/", "")


def reset_partition_table(disk_path: str) -> None:
    """Discard every partition on ``disk_path`` and write an empty GPT."""
    device = table_device_path(disk_path)
    log.warning(f"Destroying partition table on {device}")
    run_command(["sgdisk", device, "--randomize-guids", "--move-second-header"])
    run_command(["parted", "-ms", device, "mklabel", "gpt"])


def create_partition(
    disk_path: str,
    number: int,
    name: str,
    fs_type: str,
    start: Union[int, str],
    end: Union[int, str],
) -> None:
    """Create partition ``number`` named ``name`` between ``start`` and ``end``.

    Integer offsets are bytes; strings such as ``"100%"`` are passed as is.
    """
    device = table_device_path(disk_path)
    start_arg = f"{start}B" if isinstance(start, int) else start
    end_arg = f"{end}B" if isinstance(end, int) else end
    log.debug(f"Creating partition {number} ({name}) on {device}: {start_arg}-{end_arg}")
    run_command(
        [
            "parted", "-a", "optimal", "-ms", device, "--",
            "mkpart", "primary", fs_type, start_arg, end_arg,
            "name", str(number), name,
        ]
    )


def set_boot_flag(disk_path: str, number: int) -> None:
    run_command(
        ["parted", "-ms", table_device_path(disk_path), "set", str(number), "boot", "on"]
    )


def create_recovery_table(
    disk_path: str, number: int, label: str, begin_mib: int, end_mib: int
) -> None:
    """Write a fresh GPT holding a single bootable FAT32 recovery partition."""
    device = table_device_path(disk_path)
    log.warning(f"Writing new GPT with recovery partition on {device}")
    run_command(
        [
            "parted", "-ms", "-a", "optimal", device,
            "unit", "MiB",
            "mklabel", "gpt",
            "mkpart", "primary", "fat32", str(begin_mib), str(end_mib),
            "name", str(number), label,
            "set", str(number), "boot", "on",
            "print",
        ]
    )
