"""Filesystem creation.

Supported Filesystems:
    vfat:   FAT32, used for the recovery and system-boot partitions
    ext4:   used for the writable partition (plain or inside LUKS)
    swap:   swap signature for the optional swap partition
"""

from __future__ import annotations

from typing import List, Optional

from oem_installer.logging import LoggerFactory
from oem_installer.storage.commands import run_command


log = LoggerFactory.for_provision()

SUPPORTED_FILESYSTEMS = ("vfat", "ext4", "swap")


def build_format_command(
    partition_path: str, filesystem: str, label: Optional[str] = None
) -> List[str]:
    """Build the mkfs command for ``filesystem``.

    Raises:
        ValueError: If the filesystem type is not supported
    """
    filesystem = filesystem.lower()

    if filesystem == "vfat":
        command = ["mkfs.vfat", "-F", "32"]
        if label:
            command.extend(["-n", label])
    elif filesystem == "ext4":
        command = ["mkfs.ext4", "-F"]
        if label:
            command.extend(["-L", label])
    elif filesystem == "swap":
        command = ["mkswap"]
        if label:
            command.extend(["-L", label])
    else:
        raise ValueError(f"Unsupported filesystem type: {filesystem}")

    command.append(partition_path)
    return command


def format_filesystem(
    partition_path: str, filesystem: str, label: Optional[str] = None
) -> None:
    """Format a partition.

    Raises:
        ValueError: If the filesystem type is not supported
        CommandError: If the mkfs tool fails
    """
    command = build_format_command(partition_path, filesystem, label)
    log.debug(f"Formatting {partition_path} as {filesystem} (label: {label})")
    run_command(command)
    log.debug(f"Successfully formatted {partition_path} as {filesystem}")
