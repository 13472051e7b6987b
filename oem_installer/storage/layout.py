"""Partition offset planning.

Offsets are planned only for partitions the installer creates at a fixed
size. Each planned partition starts one byte after the previous one ends;
the writable partition is never planned, it takes the rest of the disk
once the partition before it physically exists.
"""

from __future__ import annotations

import dataclasses

from oem_installer.config.settings import InstallerConfig
from oem_installer.domain import MIB, Bootloader, PartitionRole, Partitions
from oem_installer.logging import LoggerFactory
from oem_installer.storage.exceptions import UnknownRoleError


log = LoggerFactory.for_layout()

# Smallest system-boot partition that holds a kernel and initrd.
MIN_BOOT_SIZE_MB = 50


def plan_partition(
    partitions: Partitions,
    role: PartitionRole | str,
    size_mb: int,
    bootloader: Bootloader | str,
) -> Partitions:
    """Return a copy of ``partitions`` with the offsets of ``role`` planned.

    u-boot images ship their boot partitions pre-built, so nothing is
    planned for them.

    Raises:
        UnknownRoleError: If role is neither system-boot nor swap
    """
    try:
        role = PartitionRole(role)
    except ValueError as error:
        raise UnknownRoleError(str(role)) from error
    if role not in (PartitionRole.SYSTEM_BOOT, PartitionRole.SWAP):
        raise UnknownRoleError(role.value)

    if Bootloader(bootloader) != Bootloader.GRUB:
        return dataclasses.replace(partitions)

    size_bytes = size_mb * MIB
    if role == PartitionRole.SYSTEM_BOOT:
        start = partitions.recovery_end + 1
        return dataclasses.replace(
            partitions, sysboot_start=start, sysboot_end=start + size_bytes
        )

    start = partitions.sysboot_end + 1
    return dataclasses.replace(
        partitions, swap_start=start, swap_end=start + size_bytes
    )


def plan_layout(partitions: Partitions, config: InstallerConfig) -> Partitions:
    """Plan system-boot and, when configured as a partition, swap."""
    boot_size = config.configs.boot_size
    bootloader = config.configs.bootloader

    if boot_size >= MIN_BOOT_SIZE_MB:
        partitions = plan_partition(
            partitions, PartitionRole.SYSTEM_BOOT, boot_size, bootloader
        )
    else:
        log.warning(f"Invalid bootsize in config.yaml: {boot_size}")

    if config.swap_partition_enabled:
        partitions = plan_partition(
            partitions, PartitionRole.SWAP, config.configs.swap_size, bootloader
        )

    log.info(
        f"Planned layout: system-boot {partitions.sysboot_start}-{partitions.sysboot_end}, "
        f"swap {partitions.swap_start}-{partitions.swap_end}"
    )
    return partitions
