"""Build the Partitions record for a run: source, target and existing layout."""

from __future__ import annotations

from oem_installer.config.settings import InstallerConfig
from oem_installer.domain import (
    SWAP_LABEL,
    SYSBOOT_LABEL,
    UNSET,
    WRITABLE_LABEL,
    Partitions,
)
from oem_installer.logging import LoggerFactory
from oem_installer.storage.exceptions import (
    DeviceNotFoundError,
    ParseError,
)
from oem_installer.storage.labels import find_partition
from oem_installer.storage.partition_table import (
    apply_partition_table,
    read_partition_table,
)
from oem_installer.storage.sysfs import SysfsTree
from oem_installer.storage.target import find_target_disk


log = LoggerFactory.for_discovery()


def _find_target_role(partitions: Partitions, label: str) -> int:
    """Partition number of ``label`` on the target disk, or UNSET."""
    try:
        device_node, _device_path, part_nr = find_partition(label)
    except (DeviceNotFoundError, ParseError):
        return UNSET
    if device_node != partitions.target_dev_node:
        log.debug(f"Ignoring {label} partition on {device_node}, not the target")
        return UNSET
    return part_nr


def get_partitions(
    recovery_label: str,
    config: InstallerConfig,
    sysfs: SysfsTree | None = None,
) -> Partitions:
    """Discover source and target disks and the target's current layout.

    Args:
        recovery_label: Filesystem label of the installer's recovery partition
        config: Loaded installer configuration
        sysfs: Filesystem tree used for target probing (defaults to /)

    Raises:
        DeviceNotFoundError: If the recovery partition or a target disk is missing
        ParseError: If the target partition table cannot be parsed
    """
    partitions = Partitions()

    try:
        (
            partitions.source_dev_node,
            partitions.source_dev_path,
            partitions.recovery_nr,
        ) = find_partition(recovery_label)
    except (DeviceNotFoundError, ParseError) as error:
        raise DeviceNotFoundError(
            f"Recovery partition (LABEL={recovery_label})", "not found"
        ) from error
    log.info(
        f"Source device {partitions.source_dev_path}, "
        f"recovery partition {partitions.recovery_nr}"
    )

    try:
        find_target_disk(partitions, config, sysfs)
    except DeviceNotFoundError as error:
        raise DeviceNotFoundError("Target install disk", str(error)) from error

    partitions.sysboot_nr = _find_target_role(partitions, SYSBOOT_LABEL)
    partitions.swap_nr = _find_target_role(partitions, SWAP_LABEL)
    partitions.writable_nr = _find_target_role(partitions, WRITABLE_LABEL)

    table = read_partition_table(partitions.target_dev_path)
    apply_partition_table(partitions, table)

    log.debug(f"Discovered partitions: {partitions}")
    return partitions
