"""Recovery partition copy (factory-copy recovery type).

Rewrites the whole target disk with a single bootable FAT32 recovery
partition and mirrors the running recovery filesystem into it. When the
device boots through EFI the copied grub environment is stamped so the
next boot performs a factory install from the new recovery partition.
"""

from __future__ import annotations

import os
from typing import Callable

from oem_installer.config.settings import RECOVERY_ROOT_DIR, InstallerConfig
from oem_installer.domain import MIB, Partitions
from oem_installer.logging import LoggerFactory
from oem_installer.services.phases import Phase, require_distinct_devices, run_phase
from oem_installer.storage.commands import run_best_effort
from oem_installer.storage.copy import mirror_tree
from oem_installer.storage.exceptions import ConfigError
from oem_installer.storage.format import format_filesystem
from oem_installer.storage.labels import partition_path
from oem_installer.storage.mount import mounted
from oem_installer.storage.partitioning import create_recovery_table
from oem_installer.storage.settle import wait_for_device_node


log = LoggerFactory.for_provision()

RECOVERY_MNT_DIR = "/tmp/recoMnt/"
SYSBOOT_MNT_DIR = "/tmp/system-boot/"

RECOVERY_PART_NR = 1
RECOVERY_BEGIN_MIB = 4
FACTORY_INSTALL_ENV = "recovery_type=factory_install"


def stamp_factory_install(recovery_mount: str, sysboot_mount: str = SYSBOOT_MNT_DIR) -> bool:
    """Ask the copied recovery's grub to run a factory install on next boot.

    Only done when an EFI tree is present. Failures are logged, not raised.

    Returns:
        True if grubenv was stamped
    """
    for efi_dir in ("EFI", "efi"):
        if os.path.exists(os.path.join(sysboot_mount, efi_dir)):
            grubenv = os.path.join(recovery_mount, efi_dir, "ubuntu", "grubenv")
            result = run_best_effort(
                ["grub-editenv", grubenv, "set", FACTORY_INSTALL_ENV]
            )
            return result is not None
    log.debug("No EFI tree found, grubenv not stamped")
    return False


def copy_recovery_partition(
    partitions: Partitions,
    config: InstallerConfig,
    *,
    recovery_root: str = f"{RECOVERY_ROOT_DIR}/",
    recovery_mount: str = RECOVERY_MNT_DIR,
    sysboot_mount: str = SYSBOOT_MNT_DIR,
    wait_for_node: Callable[[str], None] = wait_for_device_node,
) -> Partitions:
    """Create the recovery partition on the target disk and fill it.

    Raises:
        SourceDestinationSameError: If source and target are the same disk
        ConfigError: If the configured recovery size is not positive
        ProvisioningError: If a phase fails after the disk was touched
    """
    require_distinct_devices(partitions)

    recovery_size = config.recovery.recovery_size
    if recovery_size <= 0:
        raise ConfigError(f"Invalid recovery size: {recovery_size}")

    label = config.recovery.fs_label
    partitions.recovery_nr = RECOVERY_PART_NR
    recovery_end_mib = RECOVERY_BEGIN_MIB + recovery_size
    partitions.recovery_start = RECOVERY_BEGIN_MIB * MIB
    partitions.recovery_end = recovery_end_mib * MIB - 1
    recovery_path = partition_path(partitions.target_dev_path, partitions.recovery_nr)

    log.info(
        f"Copying recovery to {recovery_path} "
        f"({RECOVERY_BEGIN_MIB}-{recovery_end_mib} MiB, label {label})"
    )

    with run_phase(Phase.CREATE_RECOVERY, device=partitions.target_dev_path):
        create_recovery_table(
            partitions.target_dev_path,
            partitions.recovery_nr,
            label,
            RECOVERY_BEGIN_MIB,
            recovery_end_mib,
        )
        run_best_effort(["partprobe"])
        wait_for_node(recovery_path)

    with run_phase(Phase.FORMAT_RECOVERY, device=recovery_path):
        format_filesystem(recovery_path, "vfat", label)

    with run_phase(Phase.COPY_RECOVERY, device=recovery_path):
        with mounted(recovery_path, recovery_mount, "vfat") as target_root:
            mirror_tree(recovery_root, target_root)
            with run_phase(Phase.STAMP_GRUBENV):
                stamp_factory_install(target_root, sysboot_mount)

    return partitions
