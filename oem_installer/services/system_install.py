"""Full system install (installer-only recovery type).

Provisions a bare target disk from the installer media::

    source (installer)                 target
    part 2  system-boot  ──rsync──▶    part 1  system-boot (FAT32)
                                       part 2  swap        (optional)
    part 3  writable     ──rsync──▶    part N  writable    (ext4, LUKS by default)

Everything that can be checked without touching the target is checked
before the partition table is reset.
"""

from __future__ import annotations

from contextlib import ExitStack
from typing import Callable, Optional

from oem_installer.config.settings import InstallerConfig
from oem_installer.domain import (
    SWAP_LABEL,
    SYSBOOT_LABEL,
    UNSET,
    WRITABLE_LABEL,
    Partitions,
)
from oem_installer.logging import LoggerFactory
from oem_installer.services.phases import Phase, require_distinct_devices, run_phase
from oem_installer.storage.commands import run_best_effort
from oem_installer.storage.copy import mirror_tree
from oem_installer.storage.encryption import (
    encrypted_volume,
    install_key,
    key_file,
    load_crypto_module,
)
from oem_installer.storage.exceptions import PreconditionError
from oem_installer.storage.format import format_filesystem
from oem_installer.storage.labels import partition_path
from oem_installer.storage.mount import mounted
from oem_installer.storage.partition_table import get_partition_bounds
from oem_installer.storage.partitioning import (
    create_partition,
    reset_partition_table,
    set_boot_flag,
)
from oem_installer.storage.settle import settle_devices, wait_for_device_node


log = LoggerFactory.for_provision()

SYSBOOT_MNT_DIR = "/tmp/system-boot/"
WRITABLE_MNT_DIR = "/tmp/writableMnt/"
SOURCE_SYSBOOT_MNT_DIR = "/tmp/src/system-boot/"
SOURCE_WRITABLE_MNT_DIR = "/tmp/src/writableMnt/"

# Fixed layout of the installer media.
SOURCE_SYSBOOT_NR = 2
SOURCE_WRITABLE_NR = 3

TPM_DEVICE = "/dev/tpmrm0"


def assign_partition_numbers(partitions: Partitions, swap_enabled: bool) -> None:
    """system-boot is 1, then swap (if any), then writable."""
    partitions.sysboot_nr = 1
    if swap_enabled:
        partitions.swap_nr = partitions.sysboot_nr + 1
        partitions.writable_nr = partitions.swap_nr + 1
    else:
        partitions.swap_nr = UNSET
        partitions.writable_nr = partitions.sysboot_nr + 1


def _check_plan(partitions: Partitions, swap_enabled: bool) -> None:
    if not partitions.sysboot_planned:
        raise PreconditionError(
            "system-boot offsets are not planned "
            "(bootloader is not grub or bootsize is below the minimum)"
        )
    if swap_enabled and not partitions.swap_planned:
        raise PreconditionError("swap is enabled but its offsets are not planned")


def query_measurement_log() -> None:
    """Read the TPM PCR banks into the log. Informational only."""
    result = run_best_effort(["tpm2_pcrlist", "-T", f"device:{TPM_DEVICE}"])
    if result is None:
        log.warning("TPM measurement query failed, continuing")


def install_system_partitions(
    partitions: Partitions,
    config: InstallerConfig,
    *,
    wait_for_node: Callable[[str], None] = wait_for_device_node,
) -> Partitions:
    """Partition, format, encrypt and fill the target disk.

    Raises:
        SourceDestinationSameError: If source and target are the same disk
        PreconditionError: If the layout was not planned for this config
        ProvisioningError: If a phase fails after the disk was touched
    """
    log.info("Installing system partitions")
    require_distinct_devices(partitions)

    swap_enabled = config.swap_partition_enabled
    encrypt = config.configs.encrypt
    assign_partition_numbers(partitions, swap_enabled)
    _check_plan(partitions, swap_enabled)

    disk = partitions.target_dev_path
    source = partitions.source_dev_path

    with run_phase(Phase.TABLE_RESET, device=disk):
        reset_partition_table(disk)

    sysboot_path = partition_path(disk, partitions.sysboot_nr)
    with run_phase(Phase.CREATE_BOOT, device=sysboot_path):
        create_partition(
            disk,
            partitions.sysboot_nr,
            SYSBOOT_LABEL,
            "fat32",
            partitions.sysboot_start,
            partitions.sysboot_end,
        )
        settle_devices(disk)
        wait_for_node(sysboot_path)

    with run_phase(Phase.FORMAT_BOOT, device=sysboot_path):
        format_filesystem(sysboot_path, "vfat", SYSBOOT_LABEL)

    with run_phase(Phase.COPY_BOOT, device=sysboot_path):
        with mounted(sysboot_path, SYSBOOT_MNT_DIR, "vfat") as target_root, mounted(
            partition_path(source, SOURCE_SYSBOOT_NR),
            SOURCE_SYSBOOT_MNT_DIR,
            "vfat",
            read_only=True,
        ) as source_root:
            mirror_tree(source_root, target_root)
        set_boot_flag(disk, partitions.sysboot_nr)

    previous_nr = partitions.sysboot_nr
    if swap_enabled:
        swap_path = partition_path(disk, partitions.swap_nr)
        with run_phase(Phase.CREATE_SWAP, device=swap_path):
            _, sysboot_end = get_partition_bounds(disk, partitions.sysboot_nr)
            partitions.sysboot_end = sysboot_end
            partitions.swap_start = sysboot_end + 1
            create_partition(
                disk,
                partitions.swap_nr,
                SWAP_LABEL,
                "linux-swap",
                partitions.swap_start,
                partitions.swap_end,
            )
            settle_devices(disk)
            wait_for_node(swap_path)
            format_filesystem(swap_path, "swap", SWAP_LABEL)
        previous_nr = partitions.swap_nr

    writable_path = partition_path(disk, partitions.writable_nr)
    with run_phase(Phase.CREATE_WRITABLE, device=writable_path):
        _, previous_end = get_partition_bounds(disk, previous_nr)
        partitions.writable_start = previous_end + 1
        create_partition(
            disk,
            partitions.writable_nr,
            WRITABLE_LABEL,
            "ext4",
            partitions.writable_start,
            "100%",
        )
        settle_devices(disk)
        if encrypt:
            load_crypto_module()
        wait_for_node(writable_path)
        _, partitions.writable_end = get_partition_bounds(disk, partitions.writable_nr)

    with ExitStack() as stack:
        writable_device = writable_path
        key_path: Optional[str] = None
        if encrypt:
            with run_phase(Phase.ENCRYPT, device=writable_path):
                key_path = stack.enter_context(key_file())
                writable_device = stack.enter_context(
                    encrypted_volume(writable_path, key_path)
                )

        with run_phase(Phase.FORMAT_WRITABLE, device=writable_device):
            format_filesystem(writable_device, "ext4", WRITABLE_LABEL)

        with run_phase(Phase.COPY_WRITABLE, device=writable_device):
            with mounted(writable_device, WRITABLE_MNT_DIR, "ext4") as target_root, mounted(
                partition_path(source, SOURCE_WRITABLE_NR),
                SOURCE_WRITABLE_MNT_DIR,
                "ext4",
                read_only=True,
            ) as source_root:
                mirror_tree(source_root, target_root)
                if key_path and config.configs.keyfile:
                    install_key(key_path, target_root, config.configs.keyfile)

    with run_phase(Phase.ATTESTATION):
        query_measurement_log()

    log.info("Finished installing system partitions")
    return partitions
