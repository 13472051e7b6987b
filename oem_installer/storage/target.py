"""Target disk selection.

The installer boots from removable media (the source) and has to pick the
internal disk it provisions (the target). On the supported hardware exactly
one bus carries the real target, so the candidates are probed in a fixed
order and the first device that is not the source wins:

    1. BIOS software RAID (/sys/block/md126)
    2. eMMC (/sys/block/mmcblk*)
    3. SCSI/SATA/USB disks (/sys/block/sd*)
    4. NVMe (/sys/block/nvme*)

RAID and eMMC come first so that a USB installer stick enumerated as a SCSI
disk is never mistaken for the target.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from oem_installer.config.settings import InstallerConfig
from oem_installer.domain import UNSET, Partitions
from oem_installer.logging import LoggerFactory
from oem_installer.storage.exceptions import DeviceNotFoundError, PreconditionError
from oem_installer.storage.labels import get_device_node, whole_disk_path
from oem_installer.storage.sysfs import SysfsTree


log = LoggerFactory.for_discovery()

RAID_DEV_FILE = "/sys/block/md126/dev"
CANONICAL_EMMC = "/dev/mmcblk0"


@dataclass(frozen=True)
class ProbeResult:
    device_path: str
    # Canonical results already name the whole disk and skip normalization.
    canonical: bool = False


Probe = Callable[[str, SysfsTree], Optional[ProbeResult]]


def _read_block_device(sysfs: SysfsTree, dev_file: str) -> str:
    try:
        maj_min = sysfs.read_text(dev_file)
    except OSError as error:
        raise DeviceNotFoundError(dev_file, f"unreadable: {error}") from error
    return sysfs.resolve_block_device(maj_min)


def _first_differing(
    source_path: str, sysfs: SysfsTree, pattern: str
) -> Optional[str]:
    for block in sysfs.glob(pattern):
        device = _read_block_device(sysfs, f"{block}/dev")
        log.trace(f"Probed {block}: {device}")
        if device != source_path:
            return device
    return None


def probe_raid(source_path: str, sysfs: SysfsTree) -> Optional[ProbeResult]:
    if not sysfs.exists(RAID_DEV_FILE):
        return None
    log.info("Found RAID device enabled in BIOS")
    device = _read_block_device(sysfs, RAID_DEV_FILE)
    if device == source_path:
        return None
    return ProbeResult(device, canonical=True)


def probe_emmc(source_path: str, sysfs: SysfsTree) -> Optional[ProbeResult]:
    device = _first_differing(source_path, sysfs, "/sys/block/mmcblk*")
    if device is None:
        return None
    return ProbeResult(device, canonical=device == CANONICAL_EMMC)


def probe_scsi(source_path: str, sysfs: SysfsTree) -> Optional[ProbeResult]:
    device = _first_differing(source_path, sysfs, "/sys/block/sd*")
    return ProbeResult(device) if device else None


def probe_nvme(source_path: str, sysfs: SysfsTree) -> Optional[ProbeResult]:
    device = _first_differing(source_path, sysfs, "/sys/block/nvme*")
    return ProbeResult(device) if device else None


TARGET_PROBES: tuple[Probe, ...] = (probe_raid, probe_emmc, probe_scsi, probe_nvme)


def select_target_disk(
    source_path: str,
    sysfs: SysfsTree,
    probes: tuple[Probe, ...] = TARGET_PROBES,
) -> str:
    """Return the whole-disk path of the first probed disk that is not the source.

    Raises:
        DeviceNotFoundError: If no probe finds a disk other than the source
    """
    for probe in probes:
        result = probe(source_path, sysfs)
        if result is None:
            continue
        if result.canonical:
            return result.device_path
        return whole_disk_path(result.device_path)
    raise DeviceNotFoundError("target disk", "no disk other than the source found")


def find_target_disk(
    partitions: Partitions,
    config: InstallerConfig,
    sysfs: SysfsTree | None = None,
) -> None:
    """Populate the target fields of ``partitions``.

    Raises:
        PreconditionError: If the source recovery partition is not known yet
        DeviceNotFoundError: If no target disk can be found
    """
    if (
        not partitions.source_dev_node
        or not partitions.source_dev_path
        or partitions.recovery_nr == UNSET
    ):
        raise PreconditionError("Missing source recovery data")

    override = config.recovery.recovery_device
    if override:
        log.info(f"Using configured recovery device {override}")
        target_path = override
    else:
        target_path = select_target_disk(
            partitions.source_dev_path, sysfs or SysfsTree()
        )

    partitions.target_dev_path = target_path
    partitions.target_dev_node = get_device_node(target_path)
    log.info(
        f"Target disk: {partitions.target_dev_path} "
        f"(source {partitions.source_dev_path})"
    )
