"""Domain model for disk provisioning.

The partition layout on a freshly installed grub target::

    | GPT table | Part 1 (system-boot) | Part 2 (swap, optional) | Part N (writable) |

and on a disk that carries its own recovery partition::

    | GPT table | Part 1 (recovery) | Part 2 (system-boot) | Part 3 (writable) |

On u-boot images the boot partitions ship pre-built and only the
writable partition is (re)created.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# Partition numbers and byte offsets use -1 for "absent / not computed".
UNSET = -1

# Last byte of the reserved head of a GPT disk. A system-boot partition
# planned on a target without a recovery partition starts right after it.
GPT_RESERVED_END = 20479

MIB = 1024 * 1024

SYSBOOT_LABEL = "system-boot"
WRITABLE_LABEL = "writable"
SWAP_LABEL = "swap"


class RecoveryType(str, Enum):
    """Which provisioning flow a run performs."""

    INSTALLER_ONLY = "installer-only"
    FACTORY_COPY = "factory-copy"

    @classmethod
    def parse(cls, value: str) -> RecoveryType:
        """Parse a config value, accepting underscore spellings."""
        normalized = str(value).strip().lower().replace("_", "-")
        return cls(normalized)


class Bootloader(str, Enum):
    UBOOT = "u-boot"
    GRUB = "grub"

    @classmethod
    def parse(cls, value: str) -> Bootloader:
        normalized = str(value).strip().lower()
        if normalized == "uboot":
            normalized = "u-boot"
        return cls(normalized)


class PartitionRole(str, Enum):
    RECOVERY = "recovery"
    SYSTEM_BOOT = SYSBOOT_LABEL
    SWAP = SWAP_LABEL
    WRITABLE = WRITABLE_LABEL


@dataclass
class Partitions:
    """Source and target disk description shared by every installer step.

    Device nodes are bare names (``sda``), device paths are whole-disk
    paths (``/dev/sda``), neither carries a partition suffix.
    """

    source_dev_node: str = ""
    source_dev_path: str = ""
    target_dev_node: str = ""
    target_dev_path: str = ""

    recovery_nr: int = UNSET
    sysboot_nr: int = UNSET
    swap_nr: int = UNSET
    writable_nr: int = UNSET
    last_part_nr: int = UNSET

    recovery_start: int = 0
    recovery_end: int = GPT_RESERVED_END
    sysboot_start: int = UNSET
    sysboot_end: int = UNSET
    swap_start: int = UNSET
    swap_end: int = UNSET
    writable_start: int = UNSET
    writable_end: int = UNSET

    target_size: int = UNSET

    @property
    def same_device(self) -> bool:
        """True when source and target resolve to the same disk."""
        return bool(self.source_dev_path) and (
            self.source_dev_path == self.target_dev_path
        )

    @property
    def sysboot_planned(self) -> bool:
        return self.sysboot_start != UNSET and self.sysboot_end != UNSET

    @property
    def swap_planned(self) -> bool:
        return self.swap_start != UNSET and self.swap_end != UNSET


@dataclass(frozen=True)
class PartitionEntry:
    """One partition line of a ``parted -ms ... unit B print`` dump."""

    number: int
    start: int
    end: int


@dataclass(frozen=True)
class PartitionTable:
    """Partition table of a whole disk, offsets in bytes."""

    device_path: str
    disk_size: int = UNSET
    entries: tuple[PartitionEntry, ...] = field(default_factory=tuple)

    @property
    def last_part_nr(self) -> int:
        if not self.entries:
            return UNSET
        return max(entry.number for entry in self.entries)

    def get(self, number: int) -> PartitionEntry | None:
        for entry in self.entries:
            if entry.number == number:
                return entry
        return None
