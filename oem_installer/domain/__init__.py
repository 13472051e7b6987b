"""Domain models for disk provisioning.

This package contains the shared partition layout record and the small
enumerations the configuration and the provisioning flows agree on.
"""

from __future__ import annotations

from .models import (
    GPT_RESERVED_END,
    MIB,
    SWAP_LABEL,
    SYSBOOT_LABEL,
    UNSET,
    WRITABLE_LABEL,
    Bootloader,
    PartitionEntry,
    PartitionRole,
    Partitions,
    PartitionTable,
    RecoveryType,
)


__all__ = [
    "GPT_RESERVED_END",
    "MIB",
    "SWAP_LABEL",
    "SYSBOOT_LABEL",
    "UNSET",
    "WRITABLE_LABEL",
    "Bootloader",
    "PartitionEntry",
    "PartitionRole",
    "Partitions",
    "PartitionTable",
    "RecoveryType",
]
