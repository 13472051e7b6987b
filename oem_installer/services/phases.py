"""Named provisioning phases.

Both flows are strictly linear. Each step runs inside ``run_phase()`` so a
failure is logged with its duration and reported as a ProvisioningError
naming the phase. There is no rollback: once ``table-reset`` (or
``create-recovery``) has run, a failed phase leaves the target disk as the
last completed phase left it.
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from loguru import Logger

from oem_installer.domain import Partitions
from oem_installer.logging import operation_context
from oem_installer.storage.exceptions import (
    ProvisioningError,
    SourceDestinationSameError,
    StorageError,
)


class Phase(str, Enum):
    TABLE_RESET = "table-reset"
    CREATE_RECOVERY = "create-recovery"
    FORMAT_RECOVERY = "format-recovery"
    COPY_RECOVERY = "copy-recovery"
    STAMP_GRUBENV = "stamp-grubenv"
    CREATE_BOOT = "create-boot"
    FORMAT_BOOT = "format-boot"
    COPY_BOOT = "copy-boot"
    CREATE_SWAP = "create-swap"
    CREATE_WRITABLE = "create-writable"
    ENCRYPT = "encrypt"
    FORMAT_WRITABLE = "format-writable"
    COPY_WRITABLE = "copy-writable"
    ATTESTATION = "attestation"


@contextmanager
def run_phase(phase: Phase, **details) -> Iterator[Logger]:
    """Run one phase; StorageError and OSError become ProvisioningError."""
    try:
        with operation_context(phase.value, **details) as log:
            yield log
    except ProvisioningError:
        raise
    except (StorageError, OSError) as error:
        raise ProvisioningError(phase.value, error) from error


def require_distinct_devices(partitions: Partitions) -> None:
    """Refuse to provision the disk the installer is running from.

    Raises:
        SourceDestinationSameError: If source and target are the same disk
    """
    if partitions.source_dev_path == partitions.target_dev_path:
        raise SourceDestinationSameError(
            partitions.source_dev_path, partitions.target_dev_path
        )
