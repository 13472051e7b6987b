"""Waiting for the kernel and udev to catch up with a partition table change."""

from __future__ import annotations

import math
import os
import time
from typing import Callable

from oem_installer.logging import LoggerFactory
from oem_installer.storage.commands import run_best_effort, run_command
from oem_installer.storage.exceptions import SettleTimeoutError


log = LoggerFactory.for_provision()

DEFAULT_SETTLE_TIMEOUT = 10.0
DEFAULT_SETTLE_INTERVAL = 0.5


def settle_devices(disk_path: str | None = None) -> None:
    """Let udev finish processing events and ask the kernel to re-read tables.

    ``udevadm settle`` must succeed; ``partprobe`` is best-effort.
    """
    run_command(["udevadm", "settle"])
    if disk_path:
        run_best_effort(["partprobe", disk_path])
    else:
        run_best_effort(["partprobe"])


def wait_for_device_node(
    device_path: str,
    *,
    timeout: float = DEFAULT_SETTLE_TIMEOUT,
    interval: float = DEFAULT_SETTLE_INTERVAL,
    exists: Callable[[str], bool] = os.path.exists,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Poll until ``device_path`` exists.

    At most ``ceil(timeout / interval)`` polls are made.

    Raises:
        SettleTimeoutError: If the node has not appeared in time
    """
    attempts = max(1, math.ceil(timeout / interval))
    for attempt in range(attempts):
        if exists(device_path):
            log.debug(f"Device node found: {device_path}")
            return
        if attempt < attempts - 1:
            sleep(interval)
    if exists(device_path):
        return
    log.error(f"Device node {device_path} did not appear after {timeout:g}s")
    raise SettleTimeoutError(device_path, timeout)
