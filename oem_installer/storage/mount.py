"""Scoped mounting of block devices.

Every mount the installer makes goes through ``mounted()``, which creates
the mountpoint, mounts the device with an explicit filesystem type and
always unmounts it again, whether the block succeeds or raises.

Example:
    >>> with mounted("/dev/sda1", "/tmp/system-boot/", "vfat") as path:
    ...     mirror_tree("/tmp/src/system-boot/", path)
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

from oem_installer.logging import LoggerFactory
from oem_installer.storage.commands import run_command
from oem_installer.storage.exceptions import CommandError, MountError, UnmountFailedError


log = LoggerFactory.for_provision()


def _validate_device_path(device_path: str) -> None:
    if not isinstance(device_path, str) or not device_path.startswith("/dev/"):
        raise ValueError(f"Invalid device path: {device_path}")
    if any(char in device_path for char in [";", "&", "|", "$", "`", "\n", "\r", " "]):
        raise ValueError(f"Device path contains invalid characters: {device_path}")


def mount_device(
    device_path: str, mountpoint: str, fstype: str, read_only: bool = False
) -> None:
    """Mount ``device_path`` at ``mountpoint``.

    Raises:
        ValueError: If the device path is invalid
        MountError: If the mount fails
    """
    _validate_device_path(device_path)
    os.makedirs(mountpoint, mode=0o755, exist_ok=True)
    command = ["mount", "-t", fstype]
    if read_only:
        command.extend(["-o", "ro"])
    command.extend([device_path, mountpoint])
    try:
        run_command(command)
    except CommandError as error:
        raise MountError(
            f"Failed to mount {device_path} at {mountpoint}: {error.output}"
        ) from error
    log.debug(f"Mounted {device_path} at {mountpoint} ({fstype})")


def unmount_device(device_path: str, mountpoint: str) -> None:
    """Unmount ``mountpoint``.

    Raises:
        UnmountFailedError: If umount fails
    """
    try:
        run_command(["umount", mountpoint])
    except CommandError as error:
        raise UnmountFailedError(device_path, [mountpoint]) from error
    log.debug(f"Unmounted {mountpoint}")


@contextmanager
def mounted(
    device_path: str, mountpoint: str, fstype: str, read_only: bool = False
) -> Iterator[str]:
    """Mount a device for the duration of the block.

    An unmount failure on the success path raises UnmountFailedError; while
    another exception is propagating it is only logged so the original
    error is reported.
    """
    mount_device(device_path, mountpoint, fstype, read_only=read_only)
    try:
        yield mountpoint
    except BaseException:
        try:
            unmount_device(device_path, mountpoint)
        except UnmountFailedError as error:
            log.error(f"Cleanup unmount failed: {error}")
        raise
    else:
        unmount_device(device_path, mountpoint)
