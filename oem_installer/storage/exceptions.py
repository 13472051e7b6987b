"""Custom exceptions for installer storage operations.

This module defines a hierarchy of exceptions for discovery, planning and
provisioning so that callers can tell configuration mistakes, missing
devices and malformed tool output apart, and so that a fatal message can
name the provisioning phase that failed.

Exception Hierarchy:
    StorageError (base)
        ├── ConfigError
        │   └── SourceDestinationSameError
        ├── DeviceError
        │   ├── DeviceNotFoundError (NotFoundError)
        │   └── SettleTimeoutError
        ├── ParseError
        ├── PreconditionError
        ├── UnknownRoleError
        ├── CommandError
        ├── MountError
        │   └── UnmountFailedError
        └── ProvisioningError

Usage:
    from oem_installer.storage.exceptions import SourceDestinationSameError

    if source_path == target_path:
        raise SourceDestinationSameError(source_path, target_path)
"""

from __future__ import annotations

from typing import Sequence


class StorageError(Exception):
    """Base exception for all installer operations."""



class ConfigError(StorageError):
    """Configuration is invalid or contradicts the detected hardware."""



class SourceDestinationSameError(ConfigError):
    """Source and target devices are the same."""

    def __init__(self, source_name: str, destination_name: str):
        self.source_name = source_name
        self.destination_name = destination_name
        super().__init__(
            f"Source and target cannot be the same device: "
            f"{source_name} == {destination_name}"
        )


class DeviceError(StorageError):
    """Base exception for device-related errors."""



class DeviceNotFoundError(DeviceError):
    """Device, label or partition was not found."""

    def __init__(self, device_name: str, reason: str = ""):
        self.device_name = device_name
        self.reason = reason
        msg = f"Device not found: {device_name}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


NotFoundError = DeviceNotFoundError


class SettleTimeoutError(DeviceError):
    """A device node did not appear after a partition table change."""

    def __init__(self, device_path: str, timeout: float):
        self.device_path = device_path
        self.timeout = timeout
        super().__init__(
            f"Device node {device_path} did not appear within {timeout:g} seconds"
        )


class ParseError(StorageError):
    """External tool output could not be parsed."""



class PreconditionError(StorageError):
    """Required state from an earlier step is missing."""



class UnknownRoleError(StorageError):
    """Partition role is not supported by the layout planner."""

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"Unknown partition role: {role}")


class CommandError(StorageError):
    """External command failed or could not be started."""

    def __init__(
        self, command: Sequence[str], returncode: int | None, output: str = ""
    ):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        message = output or "Command failed"
        super().__init__(
            f"Command failed ({' '.join(self.command)}, rc={returncode}): {message}"
        )


class MountError(StorageError):
    """Base exception for mount-related errors."""



class UnmountFailedError(MountError):
    """Failed to unmount a mountpoint."""

    def __init__(self, device_name: str, mountpoints: list[str]):
        self.device_name = device_name
        self.mountpoints = mountpoints
        mounts_str = ", ".join(mountpoints)
        super().__init__(
            f"Failed to unmount {device_name}. " f"Active mountpoints: {mounts_str}"
        )


class ProvisioningError(StorageError):
    """A named provisioning phase failed."""

    def __init__(self, phase: str, cause: BaseException):
        self.phase = phase
        self.cause = cause
        super().__init__(f"Provisioning phase '{phase}' failed: {cause}")
