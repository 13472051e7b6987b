"""Tests for the storage exception hierarchy."""

import pytest

from oem_installer.storage.exceptions import (
    CommandError,
    ConfigError,
    DeviceError,
    DeviceNotFoundError,
    MountError,
    NotFoundError,
    ParseError,
    PreconditionError,
    ProvisioningError,
    SettleTimeoutError,
    SourceDestinationSameError,
    StorageError,
    UnknownRoleError,
    UnmountFailedError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc_class",
        [
            ConfigError,
            DeviceError,
            ParseError,
            PreconditionError,
            MountError,
        ],
    )
    def test_plain_errors_are_storage_errors(self, exc_class):
        assert issubclass(exc_class, StorageError)

    def test_source_destination_same_is_config_error(self):
        assert issubclass(SourceDestinationSameError, ConfigError)

    def test_not_found_alias(self):
        assert NotFoundError is DeviceNotFoundError
        assert issubclass(DeviceNotFoundError, DeviceError)

    def test_settle_timeout_is_device_error(self):
        assert issubclass(SettleTimeoutError, DeviceError)

    def test_unmount_failed_is_mount_error(self):
        assert issubclass(UnmountFailedError, MountError)


class TestMessages:
    def test_source_destination_same(self):
        error = SourceDestinationSameError("/dev/sda", "/dev/sda")

        assert error.source_name == "/dev/sda"
        assert "cannot be the same device" in str(error)

    def test_device_not_found_with_reason(self):
        error = DeviceNotFoundError("LABEL=recovery", "label not found")

        assert str(error) == "Device not found: LABEL=recovery (label not found)"

    def test_device_not_found_without_reason(self):
        assert str(DeviceNotFoundError("/dev/sdz")) == "Device not found: /dev/sdz"

    def test_settle_timeout(self):
        error = SettleTimeoutError("/dev/sda1", 10.0)

        assert str(error) == "Device node /dev/sda1 did not appear within 10 seconds"

    def test_unknown_role(self):
        error = UnknownRoleError("writable")

        assert error.role == "writable"
        assert "writable" in str(error)

    def test_command_error(self):
        error = CommandError(("parted", "-ms"), 1, "Error: unrecognised disk label")

        assert error.command == ["parted", "-ms"]
        assert error.returncode == 1
        assert "parted -ms" in str(error)
        assert "unrecognised disk label" in str(error)

    def test_unmount_failed(self):
        error = UnmountFailedError("/dev/sda1", ["/tmp/a", "/tmp/b"])

        assert "/tmp/a, /tmp/b" in str(error)

    def test_provisioning_error_names_phase(self):
        cause = CommandError(["mkfs.vfat"], 1, "no space")
        error = ProvisioningError("format-boot", cause)

        assert error.phase == "format-boot"
        assert error.cause is cause
        assert str(error).startswith("Provisioning phase 'format-boot' failed:")
