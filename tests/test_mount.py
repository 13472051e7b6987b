"""Tests for storage/mount.py - scoped mounting.

Covers:
- mount command construction (read-only sources, fstype)
- Device path validation
- Unmount on success and on error
- Unmount failures during error propagation do not mask the original error
"""

from unittest.mock import call, patch

import pytest

from oem_installer.storage import mount
from oem_installer.storage.exceptions import (
    CommandError,
    MountError,
    UnmountFailedError,
)


@pytest.fixture
def mock_run():
    with patch("oem_installer.storage.mount.run_command") as mock_run:
        yield mock_run


class TestMountDevice:
    """Tests for mount_device()."""

    def test_mounts_with_fstype_and_creates_mountpoint(self, mock_run, tmp_path):
        mountpoint = str(tmp_path / "system-boot")

        mount.mount_device("/dev/sda1", mountpoint, "vfat")

        mock_run.assert_called_once_with(
            ["mount", "-t", "vfat", "/dev/sda1", mountpoint]
        )
        assert (tmp_path / "system-boot").is_dir()

    def test_read_only_mount(self, mock_run, tmp_path):
        mount.mount_device("/dev/sdb3", str(tmp_path), "ext4", read_only=True)

        mock_run.assert_called_once_with(
            ["mount", "-t", "ext4", "-o", "ro", "/dev/sdb3", str(tmp_path)]
        )

    @pytest.mark.parametrize(
        "device", ["sda1", "/dev/sda1; rm -rf /", "/dev/sda1 extra", "/tmp/x"]
    )
    def test_rejects_invalid_device_paths(self, mock_run, tmp_path, device):
        with pytest.raises(ValueError):
            mount.mount_device(device, str(tmp_path), "vfat")

        mock_run.assert_not_called()

    def test_failure_raises_mount_error(self, mock_run, tmp_path):
        mock_run.side_effect = CommandError(["mount"], 32, "wrong fs type")

        with pytest.raises(MountError) as exc_info:
            mount.mount_device("/dev/sda1", str(tmp_path), "vfat")

        assert "wrong fs type" in str(exc_info.value)


class TestMounted:
    """Tests for the mounted() context manager."""

    def test_unmounts_after_block(self, mock_run, tmp_path):
        with mount.mounted("/dev/sda1", str(tmp_path), "vfat") as path:
            assert path == str(tmp_path)

        assert mock_run.call_args_list == [
            call(["mount", "-t", "vfat", "/dev/sda1", str(tmp_path)]),
            call(["umount", str(tmp_path)]),
        ]

    def test_unmounts_when_block_raises(self, mock_run, tmp_path):
        with pytest.raises(RuntimeError):
            with mount.mounted("/dev/sda1", str(tmp_path), "vfat"):
                raise RuntimeError("copy failed")

        assert mock_run.call_args_list[-1] == call(["umount", str(tmp_path)])

    def test_unmount_failure_on_success_path_raises(self, mock_run, tmp_path):
        mock_run.side_effect = [None, CommandError(["umount"], 32, "busy")]

        with pytest.raises(UnmountFailedError):
            with mount.mounted("/dev/sda1", str(tmp_path), "vfat"):
                pass

    def test_unmount_failure_does_not_mask_original_error(
        self, mock_run, tmp_path, log_capture
    ):
        mock_run.side_effect = [None, CommandError(["umount"], 32, "busy")]

        with pytest.raises(RuntimeError, match="copy failed"):
            with mount.mounted("/dev/sda1", str(tmp_path), "vfat"):
                raise RuntimeError("copy failed")

        assert any("Cleanup unmount failed" in m for m in log_capture.messages("ERROR"))

    def test_nothing_to_unmount_when_mount_fails(self, mock_run, tmp_path):
        mock_run.side_effect = CommandError(["mount"], 32, "no medium")

        with pytest.raises(MountError):
            with mount.mounted("/dev/sda1", str(tmp_path), "vfat"):
                pytest.fail("block must not run")

        assert mock_run.call_count == 1
