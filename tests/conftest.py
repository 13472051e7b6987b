"""
Pytest configuration and shared fixtures for oem-installer tests.

This module provides common fixtures and utilities used across all test modules.
"""

import os
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import pytest
from loguru import logger

from oem_installer.config.settings import parse_config
from oem_installer.domain import Partitions
from oem_installer.storage.exceptions import CommandError
from oem_installer.storage.sysfs import SysfsTree


# ==============================================================================
# Sysfs Tree Fixtures
# ==============================================================================


class FakeSysfs:
    """Builds a fake ``/sys/block`` and ``/dev`` tree under a temp directory."""

    def __init__(self, root: Path):
        self.root = root
        self._minor = 0

    def add_block(self, name: str, maj_min: Optional[str] = None) -> str:
        """Add a block device and return its ``major:minor``."""
        if maj_min is None:
            self._minor += 16
            maj_min = f"8:{self._minor}"
        block_dir = self.root / "sys" / "block" / name
        block_dir.mkdir(parents=True, exist_ok=True)
        (block_dir / "dev").write_text(f"{maj_min}\n")

        dev_dir = self.root / "dev"
        dev_dir.mkdir(exist_ok=True)
        (dev_dir / name).touch()

        link_dir = dev_dir / "block"
        link_dir.mkdir(exist_ok=True)
        link = link_dir / maj_min
        if link.is_symlink():
            link.unlink()
        os.symlink(f"../{name}", link)
        return maj_min

    def tree(self) -> SysfsTree:
        return SysfsTree(self.root)


@pytest.fixture
def fake_sysfs(tmp_path) -> FakeSysfs:
    """
    Fixture providing an empty fake sysfs tree.

    Args:
        tmp_path: pytest's built-in temporary directory fixture.
    """
    return FakeSysfs(tmp_path / "root")


# ==============================================================================
# Command Runner Fixtures
# ==============================================================================


class RecordingRunner:
    """Stand-in for ``run_command`` that records every invocation.

    Responses are matched on the leading words of the command; unmatched
    commands succeed with empty output.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self._responses: List[tuple] = []

    def respond(self, prefix: List[str], stdout: str = "", returncode: int = 0):
        self._responses.append((list(prefix), stdout, returncode))

    def __call__(self, command, *, check=True, input_text=None, log_output=True):
        command = [str(part) for part in command]
        self.calls.append(command)
        for prefix, stdout, returncode in self._responses:
            if command[: len(prefix)] == prefix:
                if returncode != 0 and check:
                    raise CommandError(command, returncode, "failed")
                return subprocess.CompletedProcess(command, returncode, stdout, "")
        return subprocess.CompletedProcess(command, 0, "", "")

    def programs(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def recording_runner() -> RecordingRunner:
    """Fixture providing a recording command runner."""
    return RecordingRunner()


RUNNER_MODULES = (
    "oem_installer.storage.commands",
    "oem_installer.storage.copy",
    "oem_installer.storage.encryption",
    "oem_installer.storage.format",
    "oem_installer.storage.labels",
    "oem_installer.storage.mount",
    "oem_installer.storage.partition_table",
    "oem_installer.storage.partitioning",
    "oem_installer.storage.settle",
)


@pytest.fixture
def patched_runner(mocker, recording_runner) -> RecordingRunner:
    """Fixture routing every external command of the installer to a recorder."""
    for module in RUNNER_MODULES:
        mocker.patch(f"{module}.run_command", recording_runner)
    return recording_runner


@pytest.fixture
def mock_subprocess_run(mocker) -> Mock:
    """Fixture patching subprocess.run with a successful default result."""
    mock_run = mocker.patch("subprocess.run")
    mock_run.return_value = Mock(returncode=0, stdout="", stderr="")
    return mock_run


# ==============================================================================
# Logging Fixtures
# ==============================================================================


class LogCapture:
    """Collects loguru records for assertions."""

    def __init__(self):
        self.records: List[dict] = []

    def __call__(self, message):
        self.records.append(message.record)

    def messages(self, level: str) -> List[str]:
        return [
            record["message"]
            for record in self.records
            if record["level"].name == level
        ]


@pytest.fixture
def log_capture():
    """Fixture capturing loguru records emitted during the test."""
    capture = LogCapture()
    handler_id = logger.add(capture, level="TRACE", enqueue=False)
    yield capture
    logger.remove(handler_id)


# ==============================================================================
# Configuration Fixtures
# ==============================================================================


@pytest.fixture
def sample_config_data() -> Dict[str, Any]:
    """Fixture providing a parsed config.yaml document."""
    return {
        "configs": {
            "bootloader": "grub",
            "bootsize": 100,
            "swap": True,
            "swapfile": False,
            "swapsize": 512,
            "encrypt": True,
        },
        "recovery": {
            "type": "installer-only",
            "fslabel": "recovery",
            "recoverysize": 768,
        },
    }


@pytest.fixture
def sample_config(sample_config_data):
    """Fixture providing an InstallerConfig built from sample_config_data."""
    return parse_config(sample_config_data)


@pytest.fixture
def config_file(tmp_path) -> Path:
    """Fixture providing a config.yaml path with grub defaults."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "configs:\n"
        "  bootloader: grub\n"
        "  bootsize: 64\n"
        "recovery:\n"
        "  type: factory-copy\n"
        "  fslabel: recovery\n"
        "  recoverysize: 512\n"
    )
    return path


# ==============================================================================
# Partitions Fixtures
# ==============================================================================


@pytest.fixture
def discovered_partitions() -> Partitions:
    """Fixture providing a Partitions record as left by discovery."""
    return Partitions(
        source_dev_node="sdb",
        source_dev_path="/dev/sdb",
        target_dev_node="nvme0n1",
        target_dev_path="/dev/nvme0n1",
        recovery_nr=1,
        target_size=512110190592,
    )


# ==============================================================================
# Parted Output Fixtures
# ==============================================================================


@pytest.fixture
def parted_output() -> str:
    """Fixture providing ``parted -ms ... unit B print`` output."""
    return (
        "BYT;\n"
        "/dev/sda:500107862016B:scsi:512:512:gpt:ATA Samsung SSD:;\n"
        "1:1048576B:538968063B:537919488B:fat32:recovery:boot, esp;\n"
        "2:538968064B:643825663B:104857600B:fat32:system-boot:;\n"
        "3:643825664B:500106788863B:499462963200B:ext4:writable:;\n"
    )
