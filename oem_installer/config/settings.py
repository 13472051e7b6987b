"""Installer configuration loaded from the recovery partition's config.yaml."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from oem_installer.domain import Bootloader, RecoveryType
from oem_installer.storage.exceptions import ConfigError


RECOVERY_ROOT_DIR = Path("/run/recovery")

CONFIG_PATH = Path(
    os.environ.get(
        "OEM_INSTALLER_CONFIG",
        RECOVERY_ROOT_DIR / "recovery" / "config.yaml",
    )
)

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_BOOT_SIZE_MB = 64
DEFAULT_RECOVERY_LABEL = "recovery"
DEFAULT_RECOVERY_SIZE_MB = 768


@dataclass(frozen=True)
class SystemConfig:
    bootloader: Bootloader = Bootloader.GRUB
    boot_size: int = DEFAULT_BOOT_SIZE_MB
    swap: bool = False
    swap_file: bool = False
    swap_size: int = 0
    encrypt: bool = True
    keyfile: str | None = None


@dataclass(frozen=True)
class RecoveryConfig:
    type: RecoveryType = RecoveryType.INSTALLER_ONLY
    fs_label: str = DEFAULT_RECOVERY_LABEL
    recovery_size: int = DEFAULT_RECOVERY_SIZE_MB
    recovery_device: str = ""


@dataclass(frozen=True)
class InstallerConfig:
    configs: SystemConfig
    recovery: RecoveryConfig

    @property
    def swap_partition_enabled(self) -> bool:
        """Swap is requested as a partition rather than a swap file."""
        return (
            self.configs.swap
            and not self.configs.swap_file
            and self.configs.swap_size > 0
        )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' section must be a mapping")
    return section


def _get_int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as error:
        raise ConfigError(f"'{key}' must be an integer, got {value!r}") from error


def _get_bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false, got {value!r}")
    return value


def parse_config(data: Any) -> InstallerConfig:
    """Build an InstallerConfig from an already parsed YAML document."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration document must be a mapping")

    configs = _section(data, "configs")
    recovery = _section(data, "recovery")

    try:
        bootloader = Bootloader.parse(configs.get("bootloader", Bootloader.GRUB.value))
    except ValueError as error:
        raise ConfigError(
            f"Unsupported bootloader: {configs.get('bootloader')!r}"
        ) from error

    try:
        recovery_type = RecoveryType.parse(
            recovery.get("type", RecoveryType.INSTALLER_ONLY.value)
        )
    except ValueError as error:
        raise ConfigError(
            f"Unsupported recovery type: {recovery.get('type')!r}"
        ) from error

    keyfile = configs.get("keyfile")
    if keyfile is not None and not isinstance(keyfile, str):
        raise ConfigError(f"'keyfile' must be a path, got {keyfile!r}")

    return InstallerConfig(
        configs=SystemConfig(
            bootloader=bootloader,
            boot_size=_get_int(configs, "bootsize", DEFAULT_BOOT_SIZE_MB),
            swap=_get_bool(configs, "swap", False),
            swap_file=_get_bool(configs, "swapfile", False),
            swap_size=_get_int(configs, "swapsize", 0),
            encrypt=_get_bool(configs, "encrypt", True),
            keyfile=keyfile or None,
        ),
        recovery=RecoveryConfig(
            type=recovery_type,
            fs_label=str(recovery.get("fslabel") or DEFAULT_RECOVERY_LABEL),
            recovery_size=_get_int(recovery, "recoverysize", DEFAULT_RECOVERY_SIZE_MB),
            recovery_device=str(recovery.get("recoverydevice") or ""),
        ),
    )


def load_config(path: Path | None = None) -> InstallerConfig:
    """Load and validate the installer configuration.

    Args:
        path: YAML file to read (defaults to CONFIG_PATH)

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    path = Path(path) if path is not None else CONFIG_PATH
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as error:
        raise ConfigError(f"Cannot read configuration {path}: {error}") from error
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as error:
        raise ConfigError(f"Invalid YAML in {path}: {error}") from error
    return parse_config(data)
