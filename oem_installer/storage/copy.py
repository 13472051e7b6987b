"""Tree copies between mounted filesystems."""

from __future__ import annotations

from oem_installer.logging import LoggerFactory
from oem_installer.storage.commands import run_command


log = LoggerFactory.for_provision()


def _as_dir(path: str) -> str:
    return path if path.endswith("/") else f"{path}/"


def mirror_tree(source: str, destination: str) -> None:
    """Copy the contents of ``source`` into ``destination`` preserving
    permissions, ownership, timestamps and hard links, then flush."""
    source, destination = _as_dir(source), _as_dir(destination)
    log.info(f"Copying {source} to {destination}")
    run_command(["rsync", "-aH", source, destination], log_output=False)
    sync()


def sync() -> None:
    run_command(["sync"])
