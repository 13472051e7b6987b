"""Read-only view of the sysfs and /dev trees used for target disk probing."""

from __future__ import annotations

import glob
import os
from pathlib import Path


class SysfsTree:
    """Filesystem-tree inspector rooted at ``root``.

    Paths passed in and returned are absolute paths as seen on the running
    system (``/sys/block/sda/dev``); ``root`` lets tests substitute a
    temporary directory for ``/``.
    """

    def __init__(self, root: str | os.PathLike = "/"):
        self.root = Path(os.path.realpath(root))

    def _host_path(self, path: str) -> Path:
        return self.root / path.lstrip("/")

    def _system_path(self, host_path: str) -> str:
        relative = os.path.relpath(host_path, self.root)
        if relative == ".":
            return "/"
        return "/" + relative

    def exists(self, path: str) -> bool:
        return self._host_path(path).exists()

    def glob(self, pattern: str) -> list[str]:
        """Sorted glob over the tree, results as system paths."""
        matches = glob.glob(str(self._host_path(pattern)))
        return sorted(self._system_path(match) for match in matches)

    def read_text(self, path: str) -> str:
        return self._host_path(path).read_text(encoding="utf-8").strip()

    def resolve_block_device(self, maj_min: str) -> str:
        """Resolve ``/dev/block/<major>:<minor>`` to its real device path."""
        link = self._host_path(f"/dev/block/{maj_min.strip()}")
        return self._system_path(os.path.realpath(link))
