"""LUKS encryption of the writable partition.

Key material is generated per run and never touches a shared path: it is
written to a file readable only by root inside a private directory, and
overwritten and removed as soon as the caller is done with it.
"""

from __future__ import annotations

import os
import secrets
import shutil
import tempfile
from contextlib import contextmanager
from typing import Iterator

from oem_installer.logging import LoggerFactory
from oem_installer.storage.commands import run_best_effort, run_command


log = LoggerFactory.for_provision()

MAPPER_NAME = "cryptroot"
KEY_SIZE_BYTES = 64


def mapper_path(name: str = MAPPER_NAME) -> str:
    return f"/dev/mapper/{name}"


def _wipe_file(path: str) -> None:
    try:
        size = os.path.getsize(path)
        os.chmod(path, 0o600)
        with open(path, "r+b") as key_file_handle:
            key_file_handle.write(b"\0" * size)
            key_file_handle.flush()
            os.fsync(key_file_handle.fileno())
    finally:
        os.unlink(path)


@contextmanager
def key_file(size: int = KEY_SIZE_BYTES) -> Iterator[str]:
    """Yield the path of a freshly generated key file, wiped on exit."""
    directory = tempfile.mkdtemp(prefix="oem-installer-key-")
    os.chmod(directory, 0o700)
    path = os.path.join(directory, "writable.key")
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o400)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(secrets.token_bytes(size))
        yield path
    finally:
        if os.path.exists(path):
            _wipe_file(path)
        shutil.rmtree(directory, ignore_errors=True)


def install_key(key_path: str, root: str, relative_path: str) -> str:
    """Copy the key into the target filesystem at ``relative_path`` (mode 0400)."""
    destination = os.path.join(root, relative_path.lstrip("/"))
    os.makedirs(os.path.dirname(destination), mode=0o700, exist_ok=True)
    shutil.copyfile(key_path, destination)
    os.chmod(destination, 0o400)
    log.info(f"Installed LUKS key at /{relative_path.lstrip('/')}")
    return destination


def load_crypto_module() -> None:
    run_command(["modprobe", "dm_crypt"])


def luks_format(partition_path: str, key_path: str) -> None:
    run_command(
        ["cryptsetup", "-q", "--batch-mode", "luksFormat", partition_path, key_path]
    )


def luks_open(partition_path: str, key_path: str, name: str = MAPPER_NAME) -> str:
    run_command(["cryptsetup", "--key-file", key_path, "open", partition_path, name])
    log.debug(f"Opened {partition_path} as {mapper_path(name)}")
    return mapper_path(name)


def luks_close(name: str = MAPPER_NAME) -> None:
    run_best_effort(["cryptsetup", "close", name])


@contextmanager
def encrypted_volume(
    partition_path: str, key_path: str, name: str = MAPPER_NAME
) -> Iterator[str]:
    """LUKS-format ``partition_path``, open it and yield the mapped device.

    The mapping is closed on exit.
    """
    luks_format(partition_path, key_path)
    mapped = luks_open(partition_path, key_path, name)
    try:
        yield mapped
    finally:
        luks_close(name)
