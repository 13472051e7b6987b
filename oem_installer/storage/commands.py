"""External command execution.

Two flavours are used by the installer:

- ``run_command()``: the command must succeed, any failure raises
  ``CommandError`` and aborts the current phase.
- ``run_best_effort()``: failures are logged as warnings and the run
  continues (partprobe, EFI stamping, attestation).

Commands are always passed as argument lists, never through a shell.
"""

from __future__ import annotations

import subprocess
from typing import Optional, Sequence

from oem_installer.logging import LoggerFactory
from oem_installer.storage.exceptions import CommandError


log = LoggerFactory.for_commands()
output_log = log.bind(tags=["command", "command-output"])


def run_command(
    command: Sequence[str],
    *,
    check: bool = True,
    input_text: Optional[str] = None,
    log_output: bool = True,
) -> subprocess.CompletedProcess:
    """Run a command and capture its output.

    Args:
        command: Program and arguments
        check: Raise CommandError when the command fails
        input_text: Optional text written to the command's stdin
        log_output: Log stdout/stderr at DEBUG level

    Returns:
        The completed process (stdout/stderr as text)

    Raises:
        CommandError: If check is True and the command exits non-zero or
            cannot be started
    """
    command = [str(part) for part in command]
    log.debug(f"Running command: {' '.join(command)}")
    try:
        result = subprocess.run(
            command,
            input=input_text,
            text=True,
            capture_output=True,
        )
    except OSError as error:
        log.debug(f"Command could not be started: {' '.join(command)}: {error}")
        if check:
            raise CommandError(command, None, str(error)) from error
        return subprocess.CompletedProcess(command, 127, stdout="", stderr=str(error))

    if result.stdout and (log_output or result.returncode != 0):
        output_log.debug(f"stdout: {result.stdout.strip()}")
    if result.stderr and (log_output or result.returncode != 0):
        output_log.debug(f"stderr: {result.stderr.strip()}")
    log.debug(f"Command completed with return code {result.returncode}")

    if check and result.returncode != 0:
        stderr = (result.stderr or "").strip()
        stdout = (result.stdout or "").strip()
        raise CommandError(command, result.returncode, stderr or stdout)
    return result


def run_best_effort(command: Sequence[str]) -> Optional[subprocess.CompletedProcess]:
    """Run a command whose failure must not abort the run.

    Returns:
        The completed process on success, None on failure
    """
    try:
        return run_command(command)
    except CommandError as error:
        log.warning(f"Ignoring failure of best-effort command: {error}")
        return None
