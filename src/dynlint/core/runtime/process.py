# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Safe wrappers around ``subprocess`` execution.

Every child started through :func:`run_command` is tracked so an interrupted
run can terminate cargo, rustup, git and driver processes that are still in
flight.
"""

from __future__ import annotations

import logging
import shutil

# Bandit: subprocess usage is intentional; commands are argument lists and
# ``shell=True`` is never used.
import subprocess  # nosec B404
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from subprocess import CompletedProcess
from threading import Lock
from typing import Final, Protocol

LOGGER = logging.getLogger(__name__)

TIMEOUT_RETURNCODE: Final[int] = 124
_TERMINATE_GRACE_SECONDS: Final[float] = 5.0

_ACTIVE_LOCK = Lock()
_ACTIVE: set[subprocess.Popen[str]] = set()


@dataclass(frozen=True, slots=True)
class CommandOptions:
    """Immutable command execution options."""

    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    check: bool = True
    capture_output: bool = False
    timeout: float | None = None
    discard_stdin: bool = False


class SubprocessExecutionError(RuntimeError):
    """Raised when a subprocess exits with a non-zero status while ``check`` is true."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stdout: str | None,
        stderr: str | None,
    ) -> None:
        """Initialise the error with captured subprocess metadata.

        Args:
            command: Normalised command sequence that was executed.
            returncode: Exit status reported by the subprocess.
            stdout: Captured standard output stream.
            stderr: Captured standard error stream.
        """

        super().__init__(
            f"Command '{command[0]}' exited with status {returncode}. stderr: {stderr or '<none>'}",
        )
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class CommandRunner(Protocol):
    """Callable signature shared by :func:`run_command` and test doubles."""

    def __call__(
        self,
        args: Sequence[str],
        *,
        options: CommandOptions | None = None,
    ) -> CompletedProcess[str]: ...


def _normalize_args(args: Sequence[str]) -> list[str]:
    """Normalise the subprocess argument sequence.

    Args:
        args: Raw command arguments supplied by the caller.

    Returns:
        list[str]: Argument list with the executable resolved on ``PATH``.

    Raises:
        ValueError: If no arguments are provided.
        FileNotFoundError: If the executable cannot be resolved.
    """

    if not args:
        raise ValueError("subprocess command requires at least one argument")

    head, *rest = args
    head_path = Path(head)
    if head_path.is_absolute():
        return [str(head_path), *rest]

    resolved = shutil.which(head)
    if resolved is None:
        raise FileNotFoundError(f"Executable '{head}' was not found on PATH")
    return [resolved, *rest]


def _track(process: subprocess.Popen[str]) -> None:
    with _ACTIVE_LOCK:
        _ACTIVE.add(process)


def _untrack(process: subprocess.Popen[str]) -> None:
    with _ACTIVE_LOCK:
        _ACTIVE.discard(process)


def terminate_active_processes() -> int:
    """Send a termination signal to every tracked child process.

    Returns:
        int: Number of processes that were still running.
    """

    with _ACTIVE_LOCK:
        processes = list(_ACTIVE)
    terminated = 0
    for process in processes:
        if process.poll() is not None:
            continue
        LOGGER.debug("terminating pid=%s", process.pid)
        process.terminate()
        terminated += 1
    for process in processes:
        try:
            process.wait(timeout=_TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            process.kill()
    return terminated


def run_command(
    args: Sequence[str],
    *,
    options: CommandOptions | None = None,
) -> CompletedProcess[str]:
    """Execute ``args`` after normalising the executable path.

    Args:
        args: Command and argument sequence to execute.
        options: Options configuring execution semantics.

    Returns:
        CompletedProcess[str]: Subprocess execution metadata.

    Raises:
        FileNotFoundError: If the executable cannot be resolved on ``PATH``.
        SubprocessExecutionError: When ``check`` is true and the process exits
            with a non-zero status.
    """

    resolved = options or CommandOptions()
    normalized = _normalize_args(args)
    pipe = subprocess.PIPE if resolved.capture_output else None
    LOGGER.debug("run command=%s cwd=%s", " ".join(normalized), resolved.cwd)

    # Bandit: commands are assembled from vetted configuration as argument lists.
    process = subprocess.Popen(  # nosec B603
        normalized,
        cwd=str(resolved.cwd) if resolved.cwd is not None else None,
        env=dict(resolved.env) if resolved.env is not None else None,
        stdout=pipe,
        stderr=pipe,
        stdin=subprocess.DEVNULL if resolved.discard_stdin else None,
        text=True,
    )
    _track(process)
    try:
        try:
            stdout, stderr = process.communicate(timeout=resolved.timeout)
            returncode = process.returncode
        except subprocess.TimeoutExpired:
            process.kill()
            stdout, stderr = process.communicate()
            timeout_msg = f"Command timed out after {resolved.timeout:.1f}s"
            stderr = f"{stderr}\n{timeout_msg}" if stderr else timeout_msg
            returncode = TIMEOUT_RETURNCODE
        except BaseException:
            process.terminate()
            process.wait()
            raise
    finally:
        _untrack(process)

    completed: CompletedProcess[str] = CompletedProcess(
        args=normalized,
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
    )
    if resolved.check and completed.returncode != 0:
        raise SubprocessExecutionError(normalized, completed.returncode, stdout, stderr)
    return completed


__all__ = [
    "CommandOptions",
    "CommandRunner",
    "SubprocessExecutionError",
    "run_command",
    "terminate_active_processes",
]
