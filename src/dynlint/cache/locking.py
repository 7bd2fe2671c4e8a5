# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Per-key mutual exclusion across threads and processes.

A key is guarded twice: an in-process :class:`threading.Lock` keyed by the
lock file path serialises worker threads, and an advisory ``flock`` on the
lock file serialises independent processes sharing the same cache or project.
"""

from __future__ import annotations

import fcntl
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from threading import Lock

LOGGER = logging.getLogger(__name__)

_REGISTRY_LOCK = Lock()
_THREAD_LOCKS: dict[Path, Lock] = {}


def _thread_lock(path: Path) -> Lock:
    with _REGISTRY_LOCK:
        lock = _THREAD_LOCKS.get(path)
        if lock is None:
            lock = Lock()
            _THREAD_LOCKS[path] = lock
        return lock


@contextmanager
def file_lock(path: Path) -> Iterator[Path]:
    """Hold an exclusive lock on ``path`` for the duration of the context.

    Args:
        path: Lock file location; parent directories are created on demand.

    Yields:
        Path: The lock file path.
    """

    path = path.absolute()
    path.parent.mkdir(parents=True, exist_ok=True)
    thread_lock = _thread_lock(path)
    if not thread_lock.acquire(blocking=False):
        LOGGER.debug("waiting for in-process lock=%s", path)
        thread_lock.acquire()
    try:
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                LOGGER.debug("waiting for lock held by another process lock=%s", path)
                fcntl.flock(fd, fcntl.LOCK_EX)
            try:
                yield path
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
    finally:
        thread_lock.release()


__all__ = ["file_lock"]
