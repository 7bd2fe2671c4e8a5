# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for per-key locks shared by threads and separate processes."""

from __future__ import annotations

import os
import subprocess  # nosec B404
import sys
import textwrap
import threading
import time
from pathlib import Path

import dynlint
from dynlint.cache.locking import file_lock
from dynlint.cache.store import CacheStore

HOLDER_SCRIPT = textwrap.dedent(
    """
    import sys
    import time
    from pathlib import Path

    from dynlint.cache.store import CacheStore

    root, ready, released = (Path(arg) for arg in sys.argv[1:4])
    with CacheStore.open(root, env={}).lock("plugin", "shared-key"):
        ready.write_text("held", encoding="utf-8")
        time.sleep(0.5)
        released.write_text("done", encoding="utf-8")
    """,
)


def _wait_for(path: Path, *, timeout: float = 10.0) -> None:
    deadline = time.monotonic() + timeout
    while not path.exists():
        if time.monotonic() > deadline:
            raise TimeoutError(f"{path} never appeared")
        time.sleep(0.01)


def test_store_lock_excludes_another_process(store: CacheStore, cache_root: Path, tmp_path: Path) -> None:
    ready = tmp_path / "ready"
    released = tmp_path / "released"
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        filter(None, [str(Path(dynlint.__file__).resolve().parents[1]), env.get("PYTHONPATH")]),
    )
    holder = subprocess.Popen(  # nosec B603
        [sys.executable, "-c", HOLDER_SCRIPT, str(cache_root), str(ready), str(released)],
        env=env,
    )
    try:
        _wait_for(ready)
        with store.lock("plugin", "shared-key"):
            released_before_acquire = released.exists()
    finally:
        holder.wait(timeout=30)

    assert holder.returncode == 0
    assert released_before_acquire


def test_file_lock_serialises_threads(tmp_path: Path) -> None:
    lock_path = tmp_path / "locks" / "key.lock"
    active = 0
    peak = 0
    guard = threading.Lock()

    def worker() -> None:
        nonlocal active, peak
        with file_lock(lock_path):
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.02)
            with guard:
                active -= 1

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert peak == 1
    assert lock_path.exists()
