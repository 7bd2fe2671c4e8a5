# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Bounded worker pool shared by resolution, builds and group execution."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Generic, TypeVar

from ..core.errors import DynlintError
from ..core.runtime.process import terminate_active_processes

LOGGER = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")


@dataclass(frozen=True, slots=True)
class Outcome(Generic[ItemT, ResultT]):
    """Result of applying a task to one item; exactly one of ``result``/``error`` is set."""

    item: ItemT
    result: ResultT | None = None
    error: DynlintError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _apply(func: Callable[[ItemT], ResultT], item: ItemT) -> Outcome[ItemT, ResultT]:
    try:
        return Outcome(item=item, result=func(item))
    except DynlintError as exc:
        return Outcome(item=item, error=exc)


def run_tasks(
    func: Callable[[ItemT], ResultT],
    items: Sequence[ItemT],
    *,
    max_workers: int,
) -> list[Outcome[ItemT, ResultT]]:
    """Apply ``func`` to every item, concurrently when more than one worker is allowed.

    Pipeline errors raised by ``func`` are captured per item; any other
    exception propagates. On interrupt, tracked child processes are
    terminated, pending tasks are cancelled and the interrupt is re-raised.

    Args:
        func: Task applied to each item.
        items: Work items.
        max_workers: Upper bound on concurrent tasks.

    Returns:
        list[Outcome]: Outcomes in the order of ``items``.
    """

    if max_workers <= 1 or len(items) <= 1:
        return [_apply(func, item) for item in items]

    executor = ThreadPoolExecutor(max_workers=min(max_workers, len(items)), thread_name_prefix="dynlint")
    outcomes: dict[int, Outcome[ItemT, ResultT]] = {}
    try:
        futures: dict[Future[Outcome[ItemT, ResultT]], int] = {
            executor.submit(_apply, func, item): index for index, item in enumerate(items)
        }
        for future in as_completed(futures):
            outcomes[futures[future]] = future.result()
    except KeyboardInterrupt:
        terminated = terminate_active_processes()
        LOGGER.debug("interrupted; terminated %d child process(es)", terminated)
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    except BaseException:
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown(wait=True)
    return [outcomes[index] for index in range(len(items))]


__all__ = ["Outcome", "run_tasks"]
