"""Detached side-effect tasks (broadcasts, notifications).

A detached task is never awaited by the request that spawned it. Its
exception is logged here and nowhere else.
"""

import asyncio
from typing import Any, Coroutine

import structlog

logger = structlog.get_logger()

_pending: set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Background task failed",
            operation=task.get_name(),
            error=str(exc),
            error_type=type(exc).__name__,
        )


def spawn_detached(coro: Coroutine[Any, Any, Any], operation: str) -> asyncio.Task:
    """Schedule `coro` on the running loop and keep a reference until it finishes."""
    task = asyncio.get_running_loop().create_task(coro, name=operation)
    _pending.add(task)
    task.add_done_callback(_on_done)
    return task


def pending_count() -> int:
    return len(_pending)


async def drain(timeout: float = 5.0) -> None:
    """Wait for outstanding detached tasks (shutdown and tests)."""
    if not _pending:
        return
    done, pending = await asyncio.wait(list(_pending), timeout=timeout)
    for task in pending:
        task.cancel()
