"""Utilities for monitoring background asyncio tasks."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable

Logger = logging.Logger


def monitor_task(task: asyncio.Task, *, name: str, logger: Logger, on_error: Callable[[BaseException], None] | None = None) -> asyncio.Task:
    """Attach a callback to log unexpected task termination."""

    def _callback(finished: asyncio.Task) -> None:
        with contextlib.suppress(asyncio.CancelledError):
            exc = finished.exception()
            if exc is None:
                return
            logger.error("Background task %s crashed: %s", name, exc, exc_info=exc)
            if on_error:
                on_error(exc)

    task.add_done_callback(_callback)
    return task


async def cancel_task(task: asyncio.Task | None) -> None:
    """Cancel ``task`` and wait until it has unwound."""

    if task is None or task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
