"""
Task wrapper helpers: calling handlers and racing them against a timeout.

A pool task settles exactly once, with a value or an error. This module
produces that outcome for one handler invocation:

1. `call_handler()` calls a plain or async function and awaits the result
   when it is awaitable
2. `race_timeout()` runs the handler as its own asyncio task and races it
   against a timer

**Known limitation**: losing the race does NOT cancel the handler. The pool
stops waiting and records a `PoolTimeoutError`, but the handler keeps running
in the background. Such tasks are kept in a `DetachedTasks` set (so they are
not garbage collected mid-execution) and their late outcome is logged;
`PoolExecutor.wait_detached()` waits for them.
Handlers that must stop on timeout have to watch the clock themselves.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pytaskpool.core.errors import PoolTimeoutError

__all__ = [
    "DetachedTasks",
    "call_handler",
    "race_timeout",
    "timeout_message",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_handler(handler: Callable[..., Any], *args: Any) -> Any:
    """
    Call `handler(*args)` and await the result if it is awaitable.

    Args:
        handler: Plain function or coroutine function
        *args: Positional arguments for the handler

    Returns:
        The handler's (awaited) return value

    Raises:
        Whatever the handler raises
    """
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def timeout_message(timeout: float) -> str:
    """Human-readable timeout message, with the timeout in milliseconds."""
    return f"Promise in pool timed out after {timeout * 1000:g}ms"


class DetachedTasks:
    """
    Tasks the pool started but no longer waits for.

    The event loop only keeps weak references to tasks, so a task nobody
    awaits must be referenced somewhere until it finishes. Failures are
    logged at `level` since nobody else will see them.

    Usage:
        detached = DetachedTasks(label="pool 0190...", level=logging.WARNING)
        detached.spawn(hook_coroutine, "on_task_started hook")
    """

    def __init__(self, label: str, level: int = logging.DEBUG):
        self._label = label
        self._level = level
        self._tasks: set[asyncio.Future] = set()

    def spawn(self, awaitable: Awaitable[Any], description: str) -> asyncio.Future:
        """Schedule `awaitable` and keep it referenced until done."""
        return self.adopt(asyncio.ensure_future(awaitable), description)

    def adopt(self, task: asyncio.Future, description: str) -> asyncio.Future:
        """Keep an already running `task` referenced until done."""
        self._tasks.add(task)

        def _on_done(done: asyncio.Future) -> None:
            self._tasks.discard(done)
            if done.cancelled():
                logger.debug(f"{self._label}: {description} cancelled")
                return
            error = done.exception()
            if error is not None:
                logger.log(
                    self._level,
                    f"{self._label}: {description} failed: {type(error).__name__}: {error}",
                )
            else:
                logger.debug(f"{self._label}: {description} finished")

        task.add_done_callback(_on_done)
        return task

    def __len__(self) -> int:
        return len(self._tasks)

    async def wait(self) -> None:
        """Wait for all detached tasks, ignoring their outcomes."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


async def race_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    item: Any,
    abandoned: DetachedTasks,
) -> T:
    """
    Race `awaitable` against a `timeout` second timer.

    Whichever settles first decides the outcome. When the timer wins, the
    still running awaitable is handed over to `abandoned` instead of being
    cancelled.

    Args:
        awaitable: The handler's outcome
        timeout: Budget in seconds
        item: Item being processed, attached to the timeout error
        abandoned: Keeps the losing handler task alive

    Returns:
        The awaitable's result, if it settles in time

    Raises:
        PoolTimeoutError: If the timer fires first
        Exception: Whatever the awaitable raises, if it settles in time
    """
    handler_task = asyncio.ensure_future(awaitable)

    try:
        done, _ = await asyncio.wait({handler_task}, timeout=timeout)
    except asyncio.CancelledError:
        handler_task.cancel()
        raise

    if handler_task in done:
        return handler_task.result()

    abandoned.adopt(handler_task, f"handler for item {item!r} (timed out)")
    raise PoolTimeoutError(timeout_message(timeout), item)
