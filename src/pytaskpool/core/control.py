"""
Pool control interface and the stop signal.

Handlers, hooks and the error handler all receive the running pool as a
`PoolControl`. Through it they can inspect progress, change the concurrency
ceiling, or stop the pool from dispatching further items.

Example:
    ```python
    async def handler(item, index, pool: PoolControl):
        if item.is_poison():
            pool.stop()  # no new items are dispatched, does not return
        if pool.active_tasks_count() > 5:
            pool.use_concurrency(5)
        return await process(item)
    ```
"""

from typing import Any, NoReturn, Protocol, runtime_checkable

__all__ = [
    "PoolControl",
    "StopPool",
]


class _PoolControl(BaseException):
    """
    Base class for pool control signals.

    Control signals are not errors. They inherit from BaseException so that a
    handler's `except Exception:` block does not swallow them on their way
    back to the scheduler.
    """


class StopPool(_PoolControl):  # noqa: N818
    """
    Signal that the pool should stop dispatching new items.

    Raised by `PoolControl.stop()` after the pool has been marked stopped.
    It unwinds the code that called `stop()` and is then swallowed by the
    scheduler: it never shows up in the error list and is never passed to
    the user's error handler.
    """


@runtime_checkable
class PoolControl(Protocol):
    """Operations a running pool exposes to handlers, hooks and error handlers."""

    run_id: str

    def concurrency(self) -> int | float:
        """Current concurrency ceiling."""
        ...

    def use_concurrency(self, concurrency: int | float) -> Any:
        """Change the concurrency ceiling; takes effect at the next dispatch."""
        ...

    def timeout(self) -> float | None:
        """Per-task timeout in seconds, if any."""
        ...

    def should_use_corresponding_results(self) -> bool:
        """Whether results are kept at their item's position."""
        ...

    def stop(self) -> NoReturn:
        """Mark the pool stopped and raise `StopPool`."""
        ...

    def is_stopped(self) -> bool:
        """Whether the pool was stopped."""
        ...

    def items(self) -> list[Any]:
        """Items of this run, in dispatch order."""
        ...

    def items_count(self) -> int:
        """Number of items of this run."""
        ...

    def active_tasks_count(self) -> int:
        """Number of tasks currently in flight."""
        ...

    def processed_items(self) -> list[Any]:
        """Items whose task settled, in settlement order."""
        ...

    def processed_count(self) -> int:
        """Number of settled items."""
        ...

    def processed_percentage(self) -> float:
        """Share of settled items, from 0 to 100."""
        ...

    def results(self) -> list[Any]:
        """Results collected so far."""
        ...

    def errors(self) -> list[Any]:
        """Errors collected so far."""
        ...
