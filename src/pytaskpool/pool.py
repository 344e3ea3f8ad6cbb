"""
Pool - Fluent builder for pool runs.

`Pool` collects settings and turns them into an immutable `PoolConfig` once
the handler is known. Every builder method returns a NEW `Pool`, so a
configured pool can be shared and specialized safely:

    ```python
    base = Pool().with_concurrency(5).with_timeout(2.0)

    users = await base.with_items(user_ids).process(fetch_user)
    orders = await base.with_items(order_ids).process(fetch_order)
    ```

Settings are validated when the run starts, not when they are set. An
invalid setting makes `process()` raise `PoolValidationError` before any
item is dispatched.

**Environment overrides**:
`from_env()` applies `PYTASKPOOL_CONCURRENCY` and `PYTASKPOOL_TIMEOUT`
(seconds), so deployments can tune a pool without code changes:

    ```python
    # $ export PYTASKPOOL_CONCURRENCY=50
    result = await Pool.for_items(jobs).from_env().process(run_job)
    ```
"""

import os
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Any, Generic, TypeVar

from pytaskpool.core.config import (
    DEFAULT_CONCURRENCY,
    ErrorHandler,
    PoolConfig,
    ProcessHandler,
    TaskHook,
)
from pytaskpool.core.errors import PoolValidationError
from pytaskpool.core.results import PoolResult
from pytaskpool.executor.instance import PoolExecutor

__all__ = [
    "Pool",
    "ENV_CONCURRENCY",
    "ENV_TIMEOUT",
]

T = TypeVar("T")
R = TypeVar("R")

ENV_CONCURRENCY = "PYTASKPOOL_CONCURRENCY"
ENV_TIMEOUT = "PYTASKPOOL_TIMEOUT"


@dataclass(frozen=True)
class Pool(Generic[T]):
    """
    Immutable, chainable pool configuration.

    Usage:
        result = await (
            Pool.for_items([1, 2, 3])
            .with_concurrency(2)
            .handle_error(log_error)
            .on_task_finished(report_progress)
            .process(handler)
        )
    """

    items: Sequence[T] = ()
    concurrency: int | float = DEFAULT_CONCURRENCY
    timeout: float | None = None
    error_handler: ErrorHandler | None = None
    on_task_started_hooks: tuple[TaskHook, ...] = ()
    on_task_finished_hooks: tuple[TaskHook, ...] = ()
    corresponding_results: bool = False

    @classmethod
    def for_items(cls, items: Sequence[T]) -> "Pool[T]":
        """Create a pool with default settings for `items`."""
        return cls(items=items)

    def with_items(self, items: Sequence[T]) -> "Pool[T]":
        """Return a pool with the same settings for other `items`."""
        return replace(self, items=items)

    def with_concurrency(self, concurrency: int | float) -> "Pool[T]":
        """
        Set the maximum number of tasks in flight.

        Args:
            concurrency: A number of at least 1 (`math.inf` for no limit)
        """
        return replace(self, concurrency=concurrency)

    def with_timeout(self, timeout: float | None) -> "Pool[T]":
        """
        Set the per-task timeout.

        A task still running after `timeout` seconds is recorded as a
        `PoolTimeoutError`. Its handler is not cancelled and keeps running
        in the background.

        Args:
            timeout: Seconds, or None to wait indefinitely
        """
        return replace(self, timeout=timeout)

    def handle_error(self, handler: ErrorHandler | None) -> "Pool[T]":
        """
        Route task errors to `handler(error, item, pool)` instead of collecting them.

        Errors raised by the handler itself abort the run, except the
        `StopPool` signal raised by `pool.stop()`.
        """
        return replace(self, error_handler=handler)

    def on_task_started(self, hook: TaskHook) -> "Pool[T]":
        """Add a `hook(item, pool)` called right after each task is dispatched."""
        return replace(self, on_task_started_hooks=(*self.on_task_started_hooks, hook))

    def on_task_finished(self, hook: TaskHook) -> "Pool[T]":
        """Add a `hook(item, pool)` called after each task settled."""
        return replace(self, on_task_finished_hooks=(*self.on_task_finished_hooks, hook))

    def use_corresponding_results(self) -> "Pool[T]":
        """Keep `results[i]` aligned with `items[i]` (markers for missing values)."""
        return replace(self, corresponding_results=True)

    def from_env(self) -> "Pool[T]":
        """
        Apply concurrency and timeout from the environment.

        Unset (or empty) variables keep the current setting.

        Raises:
            PoolValidationError: If a variable is set but not a number
        """
        pool = self

        concurrency = os.getenv(ENV_CONCURRENCY)
        if concurrency:
            pool = pool.with_concurrency(_parse_number(ENV_CONCURRENCY, concurrency))

        timeout = os.getenv(ENV_TIMEOUT)
        if timeout:
            pool = pool.with_timeout(_parse_number(ENV_TIMEOUT, timeout))

        return pool

    def config(self, handler: ProcessHandler) -> PoolConfig[T, Any]:
        """Build the immutable run configuration for `handler`."""
        return PoolConfig(
            handler=handler,
            items=self.items,
            concurrency=self.concurrency,
            timeout=self.timeout,
            error_handler=self.error_handler,
            on_task_started=self.on_task_started_hooks,
            on_task_finished=self.on_task_finished_hooks,
            corresponding_results=self.corresponding_results,
        )

    async def process(self, handler: ProcessHandler) -> PoolResult[T, Any]:
        """
        Run `handler(item, index, pool)` for every item.

        Returns:
            PoolResult with the collected results and errors

        Raises:
            PoolValidationError: If the configuration is invalid
        """
        return await PoolExecutor(self.config(handler)).start()


def _parse_number(name: str, value: str) -> int | float:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError as e:
        raise PoolValidationError.create_from(
            f'Environment variable {name} must be a number. Received "{value}"'
        ) from e
