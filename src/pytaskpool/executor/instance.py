"""
PoolExecutor - Runs a handler over a fixed list of items with bounded concurrency.

One executor performs exactly one run. It holds the pool state (active tasks,
results, errors, processed items, stop flag) and is itself the `PoolControl`
passed to handlers, hooks and the error handler.

Run lifecycle:
Idle → Validating → Dispatching → Draining → Completed

`Stopped` is reachable from Dispatching: no new item is dispatched, but the
tasks already in flight are drained normally.

**Scheduling**:
Items are dispatched in source order. Before each dispatch the executor
waits until fewer than `concurrency` tasks are in flight, by awaiting the
earliest-settling active task. The ceiling is re-read on every pass, so
lowering it at runtime (from a handler or hook) makes the executor wait for
as many tasks as needed.

All bookkeeping happens on the event loop's single thread: task settlement
runs in the tasks themselves, interleaved with the dispatch loop only at
await points. No locks are needed.

Example:
    ```python
    config = PoolConfig(items=[1, 2, 3, 4, 5], handler=double, concurrency=2)
    executor = PoolExecutor(config)
    result = await executor.start()

    print(result.results)              # [2, 4, 6, 8, 10]
    print(executor.processed_items())  # [1, 2, 3, 4, 5]
    ```
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Sequence
from typing import Any, Generic, NoReturn, TypeVar

from uuid_extensions import uuid7

from pytaskpool.core.config import PoolConfig, TaskHook, is_valid_concurrency
from pytaskpool.core.control import StopPool
from pytaskpool.core.errors import PoolError, PoolTimeoutError, PoolValidationError
from pytaskpool.core.results import FAILED, NOT_RUN, PoolResult, ResultMarker
from pytaskpool.executor.task import DetachedTasks, call_handler, race_timeout

__all__ = ["PoolExecutor", "execute_pool"]

logger = logging.getLogger(__name__)

T = TypeVar("T")  # Item type
R = TypeVar("R")  # Result type


class PoolExecutor(Generic[T, R]):
    """
    Execute one pool run.

    Attributes:
        run_id: Time-ordered identifier of this run (UUIDv7), used in logs
            and in the returned `PoolResult`

    Usage:
        executor = PoolExecutor(config)
        result = await executor.start()
    """

    def __init__(self, config: PoolConfig[T, R], run_id: str | None = None):
        """
        Create an executor for `config`.

        Nothing is validated or started here; see `start()`.

        Args:
            config: The run's configuration
            run_id: Optional run identifier (generated if not provided)
        """
        self._config = config
        self.run_id = run_id or str(uuid7())

        self._concurrency = config.concurrency
        self._stopped = False
        self._started = False

        self._tasks: set[asyncio.Task] = set()
        self._processed_items: list[T] = []
        self._results: list[R | ResultMarker] = []
        self._errors: list[PoolError[T]] = []

        # First fatal error raised inside a task; re-raised by the dispatch loop
        self._failure: Exception | None = None

        self._abandoned = DetachedTasks(f"Pool {self.run_id}", level=logging.DEBUG)
        self._hook_tasks = DetachedTasks(f"Pool {self.run_id}", level=logging.WARNING)

    # =========================================================================
    # Pool control interface
    # =========================================================================

    def concurrency(self) -> int | float:
        """Return the current concurrency ceiling."""
        return self._concurrency

    def use_concurrency(self, concurrency: int | float) -> "PoolExecutor[T, R]":
        """
        Change the concurrency ceiling.

        May be called at any time, including from a running handler or hook.
        The dispatch loop reads the new value before its next dispatch
        decision; tasks already in flight are not affected.

        Args:
            concurrency: New ceiling, a number of at least 1

        Returns:
            self for method chaining

        Raises:
            PoolValidationError: If `concurrency` is invalid
        """
        if not is_valid_concurrency(concurrency):
            raise PoolValidationError.create_from(
                f'"concurrency" must be a number, 1 or up. '
                f'Received "{concurrency!r}" ({type(concurrency).__name__})'
            )

        logger.debug(
            f"Pool {self.run_id}: concurrency changed from {self._concurrency} to {concurrency}"
        )
        self._concurrency = concurrency
        return self

    def timeout(self) -> float | None:
        """Return the per-task timeout in seconds, or None."""
        return self._config.timeout

    def should_use_corresponding_results(self) -> bool:
        """Return True if results are kept at their item's position."""
        return self._config.corresponding_results

    def stop(self) -> NoReturn:
        """
        Stop dispatching new items.

        Marks the pool stopped, then raises `StopPool` to unwind the caller.
        Tasks already in flight run to completion.

        Raises:
            StopPool: Always
        """
        self._mark_as_stopped()
        raise StopPool()

    def is_stopped(self) -> bool:
        """Return True if the pool was stopped."""
        return self._stopped

    def items(self) -> Sequence[T]:
        """Return the items of this run."""
        return self._config.items

    def items_count(self) -> int:
        """Return the number of items of this run."""
        return len(self._config.items)

    def active_tasks_count(self) -> int:
        """Return the number of tasks currently in flight."""
        return len(self._tasks)

    def processed_items(self) -> list[T]:
        """Return the items whose task settled, in settlement order."""
        return self._processed_items

    def processed_count(self) -> int:
        """Return the number of settled items."""
        return len(self._processed_items)

    def processed_percentage(self) -> float:
        """Return the share of settled items (0 to 100; 0.0 for no items)."""
        if not self.items_count():
            return 0.0
        return self.processed_count() / self.items_count() * 100

    def results(self) -> list[R | ResultMarker]:
        """Return the results collected so far."""
        return self._results

    def errors(self) -> list[PoolError[T]]:
        """Return the errors collected so far."""
        return self._errors

    def has_error_handler(self) -> bool:
        """Return True if a custom error handler is configured."""
        return self._config.error_handler is not None

    def has_reached_concurrency_limit(self) -> bool:
        """Return True if the number of active tasks reached the ceiling."""
        return self.active_tasks_count() >= self.concurrency()

    # =========================================================================
    # Run
    # =========================================================================

    async def start(self) -> PoolResult[T, R]:
        """
        Run the pool to completion.

        Returns:
            PoolResult with the collected results and errors

        Raises:
            PoolValidationError: If the configuration is invalid (before any
                task starts), or a running handler set an invalid concurrency
            RuntimeError: If the executor was already started
            Exception: Whatever the error handler or a hook raised
        """
        if self._started:
            raise RuntimeError(
                f"PoolExecutor.start() called twice for run '{self.run_id}'. "
                "Executors are single-use - create a new one per run."
            )
        self._started = True

        self._validate_inputs()
        self._prepare_results()

        logger.info(
            f"Pool {self.run_id}: processing {self.items_count()} items "
            f"with concurrency {self.concurrency()}"
        )
        return await self._process()

    def _validate_inputs(self) -> None:
        self._config.validate()

    def _prepare_results(self) -> None:
        """Prefill one NOT_RUN slot per item if results should correspond."""
        if self.should_use_corresponding_results():
            self._results = [NOT_RUN] * self.items_count()

    async def _process(self) -> PoolResult[T, R]:
        for index, item in enumerate(self._config.items):
            if self.is_stopped():
                break

            await self._wait_for_processing_slot()

            # A task settling while we waited may have stopped the pool
            if self.is_stopped():
                break

            self._start_processing(item, index)

        return await self._drained()

    async def _wait_for_processing_slot(self) -> None:
        # Loop: the ceiling may have been lowered at runtime, in which case
        # more than one task has to finish before a slot is free.
        while self.has_reached_concurrency_limit():
            await self._wait_for_active_task_to_finish()

    async def _wait_for_active_task_to_finish(self) -> None:
        await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
        self._raise_if_failed()

    async def _drained(self) -> PoolResult[T, R]:
        while self._tasks:
            await self._wait_for_active_task_to_finish()
        self._raise_if_failed()

        logger.info(
            f"Pool {self.run_id}: finished, {self.processed_count()}/{self.items_count()} "
            f"items processed, {len(self._errors)} errors"
        )
        return PoolResult(results=self._results, errors=self._errors, run_id=self.run_id)

    def _raise_if_failed(self) -> None:
        if self._failure is not None:
            raise self._failure

    # =========================================================================
    # Tasks
    # =========================================================================

    def _start_processing(self, item: T, index: int) -> None:
        task = asyncio.create_task(
            self._process_item(item, index), name=f"pytaskpool-{self.run_id}-{index}"
        )
        self._tasks.add(task)
        # Covers tasks cancelled before their first step, which never reach
        # the settlement code
        task.add_done_callback(self._remove_active)
        logger.debug(f"Pool {self.run_id}: dispatched item #{index}")

        self._run_hooks(self._config.on_task_started, item, "on_task_started")

    async def _process_item(self, item: T, index: int) -> None:
        """
        Settle the task for one item.

        Success and task errors are recorded; afterwards the task leaves the
        active set, the item is marked processed and the finished hooks run,
        whatever the outcome. Fatal errors are recorded for the dispatch loop.

        A `CancelledError` coming out of the handler (for example from a
        future it awaited that someone else cancelled) counts as a task
        error. Cancelling this task itself still propagates.
        """
        task = asyncio.current_task()
        try:
            try:
                result = await self._create_task_for(item, index)
            except asyncio.CancelledError as error:
                # Only a cancellation aimed at this task unwinds it; one
                # raised by the handler's own awaits is a task error
                if task is not None and task.cancelling():
                    raise
                await self._handle_error_for(error, item, index)
            except (Exception, StopPool) as error:
                await self._handle_error_for(error, item, index)
            else:
                self._save(result, index)
            finally:
                self._remove_active(task)
                self._processed_items.append(item)
                self._run_hooks(self._config.on_task_finished, item, "on_task_finished")
        except Exception as error:
            self._fail(error)

    async def _create_task_for(self, item: T, index: int) -> R:
        outcome = call_handler(self._config.handler, item, index, self)

        if self._config.timeout is None:
            return await outcome

        return await race_timeout(outcome, self._config.timeout, item, self._abandoned)

    def _save(self, result: R, position: int) -> None:
        if self.should_use_corresponding_results():
            self._results[position] = result
        else:
            self._results.append(result)

    def _remove_active(self, task: asyncio.Task | None) -> None:
        self._tasks.discard(task)

    # =========================================================================
    # Errors
    # =========================================================================

    async def _handle_error_for(self, error: BaseException, item: T, index: int) -> None:
        """
        Classify and record an error raised by a task.

        - StopPool: swallowed, the pool is already stopped
        - PoolValidationError: fatal, stops the pool and re-raises
        - anything else: slot marked FAILED, then routed to the error
          handler or collected
        """
        if self._is_stopping_the_pool_error(error):
            logger.debug(f"Pool {self.run_id}: item #{index} stopped the pool")
            return

        if self._is_validation_error(error):
            self._mark_as_stopped()
            raise error

        if self.should_use_corresponding_results():
            self._results[index] = FAILED

        if isinstance(error, PoolTimeoutError):
            logger.warning(f"Pool {self.run_id}: item #{index} {error.message}")
        else:
            logger.debug(f"Pool {self.run_id}: item #{index} failed: {type(error).__name__}: {error}")

        if self.has_error_handler():
            await self._run_error_handler_for(error, item)
        else:
            self._save_error_for(error, item)

    @staticmethod
    def _is_stopping_the_pool_error(error: BaseException) -> bool:
        return isinstance(error, StopPool)

    @staticmethod
    def _is_validation_error(error: BaseException) -> bool:
        return isinstance(error, PoolValidationError)

    async def _run_error_handler_for(self, error: BaseException, item: T) -> None:
        try:
            await call_handler(self._config.error_handler, error, item, self)
        except StopPool:
            logger.debug(f"Pool {self.run_id}: error handler stopped the pool")

    def _save_error_for(self, error: BaseException, item: T) -> None:
        self._errors.append(PoolError.create_from(error, item))

    def _fail(self, error: Exception) -> None:
        if self._failure is None:
            logger.error(f"Pool {self.run_id}: aborting run: {type(error).__name__}: {error}")
            self._failure = error
        self._mark_as_stopped()

    def _mark_as_stopped(self) -> None:
        if not self._stopped:
            logger.info(f"Pool {self.run_id}: stopped, no further items will be dispatched")
        self._stopped = True

    # =========================================================================
    # Hooks
    # =========================================================================

    def _run_hooks(self, hooks: Sequence[TaskHook], item: T, event: str) -> None:
        """
        Call each hook with `(item, pool)`.

        Hooks are not awaited: an awaitable return value is scheduled in the
        background. Synchronous exceptions propagate, except StopPool.
        """
        for hook in hooks:
            try:
                outcome = hook(item, self)
            except StopPool:
                continue

            if inspect.isawaitable(outcome):
                self._hook_tasks.spawn(
                    self._await_hook(outcome), f"{event} hook for item {item!r}"
                )

    @staticmethod
    async def _await_hook(outcome: Awaitable[Any]) -> None:
        try:
            await outcome
        except StopPool:
            pass

    # =========================================================================
    # Detached work
    # =========================================================================

    def detached_tasks_count(self) -> int:
        """Return the number of timed-out handlers and async hooks still running."""
        return len(self._abandoned) + len(self._hook_tasks)

    async def wait_detached(self) -> None:
        """
        Wait for timed-out handlers and async hooks started by this run.

        `start()` returns without waiting for them. Call this before shutting
        down the event loop if their side effects matter. Their outcomes are
        logged, never raised.
        """
        logger.debug(
            f"Pool {self.run_id}: waiting for {self.detached_tasks_count()} detached tasks"
        )
        await self._abandoned.wait()
        await self._hook_tasks.wait()

    def __repr__(self) -> str:
        return (
            f"PoolExecutor(run_id={self.run_id!r}, items={self.items_count()}, "
            f"concurrency={self._concurrency}, active={self.active_tasks_count()}, "
            f"detached={self.detached_tasks_count()}, stopped={self._stopped})"
        )


async def execute_pool(config: PoolConfig[T, R]) -> PoolResult[T, R]:
    """
    Run `config` with a fresh executor.

    Convenience for callers that don't need access to the executor after the
    run (processed items, progress).

    Example:
        result = await execute_pool(PoolConfig(items=urls, handler=fetch))
    """
    return await PoolExecutor(config).start()
