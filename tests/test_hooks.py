"""
Tests for task lifecycle hooks.

Started hooks run right after a task is dispatched, finished hooks right
after it settled. Hooks are called, never awaited: an async hook runs in the
background while dispatch continues.
"""

import asyncio

import pytest
from conftest import double, fail_on_three

from pytaskpool import Pool, PoolConfig, PoolExecutor

# =============================================================================
# Ordering
# =============================================================================


@pytest.mark.asyncio
async def test_hook_event_order_with_concurrency_one(items):
    """With one slot, each task finishes before the next one is started."""
    events = []

    await (
        Pool.for_items(items[:3])
        .with_concurrency(1)
        .on_task_started(lambda item, pool: events.append(("started", item)))
        .on_task_finished(lambda item, pool: events.append(("finished", item)))
        .process(double)
    )

    assert events == [
        ("started", 1),
        ("finished", 1),
        ("started", 2),
        ("finished", 2),
        ("started", 3),
        ("finished", 3),
    ]


@pytest.mark.asyncio
async def test_multiple_hooks_called_in_registration_order():
    calls = []

    await (
        Pool.for_items(["a"])
        .on_task_started(lambda item, pool: calls.append("first"))
        .on_task_started(lambda item, pool: calls.append("second"))
        .process(double)
    )

    assert calls == ["first", "second"]


@pytest.mark.asyncio
async def test_finished_hook_runs_for_failed_items(items):
    """Finished hooks run whatever the task's outcome."""
    finished = []

    await Pool.for_items(items).on_task_finished(lambda item, pool: finished.append(item)).process(
        fail_on_three
    )

    assert sorted(finished) == items


@pytest.mark.asyncio
async def test_processed_percentage_progression():
    """Finished hooks observe the item already counted as processed."""
    progress = []

    await (
        Pool.for_items([1, 2, 3, 4])
        .with_concurrency(1)
        .on_task_finished(lambda item, pool: progress.append(pool.processed_percentage()))
        .process(double)
    )

    assert progress == [25.0, 50.0, 75.0, 100.0]


@pytest.mark.asyncio
async def test_started_hook_sees_task_as_active():
    counts = []

    await (
        Pool.for_items([1, 2, 3])
        .with_concurrency(1)
        .on_task_started(lambda item, pool: counts.append(pool.active_tasks_count()))
        .process(double)
    )

    assert counts == [1, 1, 1]


# =============================================================================
# Async hooks
# =============================================================================


@pytest.mark.asyncio
async def test_async_hook_does_not_block_dispatch():
    """A slow async hook runs in the background; the run completes without it."""
    gate = asyncio.Event()
    seen = []

    async def slow_hook(item, pool):
        await gate.wait()
        seen.append(item)

    executor = PoolExecutor(
        PoolConfig(handler=double, items=[1, 2, 3], concurrency=1, on_task_started=(slow_hook,))
    )
    result = await executor.start()

    assert result.results == [2, 4, 6]
    assert seen == []

    gate.set()
    assert executor.detached_tasks_count() == 3
    await executor.wait_detached()
    assert executor.detached_tasks_count() == 0
    assert sorted(seen) == [1, 2, 3]


@pytest.mark.asyncio
async def test_failing_async_hook_does_not_fail_run():
    """Background hook failures are logged, not raised."""

    async def broken_hook(item, pool):
        raise RuntimeError("hook broke")

    result = await Pool.for_items([1, 2]).on_task_finished(broken_hook).process(double)

    assert sorted(result.results) == [2, 4]
    await asyncio.sleep(0)


# =============================================================================
# Failing hooks
# =============================================================================


@pytest.mark.asyncio
async def test_started_hook_error_propagates(items):
    """A synchronous started-hook error aborts the run."""

    def on_started(item, pool):
        if item == 2:
            raise RuntimeError("started hook broke")

    with pytest.raises(RuntimeError, match="started hook broke"):
        await Pool.for_items(items).with_concurrency(1).on_task_started(on_started).process(double)


@pytest.mark.asyncio
async def test_finished_hook_error_propagates(items):
    """A synchronous finished-hook error aborts the run and stops the pool."""

    def on_finished(item, pool):
        if item == 2:
            raise RuntimeError("finished hook broke")

    executor = PoolExecutor(
        PoolConfig(handler=double, items=items, concurrency=1, on_task_finished=(on_finished,))
    )

    with pytest.raises(RuntimeError, match="finished hook broke"):
        await executor.start()

    assert executor.is_stopped()
    assert executor.processed_items() == [1, 2]
    assert executor.results() == [2, 4]


# =============================================================================
# Changing concurrency from a hook
# =============================================================================


@pytest.mark.concurrency
@pytest.mark.asyncio
async def test_lowering_concurrency_from_started_hook(tracker):
    """Lowering the ceiling from 3 to 1 mid-run serializes later dispatches."""
    active_at_start = {}

    def on_started(item, pool):
        active_at_start[item] = pool.active_tasks_count()
        if item == 3:
            pool.use_concurrency(1)

    executor = PoolExecutor(
        PoolConfig(
            handler=tracker.sleeping_handler(0.01),
            items=[1, 2, 3, 4, 5, 6],
            concurrency=3,
            on_task_started=(on_started,),
        )
    )
    result = await executor.start()

    assert active_at_start[3] == 3
    assert [active_at_start[item] for item in (4, 5, 6)] == [1, 1, 1]
    assert executor.concurrency() == 1
    assert sorted(result.results) == [1, 2, 3, 4, 5, 6]
