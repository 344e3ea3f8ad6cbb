"""
Property-based tests for pytaskpool using Hypothesis.

These tests generate many item lists, ceilings and handler delays to check
the scheduler's invariants:
- The concurrency ceiling is never exceeded
- Corresponding results keep one slot per item
- Every item ends as exactly one of result, error or not run
- Stop means "no new dispatch, finish what's started"
"""

import asyncio

import pytest
from conftest import InFlightTracker, concurrencies, delayed_items, item_lists
from hypothesis import given, settings
from hypothesis import strategies as st

from pytaskpool import FAILED, NOT_RUN, Pool, PoolConfig, PoolExecutor

# ==============================================================================
# PROPERTY 1: Concurrency Ceiling
# ==============================================================================


@pytest.mark.property
@pytest.mark.asyncio
@given(entries=delayed_items(), concurrency=concurrencies)
@settings(max_examples=30, deadline=None)
async def test_in_flight_never_exceeds_ceiling(entries, concurrency):
    """However long handlers take, at most `concurrency` run at once."""
    tracker = InFlightTracker()

    async def handler(entry, index, pool):
        value, delay_ms = entry
        tracker.enter(entry)
        try:
            await asyncio.sleep(delay_ms / 1000)
            return value
        finally:
            tracker.exit()

    result = await Pool.for_items(entries).with_concurrency(concurrency).process(handler)

    assert tracker.max_running <= concurrency
    assert tracker.running == 0
    assert len(result.results) == len(entries)


# ==============================================================================
# PROPERTY 2: Result Bookkeeping
# ==============================================================================


@pytest.mark.property
@pytest.mark.asyncio
@given(values=item_lists, concurrency=concurrencies)
@settings(max_examples=30, deadline=None)
async def test_corresponding_results_match_items(values, concurrency):
    """Corresponding mode: results[i] belongs to items[i]; odd items fail."""

    async def handler(item, index, pool):
        await asyncio.sleep(0)
        if item % 2:
            raise ValueError(item)
        return item * 2

    result = await (
        Pool.for_items(values).with_concurrency(concurrency).use_corresponding_results().process(handler)
    )

    assert len(result.results) == len(values)
    for value, slot in zip(values, result.results):
        assert slot == (FAILED if value % 2 else value * 2)
    assert NOT_RUN not in result.results


@pytest.mark.property
@pytest.mark.asyncio
@given(values=item_lists, concurrency=concurrencies)
@settings(max_examples=30, deadline=None)
async def test_each_item_has_result_xor_error(values, concurrency):
    """Every item produces exactly one of a result or an error."""
    items = list(enumerate(values))

    async def handler(item, index, pool):
        position, value = item
        if value % 3 == 0:
            raise ValueError(position)
        return position

    result = await Pool.for_items(items).with_concurrency(concurrency).process(handler)

    succeeded = set(result.results)
    failed = {error.item[0] for error in result.errors}

    assert succeeded.isdisjoint(failed)
    assert succeeded | failed == set(range(len(values)))
    assert len(result.results) + len(result.errors) == len(values)


@pytest.mark.property
@pytest.mark.asyncio
@given(values=item_lists, concurrency=concurrencies)
@settings(max_examples=30, deadline=None)
async def test_default_results_are_a_permutation(values, concurrency):
    """Default mode returns every value, in some order."""

    async def handler(item, index, pool):
        await asyncio.sleep(0.001 * (index % 2))
        return item * 2

    result = await Pool.for_items(values).with_concurrency(concurrency).process(handler)

    assert sorted(result.results) == sorted(value * 2 for value in values)


# ==============================================================================
# PROPERTY 3: Stop
# ==============================================================================


@pytest.mark.property
@pytest.mark.asyncio
@given(
    size=st.integers(min_value=1, max_value=20),
    stop_at=st.integers(min_value=0, max_value=19),
    concurrency=concurrencies,
)
@settings(max_examples=30, deadline=None)
async def test_stop_finishes_started_items_only(size, stop_at, concurrency):
    """After stop() no new item starts; every started item is processed."""
    started = []

    async def handler(item, index, pool):
        if item == stop_at:
            pool.stop()
        await asyncio.sleep(0.001)
        return item

    executor = PoolExecutor(
        PoolConfig(
            handler=handler,
            items=list(range(size)),
            concurrency=concurrency,
            corresponding_results=True,
            on_task_started=(lambda item, pool: started.append(item),),
        )
    )
    result = await executor.start()

    # Dispatch follows source order, so the started items form a prefix
    assert started == list(range(len(started)))
    assert sorted(executor.processed_items()) == started

    if stop_at < size:
        assert stop_at in started
        assert len(started) <= stop_at + concurrency
        assert result.results[stop_at] is NOT_RUN
    else:
        assert started == list(range(size))

    for index, slot in enumerate(result.results):
        if index in started and index != stop_at:
            assert slot == index
        else:
            assert slot is NOT_RUN
