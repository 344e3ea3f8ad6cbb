"""
Pytest configuration and fixtures for pytaskpool tests.

Provides reusable handlers, a small in-flight tracker and hypothesis
strategies.
"""

import asyncio
from dataclasses import dataclass, field

import pytest
from hypothesis import strategies as st

# Sample handlers for reuse across tests


async def double(item, index, pool):
    """Instant async handler."""
    return item * 2


def double_sync(item, index, pool):
    """Instant plain (non-async) handler."""
    return item * 2


async def fail_on_three(item, index, pool):
    """Double every item, raise for 3."""
    if item == 3:
        raise ValueError(f"cannot process {item}")
    return item * 2


@dataclass
class InFlightTracker:
    """Counts handlers running at the same time."""

    running: int = 0
    max_running: int = 0
    started: list = field(default_factory=list)

    def enter(self, item) -> None:
        self.started.append(item)
        self.running += 1
        self.max_running = max(self.max_running, self.running)

    def exit(self) -> None:
        self.running -= 1

    def sleeping_handler(self, delay: float = 0.01):
        """Build a handler that sleeps `delay` seconds while tracked."""

        async def handler(item, index, pool):
            self.enter(item)
            try:
                await asyncio.sleep(delay)
                return item
            finally:
                self.exit()

        return handler


@pytest.fixture
def items() -> list[int]:
    """The five items used by most scenarios."""
    return [1, 2, 3, 4, 5]


@pytest.fixture
def tracker() -> InFlightTracker:
    """Fresh in-flight tracker."""
    return InFlightTracker()


@pytest.fixture
def clean_env(monkeypatch):
    """Environment without pytaskpool overrides."""
    monkeypatch.delenv("PYTASKPOOL_CONCURRENCY", raising=False)
    monkeypatch.delenv("PYTASKPOOL_TIMEOUT", raising=False)
    return monkeypatch


# Hypothesis strategies for property-based testing

item_lists = st.lists(st.integers(min_value=-1000, max_value=1000), max_size=30)
concurrencies = st.integers(min_value=1, max_value=8)


@st.composite
def delayed_items(draw, max_size: int = 20):
    """Items paired with a small handler delay (in milliseconds)."""
    return draw(
        st.lists(
            st.tuples(st.integers(), st.integers(min_value=0, max_value=3)),
            max_size=max_size,
        )
    )
