"""
Run output of a task pool.

A run returns a `PoolResult` holding the collected results and errors.

By default `results` only holds successful values, in completion order. With
corresponding results enabled, `results[i]` belongs to `items[i]` and slots
without a value hold a `ResultMarker`:

    ```python
    result = await (
        Pool.for_items([1, 2, 3])
        .use_corresponding_results()
        .process(handler)
    )

    for item, value in zip([1, 2, 3], result.results):
        if value is ResultMarker.FAILED:
            ...
        elif value is ResultMarker.NOT_RUN:
            ...
    ```
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from pytaskpool.core.errors import PoolError

__all__ = [
    "ResultMarker",
    "NOT_RUN",
    "FAILED",
    "PoolResult",
    "is_marker",
]

T = TypeVar("T")
R = TypeVar("R")


class ResultMarker(Enum):
    """
    Marker for a corresponding-results slot that holds no value.

    Lifecycle of a slot:
    NOT_RUN → value | FAILED
    """

    NOT_RUN = "NOT_RUN"
    """The item was never dispatched, or its handler stopped the pool."""

    FAILED = "FAILED"
    """The item's task raised an error (including a timeout)."""

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"ResultMarker.{self.name}"


NOT_RUN = ResultMarker.NOT_RUN
FAILED = ResultMarker.FAILED


@dataclass(frozen=True)
class PoolResult(Generic[T, R]):
    """
    Outcome of one pool run.

    Attributes:
        results: Successful values (completion order), or one slot per item
            in corresponding-results mode
        errors: Errors collected for failed items
        run_id: Identifier of the run, as used in log records
    """

    results: list[R | ResultMarker] = field(default_factory=list)
    errors: list[PoolError[T]] = field(default_factory=list)
    run_id: str = ""

    def has_errors(self) -> bool:
        """Check if any item failed without an error handler consuming it."""
        return bool(self.errors)

    def values(self) -> list[R]:
        """Results without markers, in the order they are stored."""
        return [value for value in self.results if not is_marker(value)]

    def __str__(self) -> str:
        return f"PoolResult(results={len(self.results)}, errors={len(self.errors)})"


def is_marker(value: Any) -> bool:
    """Check whether `value` is a corresponding-results marker."""
    return isinstance(value, ResultMarker)
