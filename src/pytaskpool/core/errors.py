"""
Error types raised and collected by a task pool.

Two families live here:

- **Collected errors**: `PoolError` wraps whatever a handler raised together
  with the item that caused it. These end up in `PoolResult.errors` and never
  abort a run on their own.
- **Fatal errors**: `PoolValidationError` signals an invalid configuration.
  It is raised before the first task is dispatched, or while running when
  handler code sets an invalid concurrency through the pool control
  interface.

Example:
    ```python
    result = await Pool.for_items(urls).process(fetch)

    for error in result.errors:
        print(f"{error.item}: {error.message}")
        # error.raw holds the original exception
    ```
"""

from typing import Any, Generic, TypeVar

__all__ = [
    "PoolError",
    "PoolTimeoutError",
    "PoolValidationError",
]

T = TypeVar("T")


class PoolError(Exception, Generic[T]):
    """
    An error raised while processing a single item.

    Keeps the original error untouched in `raw` and exposes a normalized,
    human-readable `message`, so callers can report failures without caring
    what kind of value a handler raised.

    Attributes:
        raw: The original error (usually an exception)
        item: The item whose processing failed
        message: Normalized error message
    """

    def __init__(self, error: Any, item: T):
        self.raw = error
        self.item = item
        self.message = self.message_from(error)
        super().__init__(self.message)

    @classmethod
    def create_from(cls, error: Any, item: T) -> "PoolError[T]":
        """
        Wrap `error` raised for `item`.

        Args:
            error: The original error
            item: The item causing the error

        Returns:
            New pool error instance
        """
        return cls(error, item)

    @staticmethod
    def message_from(error: Any) -> str:
        """
        Derive a message from an arbitrary error value.

        Exceptions use `str(exc)`, objects carrying a `message` attribute use
        that attribute, strings and numbers are stringified, and anything else
        produces an empty message.
        """
        if isinstance(error, PoolError):
            return error.message
        if isinstance(error, BaseException):
            return str(error)
        if isinstance(error, (str, int, float)):
            return str(error)
        message = getattr(error, "message", None)
        if message is not None:
            return str(message)
        return ""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, item={self.item!r})"


class PoolTimeoutError(PoolError[T]):
    """
    A task did not settle within the configured timeout.

    Raised by the task wrapper when the timer wins the race against the
    handler. It is a regular task error: it goes to the error handler or the
    error list like any other failure.
    """


class PoolValidationError(ValueError):
    """
    Invalid pool configuration.

    Fatal: a run never starts with an invalid configuration, and a validation
    error surfacing from a running task stops the pool and propagates out of
    `PoolExecutor.start()`.
    """

    @classmethod
    def create_from(cls, message: str) -> "PoolValidationError":
        """Create a validation error with the given message."""
        return cls(message)
