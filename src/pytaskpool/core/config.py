"""
Immutable configuration of a single pool run.

`PoolConfig` is built once (usually by the `Pool` builder) and handed to a
`PoolExecutor`. It never changes during a run: the only value that can be
changed while running, the concurrency ceiling, is copied into the executor's
state and modified there.

Example:
    ```python
    config = PoolConfig(
        items=[1, 2, 3],
        handler=lambda item, index, pool: item * 2,
        concurrency=2,
        timeout=5.0,
    )
    config.validate()
    result = await PoolExecutor(config).start()
    ```
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pytaskpool.core.errors import PoolValidationError

__all__ = [
    "DEFAULT_CONCURRENCY",
    "PoolConfig",
    "ProcessHandler",
    "ErrorHandler",
    "TaskHook",
    "is_valid_concurrency",
    "is_valid_timeout",
]

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CONCURRENCY = 10

# handler(item, index, pool) -> result
ProcessHandler = Callable[[Any, int, Any], Any | Awaitable[Any]]
# error_handler(error, item, pool)
ErrorHandler = Callable[[BaseException, Any, Any], Any | Awaitable[Any]]
# hook(item, pool)
TaskHook = Callable[[Any, Any], Any]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_valid_concurrency(concurrency: Any) -> bool:
    """Check that `concurrency` is a number of at least 1 (`math.inf` allowed)."""
    return _is_number(concurrency) and concurrency >= 1


def is_valid_timeout(timeout: Any) -> bool:
    """Check that `timeout` is None or a non-negative number of seconds."""
    return timeout is None or (_is_number(timeout) and timeout >= 0)


def _describe(value: Any) -> str:
    return f'"{value!r}" ({type(value).__name__})'


@dataclass(frozen=True)
class PoolConfig(Generic[T, R]):
    """
    Everything a pool run needs.

    Attributes:
        handler: Called as `handler(item, index, pool)` for every item. May be
            a coroutine function or a plain function.
        items: Items to process, dispatched in this order
        concurrency: Maximum number of tasks in flight
        timeout: Per-task budget in seconds, None to wait indefinitely
        error_handler: Called as `error_handler(error, item, pool)` instead of
            collecting the error
        on_task_started: Hooks called as `hook(item, pool)` after dispatch
        on_task_finished: Hooks called as `hook(item, pool)` after settlement
        corresponding_results: Keep `results[i]` aligned with `items[i]`
    """

    handler: ProcessHandler
    items: Sequence[T] = ()
    concurrency: int | float = DEFAULT_CONCURRENCY
    timeout: float | None = None
    error_handler: ErrorHandler | None = None
    on_task_started: tuple[TaskHook, ...] = ()
    on_task_finished: tuple[TaskHook, ...] = ()
    corresponding_results: bool = False

    def validate(self) -> "PoolConfig[T, R]":
        """
        Check the configuration before a run starts.

        Returns:
            self, so calls can be chained

        Raises:
            PoolValidationError: On the first invalid setting found
        """
        if not callable(self.handler):
            raise PoolValidationError.create_from(
                f"The handler must be a function. Received {_describe(self.handler)}"
            )

        if not is_valid_concurrency(self.concurrency):
            raise PoolValidationError.create_from(
                f'"concurrency" must be a number, 1 or up. Received {_describe(self.concurrency)}'
            )

        if not is_valid_timeout(self.timeout):
            raise PoolValidationError.create_from(
                '"timeout" must be None or a number. A number must be 0 or up. '
                f"Received {_describe(self.timeout)}"
            )

        if not isinstance(self.items, Sequence) or isinstance(
            self.items, (str, bytes, bytearray)
        ):
            raise PoolValidationError.create_from(
                f'"items" must be a list or another sequence. Received "{type(self.items).__name__}"'
            )

        if self.error_handler is not None and not callable(self.error_handler):
            raise PoolValidationError.create_from(
                f"The error handler must be a function. Received {_describe(self.error_handler)}"
            )

        _validate_hooks("on_task_started", self.on_task_started)
        _validate_hooks("on_task_finished", self.on_task_finished)

        return self


def _validate_hooks(name: str, hooks: Any) -> None:
    if not isinstance(hooks, (list, tuple)):
        raise PoolValidationError.create_from(
            f'"{name}" must be a list or tuple of functions. Received {_describe(hooks)}'
        )
    for hook in hooks:
        if not callable(hook):
            raise PoolValidationError.create_from(
                f"The {name} hook must be a function. Received {_describe(hook)}"
            )
