"""
pytaskpool: Bounded-concurrency processing of a list of items with asyncio.

Runs an async (or plain) handler over a fixed list of items, keeping at most
`concurrency` handlers in flight, collecting results and errors, with
optional per-task timeouts and cooperative early stop.

Example:
    ```python
    import asyncio
    from pytaskpool import Pool

    async def fetch(url, index, pool):
        async with session.get(url) as response:
            return await response.text()

    async def main():
        result = await (
            Pool.for_items(urls)
            .with_concurrency(5)
            .with_timeout(10.0)
            .process(fetch)
        )

        for error in result.errors:
            print(f"{error.item} failed: {error.message}")

    asyncio.run(main())
    ```
"""

# Core types
from pytaskpool.core import (
    DEFAULT_CONCURRENCY,
    FAILED,
    NOT_RUN,
    PoolConfig,
    PoolControl,
    PoolError,
    PoolResult,
    PoolTimeoutError,
    PoolValidationError,
    ResultMarker,
    StopPool,
    is_marker,
)

# Execution
from pytaskpool.executor import PoolExecutor, execute_pool

# Builder
from pytaskpool.pool import Pool

# Version
__version__ = "0.1.0"

__all__ = [
    # Core types
    "DEFAULT_CONCURRENCY",
    "PoolConfig",
    "PoolControl",
    "StopPool",
    "PoolResult",
    "ResultMarker",
    "NOT_RUN",
    "FAILED",
    "is_marker",

    # Errors
    "PoolError",
    "PoolTimeoutError",
    "PoolValidationError",

    # Execution
    "PoolExecutor",
    "execute_pool",

    # Builder
    "Pool",

    # Metadata
    "__version__",
]
