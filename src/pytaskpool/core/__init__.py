"""
Core types for pytaskpool.

This module contains the fundamental types used throughout the pool:
- PoolConfig: Immutable configuration of one run
- PoolControl: Interface a running pool exposes to user callbacks
- StopPool: Control signal raised by PoolControl.stop()
- PoolResult: Run output (results and errors)
- ResultMarker: NOT_RUN / FAILED slots in corresponding-results mode
- PoolError: Error collected for a failed item
- PoolTimeoutError: A task exceeded the timeout
- PoolValidationError: Invalid configuration
"""

from pytaskpool.core.config import (
    DEFAULT_CONCURRENCY,
    ErrorHandler,
    PoolConfig,
    ProcessHandler,
    TaskHook,
    is_valid_concurrency,
    is_valid_timeout,
)
from pytaskpool.core.control import PoolControl, StopPool
from pytaskpool.core.errors import PoolError, PoolTimeoutError, PoolValidationError
from pytaskpool.core.results import FAILED, NOT_RUN, PoolResult, ResultMarker, is_marker

__all__ = [
    "DEFAULT_CONCURRENCY",
    "PoolConfig",
    "ProcessHandler",
    "ErrorHandler",
    "TaskHook",
    "is_valid_concurrency",
    "is_valid_timeout",
    "PoolControl",
    "StopPool",
    "PoolError",
    "PoolTimeoutError",
    "PoolValidationError",
    "PoolResult",
    "ResultMarker",
    "NOT_RUN",
    "FAILED",
    "is_marker",
]
