"""
Executor module - Runtime engine for pool runs.

This module contains the execution components:
- instance: PoolExecutor, the scheduler and its pool state
- task: Handler invocation and timeout racing for a single task
"""

from pytaskpool.executor.instance import PoolExecutor, execute_pool
from pytaskpool.executor.task import DetachedTasks, call_handler, race_timeout, timeout_message

__all__ = [
    # Executor
    "PoolExecutor",
    "execute_pool",
    # Task wrapper
    "DetachedTasks",
    "call_handler",
    "race_timeout",
    "timeout_message",
]
