"""Decorator utilities for cross-cutting concerns."""
import time
import logging
import functools
from typing import Any, Callable, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def log_execution_time(func: F) -> F:
    """Decorator to log how long a call took, and whether it failed.

    Args:
        func: The function to decorate

    Returns:
        Decorated function that logs execution time
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.warning(f"{func.__qualname__} failed after {elapsed_ms:.1f}ms: {e}")
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"{func.__qualname__} completed in {elapsed_ms:.1f}ms")
        return result
    return cast(F, wrapper)
