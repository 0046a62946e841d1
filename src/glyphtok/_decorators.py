"""Reusable decorators for training utilities."""

import functools
import logging
import time
from typing import Callable

log = logging.getLogger(__name__)


def measure_time(func: Callable) -> Callable:
    """Log execution time for the wrapped callable."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        # log execution time even if the decorated function throws error
        finally:
            elapsed = time.perf_counter() - start
            log.info(
                f"{func.__name__} completed in {elapsed:.2f} s ({elapsed / 60:.2f} mins)"
            )

    return wrapper
