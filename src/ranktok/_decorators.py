"""Reusable decorators for loading utilities."""

import time
import functools
import logging
from typing import Callable

log = logging.getLogger(__name__)


def measure_time(func: Callable) -> Callable:
    """Log execution time for the wrapped callable."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        """Call ``func`` and always log elapsed time."""
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        # log even when loading fails so slow failing fetches are visible
        finally:
            elapsed = time.perf_counter() - start
            log.info(f"{func.__name__} finished in {elapsed:.2f} s")

    return wrapper
