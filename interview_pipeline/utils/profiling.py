"""
Profiling utilities for the interview pipeline.

This module provides helpers for measuring execution time of pipeline
operations such as evaluator calls and stage transitions.
"""
import time
import logging
import functools
from contextlib import contextmanager

# Configure logging
logger = logging.getLogger(__name__)

@contextmanager
def timer(name: str, log_level: int = logging.DEBUG):
    """
    Context manager for timing code blocks.

    Args:
        name: Name of the operation being timed
        log_level: Logging level to use (default: DEBUG)

    Example:
        with timer("load_catalog"):
            catalog = load_stage_catalog()
    """
    start_time = time.perf_counter()
    try:
        yield
    finally:
        elapsed_time = time.perf_counter() - start_time
        logger.log(log_level, f"TIMER - {name}: {elapsed_time:.4f} seconds")

def timed_function(log_level: int = logging.INFO):
    """
    Decorator that logs the execution time of a function.

    Args:
        log_level: Logging level to use (default: INFO)
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_time = time.perf_counter() - start_time
                logger.log(log_level, f"TIMER - {func.__name__}: {elapsed_time:.4f} seconds")
        return wrapper
    return decorator

def async_timed_function(log_level: int = logging.INFO):
    """
    Decorator that logs the execution time of a coroutine function.

    Args:
        log_level: Logging level to use (default: INFO)

    Example:
        @async_timed_function()
        async def evaluate_answers(...):
            ...
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                elapsed_time = time.perf_counter() - start_time
                logger.log(log_level, f"TIMER - {func.__name__}: {elapsed_time:.4f} seconds")
        return wrapper
    return decorator
