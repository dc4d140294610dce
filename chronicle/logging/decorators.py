"""
Decorators for automatic logging of backend operations.
"""

import functools
import time
from typing import Any, Callable

from .logger import get_chronicle_logger


def performance_monitor(threshold_ms: float = 1000.0, component: str = "system") -> Callable:
    """
    Decorator to monitor function performance.

    Logs warning if execution exceeds threshold.

    Args:
        threshold_ms: Warning threshold in milliseconds
        component: Component the timing records are bound to

    Example:
        >>> @performance_monitor(threshold_ms=500, component="git")
        ... def status(path):
        ...     return run_git("status", path)
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            log = get_chronicle_logger(component)
            start_time = time.time()

            try:
                result = func(*args, **kwargs)
            except Exception:
                elapsed_ms = (time.time() - start_time) * 1000
                log.debug(
                    f"Function failed: {func.__name__}",
                    function=func.__name__,
                    elapsed_ms=elapsed_ms,
                )
                raise

            elapsed_ms = (time.time() - start_time) * 1000
            if elapsed_ms > threshold_ms:
                log.warning(
                    f"Performance threshold exceeded: {func.__name__}",
                    function=func.__name__,
                    elapsed_ms=elapsed_ms,
                    threshold_ms=threshold_ms,
                )
            else:
                log.trace(
                    f"Function executed: {func.__name__}",
                    function=func.__name__,
                    elapsed_ms=elapsed_ms,
                )

            return result

        return wrapper

    return decorator
