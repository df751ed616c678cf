"""
Retry with exponential backoff.

Used around docker SDK calls, where a single dropped connection to the
docker socket should not surface as an engine failure.
"""

import time
from dataclasses import dataclass
from functools import wraps
from typing import Callable, Optional, Tuple, Type, TypeVar

from docker_queue.utils.logging import get_logger

log = get_logger("retry")
T = TypeVar("T")

@dataclass
class RetryConfig:
    """Reusable retry parameters."""

    max_attempts: int = 3
    """Maximum number of attempts before giving up."""
    delay: float = 0.1
    """Initial delay in seconds between attempts."""
    backoff: float = 2.0
    """Multiplier applied to the delay after each failed attempt."""
    max_delay: float = 2.0
    """Upper bound for the delay."""
    exceptions: Tuple[Type[Exception], ...] = (Exception,)
    """Exception types that trigger another attempt."""

def retry(
    max_attempts: int = 3,
    delay: float = 0.1,
    backoff: float = 2.0,
    max_delay: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    config: Optional[RetryConfig] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator that retries the wrapped callable on the given exceptions.

    Exceptions not listed in ``exceptions`` propagate immediately. After the
    last attempt the final exception is re-raised unchanged.

    :param max_attempts: Maximum number of attempts, at least 1.
    :param delay: Initial delay between attempts in seconds.
    :param backoff: Multiplier applied to the delay after each failure.
    :param max_delay: Cap for the delay.
    :param exceptions: Exception types to retry on.
    :param config: Optional RetryConfig overriding all other parameters.
    """
    if config:
        max_attempts = config.max_attempts
        delay = config.delay
        backoff = config.backoff
        max_delay = config.max_delay
        exceptions = config.exceptions

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_exception: Optional[Exception] = None
            current_delay = delay

            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e

                    if attempt < max_attempts:
                        log.debug(
                            f"{func.__name__} failed (attempt {attempt}/{max_attempts}): {e}. "
                            f"Retrying in {current_delay:.1f}s..."
                        )
                        time.sleep(current_delay)
                        current_delay = min(current_delay * backoff, max_delay)
                    else:
                        log.warning(
                            f"{func.__name__} failed after {max_attempts} attempts: {e}"
                        )

            raise last_exception

        return wrapper
    return decorator
