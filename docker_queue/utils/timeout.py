"""
Deadline-bounded polling.

The CLI `wait` command and the integration tests both need to poll the
daemon until some condition holds (a container is running, the queue has
drained). wait_for centralizes that loop and raises the project's
TimeoutError when the deadline passes.
"""

import time
from typing import Callable, Optional, TypeVar

from docker_queue.errors import TimeoutError
from docker_queue.utils.logging import get_logger

log = get_logger("timeout")

T = TypeVar("T")


def wait_for(
    condition: Callable[[], Optional[T]],
    timeout: float,
    interval: float = 0.5,
    operation: str = "Condition",
) -> T:
    """
    Call ``condition`` until it returns a truthy value or ``timeout`` expires.

    The condition is evaluated at least once, even with a zero timeout.

    :param condition: Zero-argument callable; a truthy return ends the wait.
    :param timeout: Deadline in seconds.
    :param interval: Delay between evaluations.
    :param operation: Description used in log and error messages.
    :return: The first truthy value returned by ``condition``.
    :raises TimeoutError: If the deadline passes first.
    """
    deadline = time.monotonic() + timeout

    while True:
        result = condition()
        if result:
            return result

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            log.debug(f"{operation} timed out after {timeout}s")
            raise TimeoutError(operation, timeout)

        time.sleep(min(interval, remaining))
