"""
Error taxonomy for docker-queue.

Every error raised on purpose by the project derives from DockerQueueError.
A few also derive from the matching builtin so callers can catch them the
usual way (ValueError for bad input, OSError for file reads, TimeoutError
for expired deadlines).
"""

import builtins
from typing import Optional


class DockerQueueError(Exception):
    """Base class for docker-queue errors."""


class ValidationError(DockerQueueError, ValueError):
    """A queue entry or run command is empty or malformed."""


class CommandFileError(DockerQueueError, OSError):
    """The run command could not be read from a file."""

    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"Failed to read command from '{path}': {reason}")


class EngineError(DockerQueueError):
    """
    The docker daemon is unreachable or rejected a request.

    transient is True when retrying later may succeed (connection refused,
    server-side errors) and False when the request itself was refused
    (unknown image, invalid configuration).
    """

    def __init__(self, message: str, transient: bool = True):
        self.transient = transient
        super().__init__(message)


class ServerStatusError(DockerQueueError):
    """The daemon answered with a non-success HTTP status."""

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        message = f"Daemon returned HTTP {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TimeoutError(DockerQueueError, builtins.TimeoutError):
    """A wait-for-condition poll exceeded its deadline."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout:.1f}s")


class DuplicateEntryError(DockerQueueError):
    """An entry with the same id was already submitted."""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Queue entry '{entry_id}' already exists")


class SlotOccupiedError(DockerQueueError):
    """The running slot already holds another container."""

    def __init__(self, occupant: str, candidate: str):
        self.occupant = occupant
        self.candidate = candidate
        super().__init__(
            f"Running slot is held by {occupant[:12]}, cannot admit {candidate[:12]}"
        )
