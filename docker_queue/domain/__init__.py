"""
Domain types shared by the daemon and the CLI.
"""

from docker_queue.domain.command import RunSpec, parse_run_command
from docker_queue.domain.entry import QueuedContainer, QueueStatus
from docker_queue.domain.container import (
    ENTRY_LABEL,
    DisplayContainer,
    FailedDisplay,
    QueuedDisplay,
    RunningContainer,
    Tracking,
    display_from_dict,
)

__all__ = [
    "RunSpec",
    "parse_run_command",
    "QueuedContainer",
    "QueueStatus",
    "ENTRY_LABEL",
    "DisplayContainer",
    "FailedDisplay",
    "QueuedDisplay",
    "RunningContainer",
    "Tracking",
    "display_from_dict",
]
