"""
Helpers shared by the CLI commands.

- resolve_client: build a DaemonClient from --port and the config
- handle_errors: turn expected failures into a red message and exit code 1
- format_container: one-line rendering of a listing item
"""

import typer
import requests
from rich import print
from rich.console import Console
from rich.markup import escape
from contextlib import contextmanager
from typing import Optional

from docker_queue.client import DaemonClient
from docker_queue.domain.container import (
    DisplayContainer,
    FailedDisplay,
    QueuedDisplay,
    RunningContainer,
    Tracking,
)
from docker_queue.errors import DockerQueueError
from docker_queue.utils.config import get_config

# Listing lines must never be wrapped, downstream tools match on them
console = Console(soft_wrap=True, highlight=False)


def resolve_client(port: Optional[int]) -> DaemonClient:
    config = get_config()
    return DaemonClient(
        port=port or config.daemon.port,
        host=config.daemon.host,
        timeout=config.client.request_timeout,
    )


@contextmanager
def handle_errors():
    try:
        yield
    except requests.exceptions.ConnectionError:
        print("[red]Error:[/red] docker-queue daemon not running")
        raise typer.Exit(1)
    except requests.exceptions.Timeout:
        print("[red]Error:[/red] request to daemon timed out")
        raise typer.Exit(1)
    except DockerQueueError as e:
        print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


def format_container(container: DisplayContainer) -> str:
    """Plain-text line for one listing item."""
    if isinstance(container, RunningContainer):
        short_id = container.container_id[:12]
        if container.tracking == Tracking.TRACKED:
            return (f"Running   tracked   {container.entry_id or '-'}  {short_id}  "
                    f"{container.image}  {container.command}")
        return f"Running   external  {short_id}  {container.image}  {container.command}"

    entry = container.entry
    if isinstance(container, FailedDisplay):
        return f"Failed    {entry.id}  {entry.command}  ({entry.error})"
    if isinstance(container, QueuedDisplay):
        return f"{entry.status.value:<9} {entry.id}  {entry.command}"
    raise TypeError(f"Unknown display container {container!r}")
