import typer
from rich import print
from rich.markup import escape
from pathlib import Path
from typing import Optional
from enum import Enum

from docker_queue.utils.config import get_config, load_config
from docker_queue.cmd.cli import serve_app, config_app
from docker_queue.cmd.cli.misc import console, format_container, handle_errors, resolve_client
from docker_queue.domain.container import FailedDisplay, QueuedDisplay, RunningContainer, Tracking
from docker_queue.domain.entry import QueuedContainer
from docker_queue.errors import TimeoutError
from docker_queue.utils.logging import setup_logging, get_logger

log = get_logger("cli")

app = typer.Typer(no_args_is_help=True, help="docker-queue: run containers one at a time, in order")

@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Write logs to file"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    config = load_config(config_file)

    level = "DEBUG" if verbose else config.logging.level
    log_path = log_file or (Path(config.logging.file) if config.logging.file else None)
    setup_logging(level=level, log_file=log_path, verbose=verbose or config.logging.verbose)

app.add_typer(serve_app, name="serve", help="Start the docker-queue daemon")
app.add_typer(config_app, name="config", help="Configuration management")


class WaitUntil(str, Enum):
    running = "running"
    done = "done"


@app.command("queue")
def queue(
    command: str = typer.Argument(..., help="Run command (e.g. 'alpine sleep 5'), or a file path with --path"),
    path: bool = typer.Option(False, "--path", help="Read the run command from the file at COMMAND"),
    paused: bool = typer.Option(False, "--paused", help="Queue the entry paused; it will not be admitted"),
    port: int = typer.Option(None, "--port"),
):
    """
    Add a container run to the queue.
    """
    with handle_errors():
        # Built locally first: a bad file or command never reaches the daemon
        entry = QueuedContainer.from_path(command) if path else QueuedContainer.create(command)
        if not paused:
            entry.release()
        log.debug(f"Submitting {entry!r}")

        stored = resolve_client(port).queue_container(entry)

    print(f'Container "{stored.id}" added to queue ({stored.status})')


@app.command("list")
def list_cmd(port: int = typer.Option(None, "--port")):
    """
    List running containers, then queued and failed entries.
    """
    with handle_errors():
        containers = resolve_client(port).list_containers()

    for container in containers:
        console.print(format_container(container), markup=False)


@app.command("wait")
def wait(
    entry_id: str = typer.Argument(..., help="Queue entry id"),
    until: WaitUntil = typer.Option(WaitUntil.running, "--until", help="running: admitted; done: finished"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds before giving up"),
    port: int = typer.Option(None, "--port"),
):
    """
    Block until a queue entry is running or has finished.

    The entry must be queued, running or failed when the command starts.
    """
    config = get_config()
    timeout = timeout if timeout is not None else config.client.wait_timeout

    def is_running(listing) -> bool:
        return any(
            isinstance(c, RunningContainer) and c.tracking == Tracking.TRACKED and c.entry_id == entry_id
            for c in listing
        )

    def is_done(listing) -> bool:
        for c in listing:
            if isinstance(c, RunningContainer) and c.entry_id == entry_id:
                return False
            if isinstance(c, QueuedDisplay) and c.entry.id == entry_id:
                return False
        return True

    def failure(listing) -> Optional[FailedDisplay]:
        return next(
            (c for c in listing if isinstance(c, FailedDisplay) and c.entry.id == entry_id),
            None,
        )

    predicate = is_running if until == WaitUntil.running else is_done
    client = resolve_client(port)

    with handle_errors():
        # An entry missing from the first listing is unknown or long gone;
        # only an entry seen queued, running or failed can later be "done"
        current = client.list_containers()
        if is_done(current) and failure(current) is None:
            print(f"[red]Entry {entry_id} is not queued, running or failed[/red]")
            raise typer.Exit(1)

        try:
            listing = client.wait_for_listing(
                lambda listing: predicate(listing) or failure(listing) is not None,
                timeout=timeout,
                interval=config.client.poll_interval,
                operation=f"Waiting for {entry_id} ({until.value})",
            )
        except TimeoutError as e:
            print(f"[red]Timed out:[/red] {escape(str(e))}")
            raise typer.Exit(1)

    failed = failure(listing)
    if failed is not None:
        print(f"[red]Entry {entry_id} failed:[/red] {escape(failed.entry.error or '')}")
        raise typer.Exit(1)

    print(f"[green]Entry {entry_id} is {until.value}[/green]")


@app.command("status")
def status(port: int = typer.Option(None, "--port")):
    """
    Show whether the daemon is running, with a scheduler summary.
    """
    client = resolve_client(port)
    if not client.health_check():
        print("[red]docker-queue daemon not running[/red]")
        raise typer.Exit(1)

    with handle_errors():
        data = client.status()
    print("[bold green]docker-queue daemon running[/bold green]")
    print(data)


@app.command("stop")
def stop(port: int = typer.Option(None, "--port")):
    """
    Stop the daemon.
    """
    with handle_errors():
        resolve_client(port).stop()
    print("[green]docker-queue daemon stopping[/green]")


def main():
    app()

if __name__ == "__main__":
    main()
