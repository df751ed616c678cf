"""
Serve command for the docker-queue CLI.

Starts the daemon, either in the foreground (blocking until Ctrl+C or
`dq stop`) or detached as a background process whose output goes to
/tmp/dq.out and /tmp/dq.err.
"""

import sys
import typer
import shutil
import subprocess
from rich import print

from docker_queue.utils.config import get_config
from docker_queue.server.daemon import QueueDaemon

# invoke_without_command=True runs the callback for a bare `dq serve`
serve_app = typer.Typer(no_args_is_help=False, invoke_without_command=True)

@serve_app.callback()
def serve_root(
    port: int = typer.Option(None, "--port", help="Port to listen on (0 = ephemeral)"),
    host: str = typer.Option(None, "--host", help="Address to bind"),
    detach: bool = typer.Option(False, "--detach", help="Run the daemon in the background"),
) -> None:
    """
    Start the docker-queue daemon.
    """
    config = get_config()
    port = config.daemon.port if port is None else port
    host = host or config.daemon.host

    if detach:
        dq_bin = shutil.which("dq")
        if dq_bin is None:
            print("[red]Could not find 'dq' executable in PATH[/red]")
            raise typer.Exit(1)

        # start_new_session=True keeps the daemon alive after the terminal closes
        subprocess.Popen(
            [dq_bin, "serve", "--port", str(port), "--host", host],
            stdout=open("/tmp/dq.out", "a"),
            stderr=open("/tmp/dq.err", "a"),
            start_new_session=True,
        )
        print("[green]docker-queue daemon started in background[/green]")
        return

    try:
        daemon = QueueDaemon.from_config(config, port=port, host=host)
    except OSError as e:
        print(f"[red]Could not bind {host}:{port}:[/red] {e}")
        sys.exit(1)
    daemon.start()
