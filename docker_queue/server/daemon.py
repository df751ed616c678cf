"""
docker-queue daemon.

Runs the FastAPI HTTP API in front of the scheduler and owns the scheduler's
lifetime. One SchedulerState is created per daemon and handed to the API
handlers, the Dispatcher and the reconciler; nothing is module-global.

Endpoints:
- POST /queue_container: submit a queue entry
- GET  /list_containers: running containers, queue, failed entries
- GET  /health_check: liveness probe
- GET  /status: scheduler summary
- POST /stop: graceful shutdown

The listening socket is bound in the constructor, so ``port=0`` gives an
OS-assigned port that is readable from ``daemon.port`` before serving
starts. uvicorn serves the app from a background thread, the Dispatcher runs
in its own thread, and a watcher waits for the shutdown event.
"""

import sys
import socket
import signal
import uvicorn
import threading
from rich import print
from pydantic import BaseModel
from fastapi import FastAPI, HTTPException, Response
from typing import Optional, List, Dict, Any

from docker_queue.engine import DockerEngine
from docker_queue.domain.entry import QueuedContainer
from docker_queue.server.state import SchedulerState
from docker_queue.server.dispatcher import Dispatcher
from docker_queue.server.reconciler import list_containers
from docker_queue.utils.config import Config
from docker_queue.utils.logging import get_logger
from docker_queue.utils.retry import RetryConfig
from docker_queue.utils.timeout import wait_for
from docker_queue.errors import DuplicateEntryError, EngineError, ValidationError

log = get_logger("daemon")


class QueueContainerRequest(BaseModel):
    """Wire form of a queue entry, as sent by the CLI."""
    id: str
    command: str
    status: str


class QueueDaemon:
    """
    HTTP daemon owning the scheduler state and dispatcher.
    """

    def __init__(self,
                 port: int,
                 host: str = "127.0.0.1",
                 tick_interval: float = 0.25,
                 remove_on_exit: bool = True,
                 max_launch_attempts: int = 5,
                 launch_retry_delay: float = 1.0,
                 engine: Optional[DockerEngine] = None):
        """
        Build the daemon and bind its listening socket.

        :param port: Port to listen on, 0 for an ephemeral port.
        :param host: Address to bind.
        :param tick_interval: Dispatcher tick in seconds.
        :param remove_on_exit: Remove managed containers once they exit.
        :param max_launch_attempts: Transient launch failures before an entry fails.
        :param launch_retry_delay: First backoff delay after a transient failure.
        :param engine: Docker engine gateway (a default one is created if None).
        """
        self.engine = engine or DockerEngine()
        self.state = SchedulerState()
        self.dispatcher = Dispatcher(
            self.state,
            self.engine,
            tick_interval=tick_interval,
            remove_on_exit=remove_on_exit,
            launch_retry=RetryConfig(
                max_attempts=max_launch_attempts,
                delay=launch_retry_delay,
                backoff=2.0,
                max_delay=30.0,
            ),
        )

        self.shutdown_event = threading.Event()
        self._shutdown_lock = threading.Lock()
        self._stopped = False

        self._socket = self._bind(host, port)
        self.host, self.port = self._socket.getsockname()[:2]

        self._server: Optional[uvicorn.Server] = None
        self._api_thread: Optional[threading.Thread] = None

        log.info(f"docker-queue daemon initializing on {self.host}:{self.port}")

        self.app = FastAPI(title="docker-queue daemon")

        @self.app.post("/queue_container")
        def queue_container(req: QueueContainerRequest) -> Dict[str, Any]:
            """
            Add an entry to the tail of the queue.

            The client decides Paused vs Queued before sending. Malformed
            entries are rejected with 400 and duplicate ids with 409, in both
            cases without touching the queue.
            """
            try:
                entry = QueuedContainer.from_dict(req.model_dump())
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))

            try:
                stored = self.state.enqueue(entry)
            except DuplicateEntryError as e:
                raise HTTPException(status_code=409, detail=str(e))

            return stored.to_dict()

        @self.app.get("/list_containers")
        def list_containers_route() -> List[Dict[str, Any]]:
            """
            Running containers (Tracked/External), then the queue in FIFO
            order, then failed entries.
            """
            try:
                containers = list_containers(self.state, self.engine)
            except EngineError as e:
                log.warning(f"Listing failed: {e}")
                raise HTTPException(status_code=503, detail=str(e))
            return [container.to_dict() for container in containers]

        @self.app.get("/health_check")
        def health_check() -> Response:
            return Response(status_code=200)

        @self.app.get("/status")
        def status() -> Dict[str, Any]:
            return {
                "running": True,
                "port": self.port,
                "running_container": self.state.snapshot_running_id(),
                "queued": len(self.state),
                "failed": len(self.state.snapshot_failed()),
                "dispatcher": {
                    "running": self.dispatcher.is_running,
                    "tick_interval": self.dispatcher.tick_interval,
                },
            }

        @self.app.post("/stop")
        def stop() -> Dict[str, str]:
            """Request a graceful shutdown."""
            log.info("Stop requested via API")
            self.shutdown_event.set()
            return {"status": "stopping"}

    @classmethod
    def from_config(cls, cfg: Config, port: Optional[int] = None,
                    host: Optional[str] = None) -> "QueueDaemon":
        """Build a daemon from configuration, with optional overrides."""
        return cls(
            port=cfg.daemon.port if port is None else port,
            host=host or cfg.daemon.host,
            tick_interval=cfg.dispatcher.tick_interval,
            remove_on_exit=cfg.dispatcher.remove_on_exit,
            max_launch_attempts=cfg.dispatcher.max_launch_attempts,
            launch_retry_delay=cfg.dispatcher.launch_retry_delay,
        )

    @staticmethod
    def _bind(host: str, port: int) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError:
            sock.close()
            raise
        return sock

    def start(self) -> None:
        """
        Run the daemon in the foreground until SIGINT/SIGTERM or POST /stop.

        Must be called from the main thread (signal handlers).
        """
        print(
            f"[bold cyan]docker-queue daemon started[/bold cyan] "
            f"(host={self.host}, port={self.port})"
        )

        signal.signal(signal.SIGINT, self._signal_shutdown)
        signal.signal(signal.SIGTERM, self._signal_shutdown)

        self._start_services()
        self._loop()
        sys.exit(0)

    def start_background(self, ready_timeout: float = 10.0) -> None:
        """
        Serve from background threads and return once the API accepts requests.

        Used by tests and embedding code; stop with shutdown().
        """
        self._start_services()
        threading.Thread(target=self._loop, name="daemon-watcher", daemon=True).start()
        wait_for(
            lambda: self._server is not None and self._server.started,
            timeout=ready_timeout,
            interval=0.05,
            operation="Daemon startup",
        )

    def _start_services(self) -> None:
        if not self.engine.ping():
            log.warning("Docker daemon not reachable; queued entries wait until it is")
        self.dispatcher.start()

        server_config = uvicorn.Config(self.app, log_level="error")
        self._server = uvicorn.Server(server_config)
        self._api_thread = threading.Thread(target=self._run_api, name="api", daemon=True)
        self._api_thread.start()

    def _run_api(self) -> None:
        self._server.run(sockets=[self._socket])

    def _loop(self) -> None:
        """Wait for the shutdown event, then stop everything."""
        self.shutdown_event.wait()
        self._shutdown_services()

    def _signal_shutdown(self, *_):
        self.shutdown_event.set()

    def shutdown(self) -> None:
        """Stop serving and dispatching. Safe to call more than once."""
        self.shutdown_event.set()
        self._shutdown_services()

    def _shutdown_services(self) -> None:
        with self._shutdown_lock:
            if self._stopped:
                return
            self._stopped = True

        log.info("Shutting down docker-queue daemon")

        self.dispatcher.stop()

        if self._server is not None:
            self._server.should_exit = True
        if self._api_thread is not None and self._api_thread is not threading.current_thread():
            self._api_thread.join(timeout=5)

        self._socket.close()

        running_id = self.state.snapshot_running_id()
        if running_id:
            log.warning(f"Leaving container {running_id[:12]} running; it is not tracked after restart")
        pending = len(self.state)
        if pending:
            log.warning(f"Discarding {pending} queued entr{'y' if pending == 1 else 'ies'}")
