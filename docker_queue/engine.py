"""
Docker engine gateway.

Thin wrapper over the docker SDK exposing the handful of calls the scheduler
needs: list running containers, create, start, inspect status and remove.
All SDK and transport failures are translated into EngineError so callers
deal with a single exception type, with ``transient`` telling them whether
a later retry may succeed.
"""

import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import docker
import requests
from docker.client import DockerClient
from docker.errors import APIError, DockerException, NotFound

from docker_queue.domain.command import RunSpec
from docker_queue.domain.container import ENTRY_LABEL
from docker_queue.errors import EngineError
from docker_queue.utils.logging import get_logger
from docker_queue.utils.retry import retry

log = get_logger("engine")

# Container states after which the running slot can be released
FINISHED_STATES = ("exited", "dead")


@contextmanager
def _engine_errors(operation: str):
    """Translate docker SDK and transport errors into EngineError."""
    try:
        yield
    except APIError as e:
        reason = e.explanation or str(e)
        raise EngineError(
            f"{operation} failed: {reason}",
            transient=not e.is_client_error(),
        ) from e
    except (DockerException, requests.exceptions.RequestException) as e:
        raise EngineError(f"{operation} failed: {e}", transient=True) from e


class DockerEngine:
    """
    Access to the local docker daemon.

    The SDK client is created lazily on first use so that constructing the
    daemon never requires docker to be reachable; an unreachable daemon
    surfaces as a transient EngineError on the first call instead.
    """

    def __init__(self, client: Optional[DockerClient] = None):
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self) -> DockerClient:
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    with _engine_errors("Connecting to docker"):
                        self._client = docker.from_env()
        return self._client

    def ping(self) -> bool:
        """True if the docker daemon answers."""
        try:
            with _engine_errors("Ping"):
                return bool(self.client.ping())
        except EngineError as e:
            log.debug(f"Docker ping failed: {e}")
            return False

    @retry(max_attempts=2, delay=0.1, exceptions=(requests.exceptions.ConnectionError,))
    def _list_running(self) -> List[Any]:
        return self.client.containers.list(filters={"status": "running"}, sparse=True)

    def list_running(self) -> List[Dict[str, Any]]:
        """
        Summaries of all running containers, in the order docker reports them.

        Each summary is the raw dict from the containers list endpoint
        (Id, Names, Image, Command, Labels, State, Status, ...).
        """
        with _engine_errors("Listing running containers"):
            return [dict(container.attrs) for container in self._list_running()]

    def create(self, spec: RunSpec, entry_id: str) -> str:
        """
        Create (but do not start) a container for a queue entry.

        :param spec: Parsed run command.
        :param entry_id: Queue entry id, recorded as a container label.
        :return: Engine-assigned container id.
        """
        kwargs = spec.create_kwargs()
        kwargs["labels"][ENTRY_LABEL] = entry_id
        with _engine_errors(f"Creating container from {spec.image}"):
            container = self.client.containers.create(**kwargs)
        log.debug(f"Created container {container.id[:12]} for entry {entry_id}")
        return container.id

    def start(self, container_id: str) -> None:
        with _engine_errors(f"Starting container {container_id[:12]}"):
            self.client.api.start(container_id)

    @retry(max_attempts=2, delay=0.1, exceptions=(requests.exceptions.ConnectionError,))
    def _inspect(self, container_id: str):
        return self.client.containers.get(container_id)

    def status(self, container_id: str) -> Optional[str]:
        """
        Current state of a container ("created", "running", "exited", ...).

        :return: The state string, or None if the container no longer exists.
        """
        with _engine_errors(f"Inspecting container {container_id[:12]}"):
            try:
                return self._inspect(container_id).status
            except NotFound:
                return None

    def remove(self, container_id: str) -> None:
        """Force-remove a container. A container that is already gone is fine."""
        with _engine_errors(f"Removing container {container_id[:12]}"):
            try:
                self.client.api.remove_container(container_id, force=True)
            except NotFound:
                log.debug(f"Container already removed: {container_id[:12]}")
