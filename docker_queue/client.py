"""
HTTP client for the docker-queue daemon.

Wraps the daemon endpoints with requests and turns non-success responses into
ServerStatusError, so the CLI and tests can work with domain objects rather
than raw responses.
"""

from typing import Callable, List, Optional

import requests

from docker_queue.domain.container import DisplayContainer, display_from_dict
from docker_queue.domain.entry import QueuedContainer
from docker_queue.errors import ServerStatusError
from docker_queue.utils.logging import get_logger
from docker_queue.utils.timeout import wait_for

log = get_logger("client")


def daemon_url(port: int, host: str = "127.0.0.1") -> str:
    return f"http://{host}:{port}"


def parse_error_response(resp: requests.Response) -> str:
    """Extract a readable reason from an error response."""
    try:
        data = resp.json()
        if isinstance(data, dict):
            detail = data.get("detail") or data.get("error") or data.get("message")
            return str(detail) if detail else str(data)
        return str(data)
    except ValueError:
        pass

    # Fallback: raw text, truncated
    return resp.text.strip()[:500]


class DaemonClient:
    """Synchronous client for one daemon instance."""

    def __init__(self, port: int, host: str = "127.0.0.1", timeout: float = 10.0):
        self.base_url = daemon_url(port, host)
        self.timeout = timeout
        self._session = requests.Session()

    def _check(self, resp: requests.Response) -> requests.Response:
        if not resp.ok:
            log.debug(f"Daemon returned HTTP {resp.status_code} for {resp.url}")
            raise ServerStatusError(resp.status_code, parse_error_response(resp))
        return resp

    def health_check(self) -> bool:
        """
        True if the daemon answers the liveness probe.

        Any transport failure (refused connection, timeout) means "not
        running" and returns False.
        """
        try:
            resp = self._session.get(f"{self.base_url}/health_check", timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            log.debug(f"Health check failed for {self.base_url}: {e}")
            return False
        return resp.ok

    def queue_container(self, entry: QueuedContainer) -> QueuedContainer:
        """
        Submit ``entry`` and return the entry as stored by the daemon.

        :raises ServerStatusError: The daemon refused the entry.
        """
        resp = self._session.post(
            f"{self.base_url}/queue_container",
            json=entry.to_dict(),
            timeout=self.timeout,
        )
        self._check(resp)
        return QueuedContainer.from_dict(resp.json())

    def list_containers(self) -> List[DisplayContainer]:
        resp = self._session.get(f"{self.base_url}/list_containers", timeout=self.timeout)
        self._check(resp)
        return [display_from_dict(item) for item in resp.json()]

    def status(self) -> dict:
        resp = self._session.get(f"{self.base_url}/status", timeout=self.timeout)
        return self._check(resp).json()

    def stop(self) -> None:
        self._check(self._session.post(f"{self.base_url}/stop", timeout=self.timeout))

    def wait_for_listing(self,
                         predicate: Callable[[List[DisplayContainer]], bool],
                         timeout: float,
                         interval: float = 0.5,
                         operation: str = "Waiting for listing") -> List[DisplayContainer]:
        """
        Poll list_containers until ``predicate`` holds for the listing.

        :return: The listing that satisfied the predicate.
        :raises TimeoutError: The deadline passed first.
        """
        # Wrapped in a tuple: an empty listing is falsy but may still match
        def check() -> Optional[tuple]:
            listing = self.list_containers()
            return (listing,) if predicate(listing) else None

        matched, = wait_for(check, timeout=timeout, interval=interval, operation=operation)
        return matched
