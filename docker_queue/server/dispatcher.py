"""
Admission control for queue-managed containers.

The Dispatcher runs a background daemon thread that enforces "at most one
queue-managed container runs at a time". Every tick it:

1. releases the running slot if its container has exited or disappeared,
2. admits the earliest Queued entry when the slot is free, creating and
   starting its container and recording the container id in the slot.

Launch failures never lose an entry. When the docker daemon is unreachable
or answers with a server error, the entry goes back to the head of the queue
and admission pauses with exponential backoff; after
``launch_retry.max_attempts`` such failures the entry is recorded as Failed
so it cannot block the queue forever. When docker refuses the request outright
(unknown image, invalid configuration) the entry is recorded as Failed and
shows up in listings. Either way the slot stays free.

Any unexpected exception inside a tick is logged and the loop carries on.
"""

import time
import threading
from typing import Dict, Optional

from docker_queue.domain.entry import QueuedContainer
from docker_queue.engine import DockerEngine, FINISHED_STATES
from docker_queue.errors import EngineError, ValidationError
from docker_queue.server.state import SchedulerState
from docker_queue.utils.logging import get_logger
from docker_queue.utils.retry import RetryConfig

log = get_logger("dispatcher")


class Dispatcher:
    """
    Background scheduling loop.

    Must be the only caller of SchedulerState.try_admit_next and
    occupy_slot; the API layer only enqueues and reads.
    """

    def __init__(self,
                 state: SchedulerState,
                 engine: DockerEngine,
                 tick_interval: float = 0.25,
                 remove_on_exit: bool = True,
                 launch_retry: Optional[RetryConfig] = None):
        """
        :param state: Shared scheduler state.
        :param engine: Docker engine gateway.
        :param tick_interval: Seconds between ticks.
        :param remove_on_exit: Remove managed containers once they exit.
        :param launch_retry: Attempts and backoff for transient launch failures.
        """
        self.state = state
        self.engine = engine
        self.tick_interval = tick_interval
        self.remove_on_exit = remove_on_exit
        self.launch_retry = launch_retry or RetryConfig(max_attempts=5, delay=1.0, backoff=2.0, max_delay=30.0)

        # entry id -> transient launch failures so far
        self._attempts: Dict[str, int] = {}
        # No admission before this time.monotonic() value
        self._retry_at = 0.0

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        # Ticks never overlap, even when tick() is also called directly
        self._tick_lock = threading.Lock()

    def start(self) -> None:
        """Start the loop thread. Calling it while running does nothing."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="dispatcher", daemon=True)
        self._thread.start()
        log.info(f"Dispatcher started (tick={self.tick_interval}s)")

    def stop(self) -> None:
        """Stop the loop and wait up to 5 seconds for the thread to exit."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        log.info("Dispatcher stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                log.exception(f"Dispatcher tick failed: {e}")
            self._stop_event.wait(self.tick_interval)

    def tick(self) -> None:
        """Run a single scheduling step."""
        with self._tick_lock:
            if not self._release_finished():
                return
            if time.monotonic() < self._retry_at:
                return

            entry = self.state.try_admit_next()
            if entry is None:
                return

            self._launch(entry)

    def _release_finished(self) -> bool:
        """
        Free the slot if its container is done.

        :return: True if the slot is free afterwards.
        """
        running_id = self.state.snapshot_running_id()
        if running_id is None:
            return True

        try:
            status = self.engine.status(running_id)
        except EngineError as e:
            log.warning(f"Could not inspect running container {running_id[:12]}: {e}")
            return False

        if status is not None and status not in FINISHED_STATES:
            return False

        self.state.clear_slot()
        log.info(f"Container {running_id[:12]} finished ({status or 'removed'}), slot released")

        if status is not None and self.remove_on_exit:
            try:
                self.engine.remove(running_id)
            except EngineError as e:
                log.warning(f"Could not remove finished container {running_id[:12]}: {e}")
        return True

    def _launch(self, entry: QueuedContainer) -> None:
        """Create and start the container for an admitted entry."""
        try:
            spec = entry.run_spec()
        except ValidationError as e:
            self.state.record_failure(entry, str(e))
            return

        container_id = None
        try:
            container_id = self.engine.create(spec, entry.id)
            self.engine.start(container_id)
        except EngineError as e:
            if container_id is not None:
                self._discard(container_id)
            if e.transient:
                self._retry_later(entry, e)
            else:
                self._attempts.pop(entry.id, None)
                self.state.record_failure(entry, str(e))
            return

        self._attempts.pop(entry.id, None)
        self.state.occupy_slot(container_id)
        log.info(f"Admitted {entry.id} as container {container_id[:12]}")

    def _retry_later(self, entry: QueuedContainer, error: EngineError) -> None:
        """Requeue after a transient failure, or give up once attempts run out."""
        attempts = self._attempts.get(entry.id, 0) + 1
        if attempts >= self.launch_retry.max_attempts:
            self._attempts.pop(entry.id, None)
            self.state.record_failure(entry, f"Gave up after {attempts} attempts: {error}")
            return

        self._attempts[entry.id] = attempts
        delay = min(
            self.launch_retry.delay * self.launch_retry.backoff ** (attempts - 1),
            self.launch_retry.max_delay,
        )
        self._retry_at = time.monotonic() + delay
        log.warning(f"Launching {entry.id} failed (attempt {attempts}), retrying in {delay:.1f}s: {error}")
        self.state.requeue_front(entry)

    def _discard(self, container_id: str) -> None:
        """Best-effort removal of a container that was created but not started."""
        try:
            self.engine.remove(container_id)
        except EngineError as e:
            log.warning(f"Could not remove half-created container {container_id[:12]}: {e}")
