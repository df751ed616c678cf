"""
Scheduler state shared by the API handlers, the dispatcher and the reconciler.

SchedulerState owns the two mutable registers of the daemon:

- the queue: ordered entries, insertion order is admission order among
  Queued entries, plus the entry currently being launched and the most
  recent entries the docker daemon refused to run;
- the running slot: the id of the single queue-managed container allowed
  to execute, or None.

Each register has its own lock. When both are needed the slot lock is taken
first. Critical sections only touch memory; docker calls and file reads
always happen outside them. Callers only ever receive copies.

An admitted entry stays visible as "launching" until its container holds the
slot, goes back to the queue, or is recorded as failed. Each of those moves
happens under the queue lock, so a snapshot always finds the entry somewhere.
"""

import threading
from collections import deque
from typing import Deque, List, Optional, Set

from docker_queue.domain.entry import QueuedContainer, QueueStatus
from docker_queue.errors import DuplicateEntryError, SlotOccupiedError
from docker_queue.utils.logging import get_logger

log = get_logger("state")

# Failed entries kept for listings, oldest dropped first
MAX_FAILED_ENTRIES = 100


class SchedulerState:
    """Process-scoped queue and running slot, safe for concurrent use."""

    def __init__(self, max_failed: int = MAX_FAILED_ENTRIES):
        self._queue_lock = threading.Lock()
        self._queue: List[QueuedContainer] = []
        self._launching: Optional[QueuedContainer] = None
        self._failed: Deque[QueuedContainer] = deque(maxlen=max_failed)
        # Every id ever accepted, so a resubmitted id is refused even after
        # admission. Grows for the daemon's lifetime (one uuid per submission).
        self._seen_ids: Set[str] = set()

        self._slot_lock = threading.Lock()
        self._running_id: Optional[str] = None

    def enqueue(self, entry: QueuedContainer) -> QueuedContainer:
        """
        Append ``entry`` to the tail of the queue, whatever its status.

        :return: A copy of the stored entry.
        :raises DuplicateEntryError: An entry with the same id was already accepted.
        """
        stored = entry.copy()
        with self._queue_lock:
            if stored.id in self._seen_ids:
                raise DuplicateEntryError(stored.id)
            self._seen_ids.add(stored.id)
            self._queue.append(stored)
            position = len(self._queue)
        log.info(f"Enqueued {stored.id} ({stored.status}) at position {position}")
        return stored.copy()

    def snapshot_queue(self) -> List[QueuedContainer]:
        with self._queue_lock:
            return [entry.copy() for entry in self._queue]

    def snapshot_pending(self) -> List[QueuedContainer]:
        """The entry being launched (if any) followed by the queue."""
        with self._queue_lock:
            pending = [self._launching] if self._launching is not None else []
            return [entry.copy() for entry in pending + self._queue]

    def snapshot_failed(self) -> List[QueuedContainer]:
        with self._queue_lock:
            return [entry.copy() for entry in self._failed]

    def snapshot_running_id(self) -> Optional[str]:
        with self._slot_lock:
            return self._running_id

    def try_admit_next(self) -> Optional[QueuedContainer]:
        """
        Remove and return the earliest Queued entry if the slot is empty.

        Paused entries are skipped and stay where they are. Returns None when
        the slot is occupied or nothing is eligible. The returned entry is
        held as launching until occupy_slot, requeue_front or record_failure.
        """
        with self._slot_lock:
            if self._running_id is not None:
                return None
            with self._queue_lock:
                for index, entry in enumerate(self._queue):
                    if entry.status == QueueStatus.QUEUED:
                        self._launching = self._queue.pop(index)
                        return self._launching.copy()
        return None

    def requeue_front(self, entry: QueuedContainer) -> None:
        """Put an admitted entry back at the head of the queue."""
        with self._queue_lock:
            self._queue.insert(0, entry.copy())
            self._clear_launching(entry.id)
        log.info(f"Requeued {entry.id} at the head of the queue")

    def record_failure(self, entry: QueuedContainer, reason: str) -> None:
        """Mark an admitted entry as Failed and keep it for listings."""
        failed = entry.copy()
        failed.fail(reason)
        with self._queue_lock:
            self._failed.append(failed)
            self._clear_launching(entry.id)
        log.error(f"Entry {entry.id} failed: {reason}")

    def occupy_slot(self, container_id: str) -> None:
        """
        Hand the running slot to ``container_id``.

        :raises SlotOccupiedError: The slot already holds a different container.
        """
        with self._slot_lock:
            if self._running_id is not None and self._running_id != container_id:
                raise SlotOccupiedError(self._running_id, container_id)
            self._running_id = container_id
            with self._queue_lock:
                self._launching = None

    def clear_slot(self) -> Optional[str]:
        """Empty the running slot, returning the previous occupant."""
        with self._slot_lock:
            previous, self._running_id = self._running_id, None
        return previous

    def _clear_launching(self, entry_id: str) -> None:
        # Caller holds the queue lock
        if self._launching is not None and self._launching.id == entry_id:
            self._launching = None

    def __len__(self) -> int:
        with self._queue_lock:
            return len(self._queue)
