"""
Listing reconciliation.

Merges what the docker daemon reports as running with the scheduler state:
running containers first (docker's order), each classified as Tracked if it
occupies the running slot and External otherwise, then queued entries in
FIFO order (an entry whose container is being launched is listed first),
then entries that failed to launch. Nothing here is cached; the
projection is rebuilt on every call.
"""

from typing import Any, Dict, Iterable, List, Optional

from docker_queue.domain.container import (
    DisplayContainer,
    FailedDisplay,
    QueuedDisplay,
    RunningContainer,
    Tracking,
)
from docker_queue.domain.entry import QueuedContainer
from docker_queue.engine import DockerEngine
from docker_queue.server.state import SchedulerState


def classify(summary: Dict[str, Any], running_id: Optional[str]) -> RunningContainer:
    tracking = Tracking.TRACKED if running_id is not None and summary.get("Id") == running_id \
        else Tracking.EXTERNAL
    return RunningContainer(tracking=tracking, summary=summary)


def reconcile(running: Iterable[Dict[str, Any]],
              running_id: Optional[str],
              queue: Iterable[QueuedContainer],
              failed: Iterable[QueuedContainer] = ()) -> List[DisplayContainer]:
    containers: List[DisplayContainer] = [classify(summary, running_id) for summary in running]
    containers.extend(QueuedDisplay(entry) for entry in queue)
    containers.extend(FailedDisplay(entry) for entry in failed)
    return containers


def list_containers(state: SchedulerState, engine: DockerEngine) -> List[DisplayContainer]:
    """
    Build the current listing.

    :raises EngineError: The docker daemon could not be queried.
    """
    # Queue side first: an entry missing from it has either failed (seen in
    # the failure snapshot) or already started its container, which the
    # docker query below then reports
    pending = state.snapshot_pending()
    failed = state.snapshot_failed()
    running = engine.list_running()
    # Slot read after the docker query: a container is always started before
    # it takes the slot, so it never shows as a second Tracked container
    running_id = state.snapshot_running_id()
    return reconcile(running, running_id, pending, failed)
