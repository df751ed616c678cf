"""
Display containers.

Listing output is a read-time projection built fresh on every request. Each
item is one of:

- RunningContainer: a container the docker daemon reports as running, tagged
  TRACKED when it occupies the running slot and EXTERNAL otherwise.
- QueuedDisplay: an entry still waiting in the queue (Paused or Queued).
- FailedDisplay: an entry the docker daemon refused to run.

The wire form is externally tagged JSON, for example
``{"Running": {"Tracked": {...summary...}}}`` or ``{"Queued": {...entry...}}``.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from docker_queue.domain.entry import QueuedContainer
from docker_queue.errors import ValidationError

# Label set on queue-managed containers, value is the queue entry id
ENTRY_LABEL = "docker-queue.entry"


class Tracking(str, Enum):
    TRACKED = "Tracked"
    EXTERNAL = "External"


@dataclass
class RunningContainer:
    tracking: Tracking
    summary: Dict[str, Any] = field(default_factory=dict)

    @property
    def container_id(self) -> str:
        return self.summary.get("Id", "")

    @property
    def entry_id(self) -> Optional[str]:
        """Queue entry id from the container labels, if it was queue-launched."""
        labels = self.summary.get("Labels") or {}
        return labels.get(ENTRY_LABEL)

    @property
    def image(self) -> str:
        return self.summary.get("Image", "")

    @property
    def command(self) -> str:
        return self.summary.get("Command", "")

    def to_dict(self) -> dict:
        return {"Running": {self.tracking.value: self.summary}}


@dataclass
class QueuedDisplay:
    entry: QueuedContainer

    def to_dict(self) -> dict:
        return {"Queued": self.entry.to_dict()}


@dataclass
class FailedDisplay:
    entry: QueuedContainer

    def to_dict(self) -> dict:
        return {"Failed": self.entry.to_dict()}


DisplayContainer = Union[RunningContainer, QueuedDisplay, FailedDisplay]


def display_from_dict(data: dict) -> DisplayContainer:
    """
    Decode one listing item from its wire form.

    :raises ValidationError: Unknown or malformed variant.
    """
    if not isinstance(data, dict) or len(data) != 1:
        raise ValidationError(f"Malformed display container: {data!r}")

    (kind, payload), = data.items()
    if kind == "Running":
        if not isinstance(payload, dict) or len(payload) != 1:
            raise ValidationError(f"Malformed running container: {payload!r}")
        (tag, summary), = payload.items()
        try:
            tracking = Tracking(tag)
        except ValueError as e:
            raise ValidationError(f"Unknown running tag '{tag}'") from e
        return RunningContainer(tracking=tracking, summary=summary or {})
    if kind in ("Queued", "Failed"):
        if not isinstance(payload, dict):
            raise ValidationError(f"Malformed queue entry: {payload!r}")
        entry = QueuedContainer.from_dict(payload, allow_failed=True)
        return QueuedDisplay(entry) if kind == "Queued" else FailedDisplay(entry)
    raise ValidationError(f"Unknown display container kind '{kind}'")
