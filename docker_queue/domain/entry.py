"""
Queue entries.

A QueuedContainer describes one pending container run. Its id is fixed at
construction and its status only moves forward:

    Paused --release()--> Queued --fail()--> Failed

Only Queued entries are eligible for admission by the dispatcher. Failed is
set server-side when the docker daemon refuses to run the entry.
"""

import uuid
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from docker_queue.domain.command import RunSpec, parse_run_command
from docker_queue.errors import CommandFileError, ValidationError


class QueueStatus(str, Enum):
    PAUSED = "Paused"
    QUEUED = "Queued"
    FAILED = "Failed"

    def __str__(self) -> str:
        return self.value


# Statuses a client is allowed to submit
SUBMITTABLE_STATUSES = (QueueStatus.PAUSED, QueueStatus.QUEUED)


class QueuedContainer:
    """A pending container run with an immutable id."""

    def __init__(self, command: str):
        if not command or not command.strip():
            raise ValidationError("Run command is empty")
        # Reject unparseable commands before they reach the queue
        parse_run_command(command)

        self._id = str(uuid.uuid4())
        self._command = command
        self._status = QueueStatus.PAUSED
        self._error: Optional[str] = None

    @classmethod
    def create(cls, command: str) -> "QueuedContainer":
        """New Paused entry with a fresh id."""
        return cls(command)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "QueuedContainer":
        """
        New Paused entry whose command is read from ``path``.

        Surrounding whitespace (typically the trailing newline) is stripped.

        :raises CommandFileError: The file is missing or unreadable.
        :raises ValidationError: The file content is not a valid command.
        """
        path = Path(path)
        try:
            command = path.read_text().strip()
        except (OSError, UnicodeDecodeError) as e:
            raise CommandFileError(path, getattr(e, "strerror", None) or str(e)) from e
        return cls(command)

    @classmethod
    def from_dict(cls, data: dict, allow_failed: bool = False) -> "QueuedContainer":
        """
        Rebuild an entry from its wire form, keeping the submitted id.

        Clients may only submit Paused or Queued entries. allow_failed is
        used when decoding listings, which also carry Failed entries.
        """
        try:
            entry_id = str(uuid.UUID(str(data["id"])))
            status = QueueStatus(data["status"])
            command = data["command"]
        except KeyError as e:
            raise ValidationError(f"Queue entry is missing field {e}") from e
        except ValueError as e:
            raise ValidationError(f"Invalid queue entry: {e}") from e

        if status not in SUBMITTABLE_STATUSES and not allow_failed:
            raise ValidationError(f"Cannot submit an entry with status {status}")
        if not isinstance(command, str):
            raise ValidationError("Run command must be a string")

        entry = cls(command)
        entry._id = entry_id
        entry._status = status
        if status == QueueStatus.FAILED:
            entry._error = data.get("error") or "unknown error"
        return entry

    @property
    def id(self) -> str:
        return self._id

    @property
    def command(self) -> str:
        return self._command

    @property
    def status(self) -> QueueStatus:
        return self._status

    @property
    def error(self) -> Optional[str]:
        return self._error

    def release(self) -> None:
        """Mark the entry Queued. Calling it again is a no-op."""
        if self._status == QueueStatus.FAILED:
            raise ValidationError(f"Entry {self._id} has failed and cannot be released")
        self._status = QueueStatus.QUEUED

    def fail(self, reason: str) -> None:
        """Mark the entry Failed with ``reason``. Terminal."""
        self._status = QueueStatus.FAILED
        self._error = reason

    def run_spec(self) -> RunSpec:
        return parse_run_command(self._command)

    def copy(self) -> "QueuedContainer":
        clone = QueuedContainer.__new__(QueuedContainer)
        clone.__dict__.update(self.__dict__)
        return clone

    def to_dict(self) -> dict:
        data = {
            "id": self._id,
            "command": self._command,
            "status": self._status.value,
        }
        if self._error is not None:
            data["error"] = self._error
        return data

    def __eq__(self, other) -> bool:
        if not isinstance(other, QueuedContainer):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"QueuedContainer(id={self._id!r}, status={self._status.value}, command={self._command!r})"
