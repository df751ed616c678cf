"""
Unit tests for docker_queue.domain.entry.

Tests cover:
- Construction and validation
- Paused -> Queued release semantics
- Reading the command from a file
- Wire (de)serialization
"""

import uuid

import pytest

from docker_queue.domain.entry import QueuedContainer, QueueStatus
from docker_queue.errors import CommandFileError, ValidationError


class TestCreate:

    @pytest.mark.unit
    def test_new_entry_is_paused(self):
        entry = QueuedContainer.create("alpine sleep 1")

        assert entry.status == QueueStatus.PAUSED
        assert entry.command == "alpine sleep 1"
        assert entry.error is None

    @pytest.mark.unit
    def test_ids_are_unique_uuids(self):
        ids = {QueuedContainer.create("alpine true").id for _ in range(50)}

        assert len(ids) == 50
        for entry_id in ids:
            assert str(uuid.UUID(entry_id)) == entry_id

    @pytest.mark.unit
    @pytest.mark.parametrize("command", ["", "  ", "\t\n"])
    def test_empty_command_rejected(self, command):
        with pytest.raises(ValidationError):
            QueuedContainer.create(command)

    @pytest.mark.unit
    def test_malformed_command_rejected(self):
        with pytest.raises(ValidationError):
            QueuedContainer.create("--rm")

    @pytest.mark.unit
    def test_id_is_read_only(self):
        entry = QueuedContainer.create("alpine true")

        with pytest.raises(AttributeError):
            entry.id = "other"

    @pytest.mark.unit
    def test_status_is_read_only(self):
        entry = QueuedContainer.create("alpine true")

        with pytest.raises(AttributeError):
            entry.status = QueueStatus.QUEUED


class TestRelease:

    @pytest.mark.unit
    def test_release_queues(self):
        entry = QueuedContainer.create("alpine true")
        entry_id = entry.id

        entry.release()

        assert entry.status == QueueStatus.QUEUED
        assert entry.id == entry_id

    @pytest.mark.unit
    def test_release_is_idempotent(self):
        once = QueuedContainer.create("alpine true")
        once.release()
        twice = once.copy()

        twice.release()

        assert twice.status == QueueStatus.QUEUED
        assert twice == once

    @pytest.mark.unit
    def test_failed_entry_cannot_be_released(self):
        entry = QueuedContainer.create("alpine true")
        entry.release()
        entry.fail("No such image")

        with pytest.raises(ValidationError):
            entry.release()
        assert entry.status == QueueStatus.FAILED
        assert entry.error == "No such image"


class TestFromPath:

    @pytest.mark.unit
    def test_reads_command(self, temp_dir):
        path = temp_dir / "job.txt"
        path.write_text("echo hi\n")

        from_file = QueuedContainer.from_path(path)
        inline = QueuedContainer.create("echo hi")

        assert from_file.command == inline.command
        assert from_file.status == inline.status
        assert from_file.run_spec() == inline.run_spec()

    @pytest.mark.unit
    def test_accepts_str_path(self, temp_dir):
        path = temp_dir / "job.txt"
        path.write_text("alpine true")

        assert QueuedContainer.from_path(str(path)).command == "alpine true"

    @pytest.mark.unit
    def test_missing_file(self, temp_dir):
        with pytest.raises(CommandFileError) as exc_info:
            QueuedContainer.from_path(temp_dir / "missing.txt")

        assert isinstance(exc_info.value, IOError)
        assert "missing.txt" in str(exc_info.value)

    @pytest.mark.unit
    def test_directory_is_unreadable(self, temp_dir):
        with pytest.raises(CommandFileError):
            QueuedContainer.from_path(temp_dir)

    @pytest.mark.unit
    def test_empty_file(self, temp_dir):
        path = temp_dir / "empty.txt"
        path.write_text("\n")

        with pytest.raises(ValidationError):
            QueuedContainer.from_path(path)


class TestWireFormat:

    @pytest.mark.unit
    def test_to_dict(self):
        entry = QueuedContainer.create("alpine true")

        assert entry.to_dict() == {
            "id": entry.id,
            "command": "alpine true",
            "status": "Paused",
        }

    @pytest.mark.unit
    def test_from_dict_keeps_id_and_status(self):
        entry = QueuedContainer.create("alpine true")
        entry.release()

        decoded = QueuedContainer.from_dict(entry.to_dict())

        assert decoded == entry
        assert decoded.status == QueueStatus.QUEUED

    @pytest.mark.unit
    def test_from_dict_rejects_failed_submission(self):
        data = {"id": str(uuid.uuid4()), "command": "alpine true", "status": "Failed"}

        with pytest.raises(ValidationError):
            QueuedContainer.from_dict(data)

    @pytest.mark.unit
    def test_from_dict_failed_for_listings(self):
        data = {"id": str(uuid.uuid4()), "command": "alpine true",
                "status": "Failed", "error": "boom"}

        decoded = QueuedContainer.from_dict(data, allow_failed=True)

        assert decoded.status == QueueStatus.FAILED
        assert decoded.error == "boom"

    @pytest.mark.unit
    @pytest.mark.parametrize("data", [
        {"command": "alpine true", "status": "Queued"},
        {"id": "not-a-uuid", "command": "alpine true", "status": "Queued"},
        {"id": str(uuid.uuid4()), "command": "alpine true", "status": "Running"},
        {"id": str(uuid.uuid4()), "command": "", "status": "Queued"},
    ])
    def test_from_dict_invalid(self, data):
        with pytest.raises(ValidationError):
            QueuedContainer.from_dict(data)

    @pytest.mark.unit
    def test_copy_is_independent(self):
        entry = QueuedContainer.create("alpine true")
        clone = entry.copy()

        clone.release()

        assert entry.status == QueueStatus.PAUSED
        assert clone.id == entry.id
