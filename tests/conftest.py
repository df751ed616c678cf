"""
Pytest configuration and shared fixtures for docker-queue tests.

This module provides:
- Custom markers for test categorization
- Automatic skipping of integration tests when docker is unreachable
- An in-memory FakeEngine standing in for the docker daemon
- Config and daemon fixtures
"""

import tempfile
import shutil
from pathlib import Path

import pytest

from docker_queue.domain.container import ENTRY_LABEL
from docker_queue.errors import EngineError


# =============================================================================
# Pytest Hooks and Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (require Docker)"
    )
    config.addinivalue_line(
        "markers", "slow: Slow tests"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests if Docker is not available."""
    try:
        import docker
        docker.from_env().ping()
        docker_available = True
    except Exception:
        docker_available = False

    skip_integration = pytest.mark.skip(reason="Docker not available")

    for item in items:
        if "integration" in item.keywords and not docker_available:
            item.add_marker(skip_integration)


# =============================================================================
# Fake docker engine
# =============================================================================

class FakeEngine:
    """
    In-memory stand-in for DockerEngine.

    Containers live in a dict keyed by id. Set one of the ``fail_*``
    attributes to an EngineError to make the matching call raise it.
    """

    def __init__(self):
        self.containers = {}
        self.created = []
        self.started = []
        self.removed = []
        self.fail_list = None
        self.fail_create = None
        self.fail_start = None
        self.fail_status = None
        self._counter = 0

    def _new_id(self) -> str:
        self._counter += 1
        return f"{self._counter:064x}"

    def ping(self):
        return self.fail_list is None

    def list_running(self):
        if self.fail_list:
            raise self.fail_list
        return [
            dict(c["summary"]) for c in self.containers.values()
            if c["status"] == "running"
        ]

    def create(self, spec, entry_id):
        if self.fail_create:
            raise self.fail_create
        container_id = self._new_id()
        self.containers[container_id] = {
            "status": "created",
            "summary": {
                "Id": container_id,
                "Image": spec.image,
                "Command": " ".join(spec.command),
                "Labels": {ENTRY_LABEL: entry_id},
                "State": "created",
            },
        }
        self.created.append((container_id, entry_id))
        return container_id

    def start(self, container_id):
        if self.fail_start:
            raise self.fail_start
        self.containers[container_id]["status"] = "running"
        self.started.append(container_id)

    def status(self, container_id):
        if self.fail_status:
            raise self.fail_status
        container = self.containers.get(container_id)
        return container["status"] if container else None

    def remove(self, container_id):
        self.containers.pop(container_id, None)
        self.removed.append(container_id)

    # Test helpers

    def exit(self, container_id):
        self.containers[container_id]["status"] = "exited"

    def vanish(self, container_id):
        self.containers.pop(container_id, None)

    def run_external(self, image="alpine", command="sleep 60"):
        container_id = self._new_id()
        self.containers[container_id] = {
            "status": "running",
            "summary": {
                "Id": container_id,
                "Image": image,
                "Command": command,
                "Labels": {},
                "State": "running",
            },
        }
        return container_id

    def running_entry_ids(self):
        return [
            c["summary"]["Labels"].get(ENTRY_LABEL)
            for c in self.containers.values()
            if c["status"] == "running"
        ]


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def transient_error():
    return EngineError("Connection refused", transient=True)


@pytest.fixture
def permanent_error():
    return EngineError("No such image: nope:latest", transient=False)


# =============================================================================
# Directory and Config Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files.

    Yields:
        Path: Path to temporary directory, cleaned up after test.
    """
    tmpdir = tempfile.mkdtemp(prefix="dq_test_")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def temp_config_file(temp_dir, monkeypatch):
    """Point the config module at a config file inside temp_dir.

    Yields:
        Path: Config file path (not created).
    """
    config_path = temp_dir / ".docker-queue" / "config.yaml"
    monkeypatch.setattr("docker_queue.utils.config.CONFIG_FILE", config_path)
    for var in ("DQ_PORT", "DQ_HOST", "DQ_LOG_LEVEL", "DQ_LOG_FILE", "DQ_TICK_INTERVAL",
                "DQ_REMOVE_ON_EXIT", "DQ_REQUEST_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
    yield config_path


@pytest.fixture
def default_config():
    from docker_queue.utils.config import Config
    return Config()


@pytest.fixture
def config_file(temp_config_file):
    temp_config_file.parent.mkdir(parents=True, exist_ok=True)
    temp_config_file.write_text("""
logging:
  level: DEBUG
  verbose: true

daemon:
  port: 9999

dispatcher:
  tick_interval: 0.1
  remove_on_exit: false
""")
    return temp_config_file


# =============================================================================
# Daemon Fixtures
# =============================================================================

@pytest.fixture
def daemon(fake_engine):
    """QueueDaemon on an ephemeral port backed by FakeEngine, not serving."""
    from docker_queue.server.daemon import QueueDaemon

    d = QueueDaemon(port=0, engine=fake_engine, tick_interval=0.05)
    yield d
    d.shutdown()


@pytest.fixture
def api(daemon):
    """FastAPI TestClient for the daemon app."""
    from fastapi.testclient import TestClient

    with TestClient(daemon.app) as client:
        yield client
