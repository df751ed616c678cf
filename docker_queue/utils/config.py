"""
Configuration management for docker-queue.

Configuration sources (in order of precedence):
1. Environment variables (DQ_* prefix)
2. YAML configuration file (~/.docker-queue/config.yaml)
3. Default values defined in the dataclasses below

Sections:
- logging: Log level, file output, verbosity
- daemon: Address the HTTP API binds to
- dispatcher: Scheduling loop behaviour
- client: CLI request and polling behaviour
"""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict
from dataclasses import dataclass, field, asdict, fields

from docker_queue.utils.logging import get_logger

log = get_logger("config")

CONFIG_DIR = Path.home() / ".docker-queue"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

@dataclass
class LoggingConfig:
    """
    Logging configuration section.
    """
    # Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    level: str = "INFO"
    # Optional path to log file (None = stderr only)
    file: Optional[str] = None
    verbose: bool = False

@dataclass
class DaemonConfig:
    """
    Daemon server configuration section.
    """
    # Loopback only; the API has no authentication
    host: str = "127.0.0.1"
    # 0 asks the OS for an ephemeral port
    port: int = 8000

@dataclass
class DispatcherConfig:
    """
    Dispatcher loop configuration section.
    """
    # Seconds between scheduling ticks
    tick_interval: float = 0.25
    # Remove queue-managed containers once they have exited
    remove_on_exit: bool = True
    # Transient launch failures before an entry is marked Failed
    max_launch_attempts: int = 5
    # First retry delay in seconds, doubled per failure up to 30s
    launch_retry_delay: float = 1.0

@dataclass
class ClientConfig:
    """
    CLI client configuration section.
    """
    # Per-request HTTP timeout in seconds
    request_timeout: float = 10.0
    # Delay between polls for `dq wait`
    poll_interval: float = 0.5
    # Default deadline for `dq wait`
    wait_timeout: float = 300.0


@dataclass
class Config:
    """
    Root configuration container.

    Each section uses a default factory so instances never share state.
    """

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)
    client: ClientConfig = field(default_factory=ClientConfig)

    def to_dict(self) -> dict:
        return asdict(self)

    def save(self, path: Path = None) -> None:
        """
        Save configuration to a YAML file, creating parent directories.

        :param path: Destination (default: ~/.docker-queue/config.yaml).
        """
        path = path or CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(
                self.to_dict(),
                f,
                default_flow_style=False,
                sort_keys=False
            )

        log.info(f"Config saved to {path}")

# Global configuration instance, replaced by load_config()
config = Config()


def _apply_env_vars(cfg: Config) -> None:
    """
    Apply DQ_* environment variable overrides to ``cfg``.

    Values are converted to the type of the field they override.
    """
    env_mappings = {
        "DQ_LOG_LEVEL": ("logging", "level"),
        "DQ_LOG_FILE": ("logging", "file"),
        "DQ_HOST": ("daemon", "host"),
        "DQ_PORT": ("daemon", "port"),
        "DQ_TICK_INTERVAL": ("dispatcher", "tick_interval"),
        "DQ_REMOVE_ON_EXIT": ("dispatcher", "remove_on_exit"),
        "DQ_REQUEST_TIMEOUT": ("client", "request_timeout"),
    }

    for env_var, (section, key) in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            section_obj = getattr(cfg, section)
            current = getattr(section_obj, key)

            # bool before int: bool is a subclass of int
            if isinstance(current, bool):
                value = value.lower() in ("true", "1", "yes")
            elif isinstance(current, int):
                value = int(value)
            elif isinstance(current, float):
                value = float(value)

            setattr(section_obj, key, value)
            log.debug(f"Config override from {env_var}: {section}.{key} = {value}")


def _load_from_dict(cfg: Config, data: Dict) -> None:
    """
    Copy known keys from a nested dict (parsed YAML) onto ``cfg``.

    Unknown sections and keys are ignored.
    """
    for section in fields(cfg):
        values = data.get(section.name)
        if not isinstance(values, dict):
            continue
        section_obj = getattr(cfg, section.name)
        for k, v in values.items():
            if hasattr(section_obj, k):
                setattr(section_obj, k, v)

def load_config(config_path: Path = None) -> Config:
    """
    Load configuration from file and environment variables.

    Resets the global config to defaults, applies the YAML file if present,
    then environment overrides.

    :param config_path: Optional config file (default: ~/.docker-queue/config.yaml).
    :return: The new global configuration instance.
    """
    global config

    config = Config()

    path = config_path or CONFIG_FILE
    if path.exists():
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            _load_from_dict(config, data)
            log.debug(f"Loaded config from {path}")
        except (OSError, yaml.YAMLError) as e:
            log.warning(f"Failed to load config from {path}: {e}")

    _apply_env_vars(config)
    return config

def get_config() -> Config:
    """Return the global configuration instance."""
    return config
