"""
Centralized logging configuration.

This module provides a consistent logging setup across the docker-queue daemon
and CLI. It configures Python's standard logging with a shared format, handlers
and level, and provides a factory for namespaced loggers.

Key features:
- Configured at most once per process, even if called repeatedly
- Optional file logging alongside console output
- Verbose mode adds the emitting logger name and line number
- Noisy third-party loggers (docker SDK, urllib3, uvicorn access log) are quieted
- All project loggers live under the "docker_queue." namespace
"""

import logging
import sys
from pathlib import Path
from typing import Optional

_CONFIGURED = False

def setup_logging(level: str = "INFO",
                  log_file: Optional[Path] = None,
                  verbose: bool = False
                  ) -> None:
    """
    Configure the global logging system.

    Should be called once at startup by the CLI entry point. Subsequent calls
    are ignored so that the daemon and the CLI callback cannot register
    duplicate handlers.

    :param level: Logging level name ("DEBUG", "INFO", ...). Case-insensitive.
    :param log_file: Optional path to also write logs to. Parent directories
                    are created if missing.
    :param verbose: If True, include logger name and line number in each record.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    if verbose:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(message)s"

    datefmt = "%Y-%m-%d %H:%M:%S"

    # stderr keeps command output on stdout clean for scripting
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=fmt,
        datefmt=datefmt,
        handlers=handlers,
    )

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("docker").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """
    Create a namespaced logger.

    :param name: Component name, e.g. "dispatcher" or "engine". The
                "docker_queue." prefix is added automatically.
    :return: Logger named "docker_queue.<name>".
    """
    return logging.getLogger(f"docker_queue.{name}")
