"""
Run command parsing.

A queue entry carries its run command as a single string, written the way an
operator would type it on a shell: ``docker run --rm -e K=V alpine sleep 5``.
The leading ``docker run`` is optional. parse_run_command turns that string
into a RunSpec holding the keyword arguments the docker SDK expects.
"""

import shlex
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from docker_queue.errors import ValidationError

# option -> RunSpec attribute, for options that take a value
_VALUE_OPTIONS = {
    "--name": "name",
    "-e": "environment",
    "--env": "environment",
    "-v": "volumes",
    "--volume": "volumes",
    "-w": "working_dir",
    "--workdir": "working_dir",
    "--entrypoint": "entrypoint",
    "-l": "labels",
    "--label": "labels",
}

_FLAG_OPTIONS = {"--rm", "-d", "--detach"}


@dataclass
class RunSpec:
    image: str
    command: List[str] = field(default_factory=list)
    name: Optional[str] = None
    environment: Dict[str, str] = field(default_factory=dict)
    volumes: List[str] = field(default_factory=list)
    working_dir: Optional[str] = None
    entrypoint: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    auto_remove: bool = False

    def create_kwargs(self) -> dict:
        """Keyword arguments for ``DockerClient.containers.create``."""
        kwargs = {
            "image": self.image,
            "command": self.command or None,
            "detach": True,
            "auto_remove": self.auto_remove,
            "labels": dict(self.labels),
        }
        if self.name:
            kwargs["name"] = self.name
        if self.environment:
            kwargs["environment"] = dict(self.environment)
        if self.volumes:
            kwargs["volumes"] = list(self.volumes)
        if self.working_dir:
            kwargs["working_dir"] = self.working_dir
        if self.entrypoint:
            kwargs["entrypoint"] = self.entrypoint
        return kwargs


def _split_pair(option: str, value: str) -> tuple:
    if "=" not in value:
        raise ValidationError(f"Option {option} expects KEY=VALUE, got '{value}'")
    key, val = value.split("=", 1)
    if not key:
        raise ValidationError(f"Option {option} has an empty key")
    return key, val


def parse_run_command(command: str) -> RunSpec:
    """
    Parse a run command string into a RunSpec.

    :param command: Command line, with or without a leading ``docker run``.
    :return: Parsed RunSpec.
    :raises ValidationError: Empty command, unbalanced quotes, unknown option,
                             option without value, or no image.
    """
    if not command or not command.strip():
        raise ValidationError("Run command is empty")

    try:
        tokens = shlex.split(command)
    except ValueError as e:
        raise ValidationError(f"Cannot parse run command: {e}") from e

    if tokens[:2] == ["docker", "run"]:
        tokens = tokens[2:]
    elif tokens[:1] == ["run"]:
        tokens = tokens[1:]

    values: Dict[str, object] = {
        "environment": {},
        "volumes": [],
        "labels": {},
    }
    auto_remove = False

    i = 0
    while i < len(tokens) and tokens[i].startswith("-"):
        token = tokens[i]
        option, inline_value = token, None
        if token.startswith("--") and "=" in token:
            option, inline_value = token.split("=", 1)

        if option in _FLAG_OPTIONS and inline_value is None:
            auto_remove = auto_remove or option == "--rm"
            i += 1
            continue

        if option not in _VALUE_OPTIONS:
            raise ValidationError(f"Unsupported run option '{token}'")

        if inline_value is None:
            if i + 1 >= len(tokens):
                raise ValidationError(f"Option {option} requires a value")
            inline_value = tokens[i + 1]
            i += 2
        else:
            i += 1

        attr = _VALUE_OPTIONS[option]
        if attr in ("environment", "labels"):
            key, val = _split_pair(option, inline_value)
            values[attr][key] = val
        elif attr == "volumes":
            values["volumes"].append(inline_value)
        else:
            values[attr] = inline_value

    if i >= len(tokens):
        raise ValidationError(f"Run command has no image: '{command}'")

    return RunSpec(
        image=tokens[i],
        command=tokens[i + 1:],
        auto_remove=auto_remove,
        **values,
    )
