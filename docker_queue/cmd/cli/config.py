"""
Configuration commands for the docker-queue CLI.

Commands:
- show: Display the effective configuration
- init: Write a default configuration file
- path: Print the configuration file location
"""

import yaml
import typer
from rich import print
from rich.markup import escape

from docker_queue.utils import config as config_module

config_app = typer.Typer(no_args_is_help=True)

@config_app.command("show")
def config_show() -> None:
    """
    Show the effective configuration (file values plus DQ_* overrides).
    """
    config = config_module.get_config()
    print("[cyan]Current configuration:[/cyan]\n")
    print(escape(yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False)))

@config_app.command("init")
def config_init(force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config")) -> None:
    """
    Create a default config file.
    """
    config_file = config_module.CONFIG_FILE
    if config_file.exists() and not force:
        print(f"[yellow]Config already exists:[/yellow] {config_file}")
        print("Use --force to overwrite")
        return

    config_module.Config().save(config_file)
    print(f"[green]✓ Config created:[/green] {config_file}")

@config_app.command("path")
def config_path() -> None:
    """
    Show config file path.
    """
    print(config_module.CONFIG_FILE)
