#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Shed environment: configuration, compose file and command execution.
"""

import logging
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

import typer
import yaml
from jinja2 import Environment, FileSystemLoader
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .models import (
    CONFIG_KEYS,
    DEFAULT_CONFIG_PATH,
    SHED_HOME,
    DatabaseType,
    ShedOptions,
    ShedSettings,
)

# Rich Console for beautiful output
console = Console()
logger = logging.getLogger(__name__)

PROJECT_NAME = "shed"
TEMPLATES_DIR = Path(__file__).parent / "templates"

# container, create database, dump on the server, load from stdin
FETCH_COMMANDS: dict[DatabaseType, tuple[str, list[str], list[str], list[str]]] = {
    DatabaseType.MYSQL: (
        "mysql",
        ["mysql", "-e", "CREATE DATABASE IF NOT EXISTS `{quoted}`"],
        ["mysqldump", "--single-transaction", "{database}"],
        ["mysql", "{database}"],
    ),
    DatabaseType.POSTGRES: (
        "postgres",
        ["createdb", "-U", "postgres", "{database}"],
        ["pg_dump", "--no-owner", "--no-acl", "{database}"],
        ["psql", "-U", "postgres", "-q", "{database}"],
    ),
}


def _fill(template: list[str], database: str) -> list[str]:
    # {quoted} sits inside a MySQL backtick identifier
    quoted = database.replace("`", "``")
    return [part.format(database=database, quoted=quoted) for part in template]


def _print_validation_error(error: ValidationError) -> None:
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "config"
        console.print(f"[red]Error: {location}: {err['msg']}[/red]")


# ============================================================================
# Core Shed Environment
# ============================================================================


class ShedEnvironment:
    """Manages one shed invocation"""

    def __init__(
        self,
        options: ShedOptions,
        shed_home: Path = SHED_HOME,
        file_values: Optional[dict[str, Any]] = None,
    ):
        self.options = options
        self.shed_home = shed_home
        self.file_values = file_values or {}
        self.templates_dir = TEMPLATES_DIR
        self.template_path = self.templates_dir / "compose.yaml.jinja2"
        self.output_path = shed_home / "_build" / "compose.yaml"

    @property
    def config_path(self) -> Path:
        return self.options.config

    @staticmethod
    def find_config_path(cli_values: dict[str, Any]) -> Path:
        """Config file location: --config > SHED_CONFIG (env or .env) > default"""
        if cli_values.get("config"):
            return Path(cli_values["config"]).expanduser()
        config = ShedSettings().config
        if config is not None:
            return config.expanduser()
        return DEFAULT_CONFIG_PATH

    @staticmethod
    def load_config_file(config_path: Path) -> dict[str, Any]:
        """Load the YAML config file, a missing file is an empty config"""
        if not config_path.exists():
            logger.debug("No config file at %s", config_path)
            return {}

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            console.print(f"[red]Error: cannot parse {config_path}: {e}[/red]")
            raise typer.Exit(1)

        if data is None:
            return {}
        if not isinstance(data, dict):
            console.print(f"[red]Error: {config_path} must contain a mapping[/red]")
            raise typer.Exit(1)
        return data

    @classmethod
    def from_cli(
        cls, cli_values: dict[str, Any], shed_home: Path = SHED_HOME
    ) -> "ShedEnvironment":
        """Resolve the configuration layers for this run"""
        try:
            config_path = cls.find_config_path(cli_values)
            file_values = cls.load_config_file(config_path)
            options = ShedOptions.resolve(
                {**cli_values, "config": config_path}, file_values
            )
        except ValidationError as e:
            _print_validation_error(e)
            raise typer.Exit(1)

        return cls(options, shed_home=shed_home, file_values=file_values)

    def with_container(self, container: Optional[str]) -> "ShedEnvironment":
        """Environment targeting another container"""
        options = self.options.with_container(container)
        if options is self.options:
            return self
        return ShedEnvironment(options, self.shed_home, self.file_values)

    # ------------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------------

    def option(self, key: Optional[str] = None, value: Optional[str] = None) -> None:
        """Display all options, print one, or persist one to the config file"""
        if key is None:
            self.show_options()
            return

        name = key.replace("-", "_")
        if name not in CONFIG_KEYS:
            console.print(
                f"[red]Error: unknown option '{key}'. "
                f"Choose from: {', '.join(CONFIG_KEYS)}[/red]"
            )
            raise typer.Exit(1)

        if value is None:
            console.print(str(getattr(self.options, name)))
            return

        self.set_option(name, value)

    def show_options(self) -> None:
        table = Table(
            title="Shed Configuration",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Option", style="cyan", no_wrap=True)
        table.add_column("Value", style="yellow")

        for name in CONFIG_KEYS:
            table.add_row(name, str(getattr(self.options, name)))

        console.print()
        console.print(table)
        console.print(f"[dim]Config file: {self.config_path}[/dim]")

    def set_option(self, name: str, value: str) -> None:
        try:
            checked = ShedOptions(**{name: value})
        except ValidationError as e:
            _print_validation_error(e)
            raise typer.Exit(1)

        data = dict(self.file_values)
        data[name] = checked.model_dump(mode="json")[name]

        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)

        self.file_values = data
        console.print(f"[green]✓[/green] {name} = {data[name]} ({self.config_path})")

    # ------------------------------------------------------------------------
    # Compose file
    # ------------------------------------------------------------------------

    def render_template(self) -> str:
        """Render Jinja2 template with the resolved options"""
        if not self.template_path.exists():
            console.print(f"[red]Error: template not found: {self.template_path}[/red]")
            raise typer.Exit(1)
        env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        template = env.get_template(self.template_path.name)
        return template.render(
            project=PROJECT_NAME,
            sites=self.options.sites.expanduser().resolve().as_posix(),
            docroot=self.options.docroot,
            port=self.options.port,
        )

    def generate_compose_file(self) -> Path:
        """Generate compose.yaml from template"""
        output = self.render_template()

        # Ensure output directory exists
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        logger.debug("Writing %s", self.output_path)
        with open(self.output_path, "w", encoding="utf-8") as f:
            f.write(output)

        return self.output_path

    def compose_command(self) -> list[str]:
        return [
            "docker",
            "compose",
            "-f",
            str(self.output_path),
            "--project-name",
            PROJECT_NAME,
        ]

    def exec_command(
        self,
        command: Sequence[str],
        container: Optional[str] = None,
        interactive: Optional[bool] = None,
    ) -> list[str]:
        """Build ``docker compose exec`` for a command in a container"""
        if interactive is None:
            interactive = sys.stdin.isatty()
        cmd = self.compose_command() + ["exec"]
        if not interactive:
            cmd.append("-T")
        cmd.append(container or self.options.container)
        return cmd + list(command)

    # ------------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------------

    def run(self, cmd: list[str]) -> int:
        """Run a command with inherited stdio and return its exit code"""
        logger.info("Running: %s", shlex.join(cmd))

        try:
            result = subprocess.run(cmd)
            return result.returncode
        except FileNotFoundError:
            console.print(f"[red]Error: {cmd[0]} not found[/red]")
            return 127
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            return 130

    def run_in_container(self, command: Sequence[str], args: Sequence[str]) -> int:
        """Run a command inside the selected container"""
        self.generate_compose_file()
        return self.run(self.exec_command([*command, *args]))

    def run_on_host(self, args: Sequence[str]) -> int:
        """Run docker compose against shed's compose file"""
        self.generate_compose_file()
        return self.run(self.compose_command() + list(args))

    def fetch_database(
        self, db_type: DatabaseType, database: str, server: str
    ) -> int:
        """Stream a database dump from a remote server into its container"""
        container, create, dump, load = FETCH_COMMANDS[db_type]
        self.generate_compose_file()

        create_cmd = self.exec_command(
            _fill(create, database), container=container, interactive=False
        )
        code = self.run(create_cmd)
        if code in (127, 130):
            return code
        if code != 0:
            logger.warning(
                "Creating database %s exited with %d, loading anyway", database, code
            )

        dump_cmd = ["ssh", server, shlex.join(_fill(dump, database))]
        load_cmd = self.exec_command(
            _fill(load, database), container=container, interactive=False
        )
        logger.info("Running: %s | %s", shlex.join(dump_cmd), shlex.join(load_cmd))

        try:
            dump_proc = subprocess.Popen(dump_cmd, stdout=subprocess.PIPE)
        except FileNotFoundError:
            console.print("[red]Error: ssh not found[/red]")
            return 127

        try:
            load_result = subprocess.run(load_cmd, stdin=dump_proc.stdout)
        except FileNotFoundError:
            dump_proc.kill()
            console.print(f"[red]Error: {load_cmd[0]} not found[/red]")
            return 127
        except KeyboardInterrupt:
            dump_proc.kill()
            console.print("\n[yellow]Interrupted by user[/yellow]")
            return 130
        finally:
            if dump_proc.stdout is not None:
                dump_proc.stdout.close()
            dump_code = dump_proc.wait()

        if dump_code != 0:
            console.print(f"[red]Error: dump from {server} exited with {dump_code}[/red]")
            return dump_code
        if load_result.returncode != 0:
            return load_result.returncode

        console.print(f"[green]✓[/green] Fetched {database} from {server}")
        return 0
