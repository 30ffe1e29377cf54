#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
CLI commands for shed.
"""

import logging
import shlex
import sys
from pathlib import Path
from typing import Annotated, Optional, Sequence, Tuple

import typer
from rich.console import Console
from rich.markup import escape

from .args import OptionRegistry, raw_command_args, split_command
from .logs import setup_logging
from .manager import ShedEnvironment
from .models import SHED_HOME, CommandSpec, DatabaseType, Invocation, OptionSpec

__version__ = "0.3.0"

console = Console()
logger = logging.getLogger(__name__)

COMPOSE_COMMANDS = ("start", "stop", "up", "down", "ps")

# Global options are recognized anywhere on the command line
GLOBAL_OPTIONS = OptionRegistry(
    [
        OptionSpec(
            flags=("--sites",), dest="sites", metavar="folder", help="sites directory"
        ),
        OptionSpec(
            flags=("--docroot",),
            dest="docroot",
            metavar="folder",
            help="docroot folder (default: public)",
        ),
        OptionSpec(
            flags=("--log-level",),
            dest="log_level",
            arity="optional",
            metavar="level",
            flag_value="DEBUG",
            help="logging level (default: INFO, bare flag: DEBUG)",
        ),
        OptionSpec(
            flags=("--container",),
            dest="container",
            metavar="container",
            help="container (default: apache)",
        ),
        OptionSpec(
            flags=("--config",),
            dest="config",
            metavar="file",
            help="config file (default: ~/.shed/config.yaml)",
        ),
        OptionSpec(
            flags=("--port",), dest="port", metavar="port", help="port (default: 80)"
        ),
        OptionSpec(
            flags=("-V", "--version"),
            dest="version",
            arity="boolean",
            help="output the version number",
        ),
    ]
)

COMMANDS: Tuple[CommandSpec, ...] = (
    CommandSpec(
        name="sh",
        target="container",
        command=("bash",),
        help="Open a shell within one of the shed containers (apache by default).",
    ),
    CommandSpec(
        name="php",
        target="container",
        command=("php",),
        help="Run the PHP cli within the apache container, "
        "for use with artisan or other scripts.",
    ),
    CommandSpec(
        name="mysql",
        target="container",
        command=("mysql",),
        container="mysql",
        help="Runs the mysql client within the mysql container.",
    ),
    CommandSpec(
        name="psql",
        target="container",
        command=("psql", "-U", "postgres"),
        container="postgres",
        help="Runs psql (the postgres client) within the postgres container.",
    ),
    CommandSpec(
        name="compose",
        target="compose",
        help="Runs a docker compose command against shed's compose file.",
    ),
    # Sugar so compose commands can be run without 'compose'
    *(
        CommandSpec(
            name=name,
            target="compose",
            prepend_name=True,
            help=f"This is just a wrapper for docker compose {name}.",
        )
        for name in COMPOSE_COMMANDS
    ),
)

# Pass-through commands hand every token to the wrapped tool, --help included
PASSTHROUGH = {
    "allow_extra_args": True,
    "ignore_unknown_options": True,
    "help_option_names": [],
}


def _global_options_epilog() -> str:
    lines = ["[bold]Global options[/bold] (accepted anywhere):"]
    for usage, help_text in GLOBAL_OPTIONS.describe():
        lines.append(f"  {escape(usage)}  [dim]{escape(help_text)}[/dim]")
    return "\n\n".join(lines)


app = typer.Typer(
    name="shed",
    help="Local development wrapper around docker compose",
    epilog=_global_options_epilog(),
    add_completion=False,
    rich_markup_mode="rich",
)


# ============================================================================
# Invocation handling
# ============================================================================


def prepare(
    argv: Sequence[str], home: Path = SHED_HOME
) -> Tuple[list[str], Invocation]:
    """Capture the command line and build the arguments typer should parse.

    Global options are stripped wherever they appear. Unknown or missing
    subcommands are routed to the help page.
    """
    tokens = tuple(argv)
    command, remainder = split_command(tokens, GLOBAL_OPTIONS)
    values = GLOBAL_OPTIONS.values(tokens)
    version = bool(values.pop("version", False))

    invocation = Invocation(
        tokens=tokens,
        command=command,
        remainder=tuple(remainder),
        cli_values=values,
        version=version,
        home=home,
    )

    if command is None or command not in command_names():
        return ["--help"], invocation
    return raw_command_args(remainder, GLOBAL_OPTIONS, prepend=command), invocation


def command_names() -> set[str]:
    names = {spec.name for spec in COMMANDS}
    names.update(("config", "fetch"))
    return names


def load_environment(invocation: Invocation) -> ShedEnvironment:
    env = ShedEnvironment.from_cli(invocation.cli_values, shed_home=invocation.home)
    setup_logging(env.options.log_level)
    logger.debug("Command line: %s", shlex.join(invocation.tokens))
    return env


def dispatch(spec: CommandSpec, invocation: Invocation) -> int:
    """Run one dispatch table row and return the child's exit code"""
    env = load_environment(invocation).with_container(spec.container)
    args = raw_command_args(
        invocation.remainder,
        GLOBAL_OPTIONS,
        prepend=spec.name if spec.prepend_name else None,
    )

    if spec.target == "container":
        return env.run_in_container(spec.command, args)
    return env.run_on_host(args)


# ============================================================================
# CLI Commands
# ============================================================================


def _register(spec: CommandSpec) -> None:
    def passthrough(ctx: typer.Context):
        sys.exit(dispatch(spec, ctx.obj))

    app.command(spec.name, help=spec.help, context_settings=PASSTHROUGH)(passthrough)


for _spec in COMMANDS:
    _register(_spec)


@app.command()
def config(
    ctx: typer.Context,
    option: Annotated[
        Optional[str], typer.Argument(help="Option to display or set")
    ] = None,
    value: Annotated[
        Optional[str], typer.Argument(help="New value, saved to the config file")
    ] = None,
):
    """Display current configuration information."""
    env = load_environment(ctx.obj)
    env.option(option, value)


@app.command()
def fetch(
    ctx: typer.Context,
    db_type: Annotated[
        DatabaseType, typer.Argument(metavar="TYPE", help="Database type")
    ],
    database: Annotated[str, typer.Argument(help="Database name")],
    server: Annotated[str, typer.Argument(help="Server to ssh into")],
):
    """Fetch a remote database into the respective shed container."""
    env = load_environment(ctx.obj)
    sys.exit(env.fetch_database(db_type, database, server))


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point"""
    # Default handler until the configured log level is known
    setup_logging()
    args, invocation = prepare(sys.argv[1:] if argv is None else argv)
    if invocation.version:
        console.print(__version__)
        sys.exit(0)
    app(args=args, obj=invocation, prog_name="shed")
