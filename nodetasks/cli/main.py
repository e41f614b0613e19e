"""
NodeTasks CLI

Click-based command-line interface. Each task command (init, check, test,
run, build) takes no arguments and exits with the status of the external
action it runs.
"""

import json
import sys
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from nodetasks import __version__
from nodetasks.commands import Command, get_command, get_registry, list_commands
from nodetasks.config import get_config
from nodetasks.dispatcher import run_task
from nodetasks.environment import describe_overlay
from nodetasks.errors import ActionLaunchFailed, ConfigError, UnknownCommand
from nodetasks.logging import (
    EXIT_CONFIG_ERROR,
    EXIT_DEP_MISSING,
    EXIT_OK,
    EXIT_RUNTIME_ERROR,
    EXIT_UNKNOWN_COMMAND,
    get_logger,
    init_cli_logging,
)
from nodetasks.runner import InvocationResult
from nodetasks.toolchain import get_toolchain_selection

logger = get_logger(__name__)

console = Console()


def exit_status(result: InvocationResult) -> int:
    """Process exit status for a result; signal deaths map to 128 + signal like a shell."""
    if result.exit_code < 0:
        return 128 - result.exit_code
    return result.exit_code


class TaskGroup(click.Group):
    """
    Group whose task commands come from the command registry.

    Unknown names are reported as UnknownCommand instead of a usage error.
    """

    def list_commands(self, ctx):
        return [command.name for command in get_registry()] + sorted(self.commands)

    def get_command(self, ctx, name):
        if name in self.commands:
            return self.commands[name]
        registry = get_registry()
        if name in registry:
            return _make_task_command(registry.get(name))
        return None

    def resolve_command(self, ctx, args):
        name = args[0] if args else None
        if name and not name.startswith("-") and self.get_command(ctx, name) is None:
            raise UnknownCommand(name, [c.name for c in list_commands()])
        return super().resolve_command(ctx, args)


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group(cls=TaskGroup)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--json", "json_output", is_flag=True, help="Emit log lines as JSON")
@click.pass_context
def cli(ctx, verbose, json_output):
    """NodeTasks - build, test and run the node with the right toolchains."""
    ctx.ensure_object(dict)
    config = get_config()
    ctx.obj["VERBOSE"] = verbose
    ctx.obj["JSON"] = json_output
    init_cli_logging(
        level="DEBUG" if verbose else config.log_level,
        json_output=json_output or config.log_json,
    )


def _make_task_command(command: Command) -> click.Command:
    @click.pass_context
    def callback(ctx):
        result = run_task(command.name, runner=ctx.obj.get("RUNNER"))
        # click.echo writes bytes to the underlying binary stream untouched.
        if result.stdout:
            click.echo(result.stdout, nl=False)
        if result.stderr:
            click.echo(result.stderr, nl=False, err=True)
        return exit_status(result)

    return click.Command(name=command.name, callback=callback, help=command.description)


# =============================================================================
# Informational Commands
# =============================================================================

@cli.command("list")
def list_tasks():
    """List task commands with their actions and environment overlays."""
    table = Table(title="Task Commands")
    table.add_column("Command", style="cyan")
    table.add_column("Action", style="magenta")
    table.add_column("Environment", style="green")
    table.add_column("Description")

    for command in list_commands():
        table.add_row(
            command.name,
            str(command.action),
            "\n".join(describe_overlay(command)) or "-",
            command.description,
        )

    console.print(table)
    return EXIT_OK


@cli.command("describe")
@click.argument("name")
@click.pass_context
def describe(ctx, name):
    """Show what a task command would run, without running it."""
    command = get_command(name)
    if ctx.obj.get("JSON"):
        click.echo(json.dumps({
            "command": command.name,
            "argv": command.action.argv,
            "set": command.overlay.as_dict(),
            "pins_wasm_toolchain": command.pins_wasm_toolchain,
        }))
    else:
        click.echo(f"{command.name}: {command.description}")
        click.echo(f"  action: {command.action}")
        for line in describe_overlay(command):
            click.echo(f"  env:    {line}")
    return EXIT_OK


@cli.command("toolchain")
def toolchain():
    """Print the toolchain pinned for WebAssembly compilation."""
    selection = get_toolchain_selection()
    click.echo(selection.wasm_toolchain)
    return EXIT_OK


@cli.command()
def version():
    """Show version information."""
    click.echo(f"NodeTasks v{__version__}")
    return EXIT_OK


# =============================================================================
# Entry Point
# =============================================================================

def main(argv: Optional[List[str]] = None, *, runner=None) -> int:
    """
    Run the CLI and return the exit status instead of exiting.

    ``runner`` replaces the subprocess runner (used by tests).
    """
    try:
        rv = cli.main(
            args=argv,
            prog_name="nodetasks",
            standalone_mode=False,
            obj={"RUNNER": runner},
        )
    except UnknownCommand as exc:
        click.echo(f"✗ {exc}", err=True)
        return EXIT_UNKNOWN_COMMAND
    except ActionLaunchFailed as exc:
        logger.debug("Launch failure", exc_info=True)
        click.echo(f"✗ {exc}", err=True)
        return EXIT_DEP_MISSING
    except ConfigError as exc:
        click.echo(f"✗ {exc}", err=True)
        return EXIT_CONFIG_ERROR
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.Abort:
        click.echo("Aborted!", err=True)
        return EXIT_RUNTIME_ERROR
    return rv if isinstance(rv, int) else EXIT_OK


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
