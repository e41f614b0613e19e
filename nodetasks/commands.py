"""
NodeTasks Command Registry

The fixed table of task commands: what each one runs and the environment
overlay it runs under. The table is built once and is read-only afterwards.
"""

import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple

from nodetasks.config import Config, get_config
from nodetasks.environment import (
    NO_OVERLAY,
    EnvironmentOverlay,
    pinned_toolchain_overlay,
    skip_wasm_overlay,
)
from nodetasks.errors import ConfigError, UnknownCommand
from nodetasks.toolchain import ToolchainSelection, get_toolchain_selection

COMMAND_NAMES: Tuple[str, ...] = ("init", "check", "test", "run", "build")


@dataclass(frozen=True)
class Action:
    """An external program and its arguments."""

    program: str
    args: Tuple[str, ...] = ()

    @property
    def argv(self) -> List[str]:
        return [self.program, *self.args]

    def __str__(self) -> str:
        return " ".join(self.argv)


@dataclass(frozen=True)
class Command:
    name: str
    action: Action
    overlay: EnvironmentOverlay = NO_OVERLAY
    pins_wasm_toolchain: bool = False
    description: str = ""


class CommandRegistry:
    """Read-only name -> Command lookup."""

    def __init__(self, commands: Iterable[Command]) -> None:
        table = {}
        for command in commands:
            if command.name in table:
                raise ConfigError(
                    f"Command '{command.name}' registered twice",
                    metadata={"command": command.name},
                )
            table[command.name] = command
        self._commands: Mapping[str, Command] = MappingProxyType(table)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._commands)

    def get(self, name: str) -> Command:
        try:
            return self._commands[name]
        except KeyError:
            raise UnknownCommand(name, self.names) from None

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __iter__(self):
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)


def build_commands(config: Config, selection: ToolchainSelection) -> List[Command]:
    """The five task commands in canonical order."""
    cargo = config.cargo
    pinned = pinned_toolchain_overlay(selection)
    return [
        Command(
            name="init",
            action=Action(config.init_script),
            description="Install toolchains and system dependencies",
        ),
        Command(
            name="check",
            action=Action(cargo, ("check",)),
            overlay=skip_wasm_overlay(),
            description="Type and borrow check without rebuilding the wasm runtime",
        ),
        Command(
            name="test",
            action=Action(cargo, ("test", "--all")),
            overlay=skip_wasm_overlay(),
            description="Run the full test suite without rebuilding the wasm runtime",
        ),
        Command(
            name="run",
            action=Action(cargo, ("run", "--release", "--", "--dev", "--tmp")),
            overlay=pinned,
            pins_wasm_toolchain=True,
            description="Build with the pinned wasm toolchain and start a dev node with temporary state",
        ),
        Command(
            name="build",
            action=Action(cargo, ("build", "--release")),
            overlay=pinned,
            pins_wasm_toolchain=True,
            description="Optimized release build with the pinned wasm toolchain",
        ),
    ]


_registry: Optional[CommandRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> CommandRegistry:
    """Get or create the process-wide registry."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = CommandRegistry(build_commands(get_config(), get_toolchain_selection()))
    return _registry


def get_command(name: str) -> Command:
    """
    Resolve a command name.

    Raises:
        UnknownCommand: if ``name`` is not one of COMMAND_NAMES
    """
    return get_registry().get(name)


def list_commands() -> List[Command]:
    return list(get_registry())


def _reset_registry_for_tests() -> None:
    global _registry
    with _registry_lock:
        _registry = None
