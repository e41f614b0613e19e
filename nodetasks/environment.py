"""
NodeTasks Environment Composer

Builds the environment each task command runs under. Overlays are plain
data; the only place they touch a real process environment is the
``env=`` argument handed to the runner, so the parent's ``os.environ``
is never modified.
"""

import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple, TYPE_CHECKING

from nodetasks.toolchain import ToolchainSelection

if TYPE_CHECKING:  # pragma: no cover
    from nodetasks.commands import Command

# Recognised by the runtime's build script: skip regenerating the wasm blob.
SKIP_WASM_BUILD = "SKIP_WASM_BUILD"
# Recognised by the runtime's build script: toolchain for wasm32 code generation.
WASM_BUILD_TOOLCHAIN = "WASM_BUILD_TOOLCHAIN"


@dataclass(frozen=True)
class EnvironmentOverlay:
    """Variables set on top of the inherited environment, as sorted (name, value) pairs."""

    values: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def of(cls, values: Optional[Mapping[str, str]] = None) -> "EnvironmentOverlay":
        return cls(values=tuple(sorted((values or {}).items())))

    def as_dict(self) -> Dict[str, str]:
        return dict(self.values)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.as_dict().get(key, default)

    def __contains__(self, key: object) -> bool:
        return any(name == key for name, _ in self.values)

    def __bool__(self) -> bool:
        return bool(self.values)

    def apply(self, base: Mapping[str, str]) -> Dict[str, str]:
        """Return a new mapping: ``base`` with ``values`` taking precedence."""
        env = dict(base)
        env.update(self.values)
        return env


NO_OVERLAY = EnvironmentOverlay()


def skip_wasm_overlay() -> EnvironmentOverlay:
    """Overlay for commands that never need a fresh wasm blob (check, test)."""
    return EnvironmentOverlay.of({SKIP_WASM_BUILD: "1"})


def pinned_toolchain_overlay(selection: ToolchainSelection) -> EnvironmentOverlay:
    """Overlay for commands that compile the wasm blob from source (run, build)."""
    return EnvironmentOverlay.of({WASM_BUILD_TOOLCHAIN: selection.wasm_toolchain})


def compose_environment(command: "Command", base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Full environment for ``command``: inherited variables plus its overlay.

    Args:
        command: the resolved task command
        base: inherited environment (default: a snapshot of ``os.environ``)

    Returns:
        A new dict; neither ``base`` nor ``os.environ`` is modified.
    """
    inherited = dict(os.environ) if base is None else base
    return command.overlay.apply(inherited)


def describe_overlay(command: "Command") -> List[str]:
    """Human readable ``KEY=VALUE`` lines for display."""
    return [f"{name}={value}" for name, value in command.overlay.values]
