"""
NodeTasks Toolchain Selection

Holds the single toolchain identifier used to compile the WebAssembly
runtime. The native build keeps following whatever toolchain rustup
resolves (usually stable); only the wasm32 code generation is pinned.
"""

import threading
from dataclasses import dataclass
from typing import Optional

# Frozen nightly revision whose wasm32 code generator the runtime builds with.
DEFAULT_WASM_TOOLCHAIN = "nightly-2020-10-05-x86_64-unknown-linux-gnu"

# Variables that select the native toolchain. Never written by this package.
NATIVE_TOOLCHAIN_VARS = ("RUSTUP_TOOLCHAIN", "CARGO_BUILD_TARGET")


def is_valid_toolchain(value: str) -> bool:
    return bool(value) and not any(ch.isspace() for ch in value)


@dataclass(frozen=True)
class ToolchainSelection:
    """The pinned WebAssembly toolchain and where it came from."""

    wasm_toolchain: str
    source: str = "default"

    @property
    def is_default(self) -> bool:
        return self.wasm_toolchain == DEFAULT_WASM_TOOLCHAIN


_selection: Optional[ToolchainSelection] = None
_selection_lock = threading.Lock()


def get_toolchain_selection() -> ToolchainSelection:
    """
    Return the process-wide toolchain selection, resolving it on first use.

    The value comes from configuration (NODETASKS_WASM_TOOLCHAIN, falling back
    to DEFAULT_WASM_TOOLCHAIN) and is not changed for the rest of the process.
    """
    global _selection
    if _selection is None:
        with _selection_lock:
            if _selection is None:
                from nodetasks.config import get_config

                configured = get_config().wasm_toolchain
                source = "default" if configured == DEFAULT_WASM_TOOLCHAIN else "environment"
                _selection = ToolchainSelection(wasm_toolchain=configured, source=source)
    return _selection


def wasm_toolchain() -> str:
    """Shortcut for the pinned WebAssembly toolchain identifier."""
    return get_toolchain_selection().wasm_toolchain


def _reset_selection_for_tests() -> None:
    """Reset the cached selection (tests only)."""
    global _selection
    with _selection_lock:
        _selection = None
