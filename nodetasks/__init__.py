"""
NodeTasks: development task runner for a node with a WebAssembly runtime

Gives contributors five commands (init, check, test, run, build) that run
cargo with the right environment: the wasm runtime rebuild is skipped for
check/test, and run/build compile it with a pinned toolchain.
"""

__version__ = "0.1.0"
__all__ = [
    "__version__",
]
