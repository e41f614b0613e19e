"""
NodeTasks Error Hierarchy

Base error and specific error types for the task runner.
Errors carry metadata for structured logging.
"""

from typing import Any, Dict, Optional, Sequence


class NodeTasksError(RuntimeError):
    """
    Base error for NodeTasks components. Carries metadata for structured logging.

    Attributes:
        category: Error category for classification (e.g., "validation", "launch")
        retryable: Whether the operation can be retried
        metadata: Additional context for logging and debugging
    """

    category: str = "runtime"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        metadata: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.metadata = metadata or {}
        if retryable is not None:
            self.retryable = retryable


# Configuration Errors
class ConfigError(NodeTasksError):
    """Raised when configuration is invalid or missing."""

    category = "config"


# Validation Errors
class UnknownCommand(NodeTasksError):
    """Raised when a command name is not one of the registered task commands."""

    category = "validation"

    def __init__(self, name: str, known: Sequence[str]) -> None:
        super().__init__(
            f"Unknown command '{name}'. Expected one of: {', '.join(known)}",
            metadata={"command": name, "known": list(known)},
        )
        self.name = name
        self.known = tuple(known)


# Action Errors
class ActionLaunchFailed(NodeTasksError):
    """
    Raised when the external action could not be started at all.

    Distinct from an action that started and exited non-zero, which is a
    normal outcome forwarded to the caller.
    """

    category = "launch"

    def __init__(self, argv: Sequence[str], reason: str) -> None:
        super().__init__(
            f"Action could not be started: {' '.join(argv)} ({reason})",
            metadata={"argv": list(argv), "reason": reason},
        )
        self.argv = tuple(argv)
        self.reason = reason


class ExternalActionNonZero(NodeTasksError):
    """Raised only on explicit request when an action started and exited non-zero."""

    category = "action"

    def __init__(self, argv: Sequence[str], exit_code: int) -> None:
        super().__init__(
            f"Action started and failed with exit code {exit_code}: {' '.join(argv)}",
            metadata={"argv": list(argv), "exit_code": exit_code},
        )
        self.argv = tuple(argv)
        self.exit_code = exit_code
