"""
NodeTasks Action Dispatcher

Runs one task command through a Runner and hands back the result exactly as
the external action produced it.
"""

import uuid
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from nodetasks.commands import Command, get_command
from nodetasks.config import get_config
from nodetasks.environment import compose_environment, describe_overlay
from nodetasks.errors import ActionLaunchFailed
from nodetasks.logging import get_logger, log_context, log_extra
from nodetasks.runner import InvocationResult, Runner, SubprocessRunner

logger = get_logger(__name__)


class DispatchState(str, Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    COMPLETED = "completed"


class ActionDispatcher:
    """
    Single-shot dispatch of a command's action.

    No retries: a launch failure raises ActionLaunchFailed, and a non-zero
    exit is returned like any other result.
    """

    def __init__(self, runner: Runner, *, cwd: Optional[Path] = None) -> None:
        self.runner = runner
        self.cwd = cwd
        self.state = DispatchState.IDLE

    def dispatch(self, command: Command, environment: Mapping[str, str]) -> InvocationResult:
        argv = command.action.argv
        self.state = DispatchState.DISPATCHING
        logger.info(
            "Dispatching task",
            extra=log_extra(task=command.name, argv=argv, overlay=describe_overlay(command)),
        )
        try:
            result = self.runner.execute(argv, environment, cwd=self.cwd)
        except ActionLaunchFailed as exc:
            logger.error(
                "Task could not be started",
                extra=log_extra(task=command.name, error=str(exc), error_category=exc.category),
            )
            raise
        finally:
            self.state = DispatchState.COMPLETED

        level = "info" if result.succeeded else "warning"
        getattr(logger, level)(
            "Task finished",
            extra=log_extra(
                task=command.name,
                exit_code=result.exit_code,
                duration_ms=int(result.duration_seconds * 1000),
            ),
        )
        return result


def run_task(
    name: str,
    *,
    runner: Optional[Runner] = None,
    base_env: Optional[Mapping[str, str]] = None,
) -> InvocationResult:
    """
    Resolve ``name``, compose its environment and dispatch it.

    Raises:
        UnknownCommand: before any runner is touched, if ``name`` is not registered
        ActionLaunchFailed: if the action's executable cannot be started
    """
    command = get_command(name)
    config = get_config()
    if runner is None:
        runner = SubprocessRunner(capture_output=config.capture_output)

    with log_context(run_id=uuid.uuid4().hex[:12], task=command.name):
        environment = compose_environment(command, base_env)
        dispatcher = ActionDispatcher(runner, cwd=config.project_root)
        return dispatcher.dispatch(command, environment)
