"""
NodeTasks Runner

The capability the dispatcher uses to start external programs. The
subprocess-backed runner is the only code that hands an environment to a
real child process.
"""

import signal
import subprocess
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping, Optional, Protocol, Sequence

from nodetasks.errors import ActionLaunchFailed, ExternalActionNonZero
from nodetasks.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class InvocationResult:
    """
    Outcome of one external action.

    ``stdout``/``stderr`` hold the raw captured bytes, or None when the output
    went straight to the terminal.
    """

    argv: Sequence[str]
    exit_code: int
    stdout: Optional[bytes] = None
    stderr: Optional[bytes] = None
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def raise_for_status(self) -> "InvocationResult":
        if self.exit_code != 0:
            raise ExternalActionNonZero(self.argv, self.exit_code)
        return self


class Runner(Protocol):
    def execute(
        self,
        argv: Sequence[str],
        env: Mapping[str, str],
        *,
        cwd: Optional[Path] = None,
    ) -> InvocationResult:
        ...


@contextmanager
def _parent_ignores_sigint() -> Iterator[None]:
    """
    Ignore SIGINT in this process while a foreground child runs.

    Ctrl-C reaches the whole foreground process group; the child handles it
    and its exit status is what gets reported.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def run_process(
    cmd: Sequence[str],
    *,
    env: Mapping[str, str],
    cwd: Optional[Path] = None,
    capture_output: bool = False,
) -> subprocess.CompletedProcess:
    """
    Run a subprocess with an explicit environment and no exit-code checking.

    Captured output is kept as raw bytes so it can be re-emitted unchanged.

    Args:
        cmd: Command and arguments to run
        env: Complete environment for the child (not merged with os.environ)
        cwd: Working directory for the command
        capture_output: Whether to capture stdout/stderr instead of streaming them

    Raises:
        OSError: If the program cannot be started
    """
    pipe = subprocess.PIPE if capture_output else None
    # SIG_IGN is inherited across exec, so the child must be started before
    # the parent stops listening for SIGINT.
    proc = subprocess.Popen(
        list(cmd),
        env=dict(env),
        cwd=str(cwd) if cwd else None,
        stdout=pipe,
        stderr=pipe,
    )
    with _parent_ignores_sigint():
        stdout, stderr = proc.communicate()
    return subprocess.CompletedProcess(proc.args, proc.returncode, stdout, stderr)


class SubprocessRunner:
    """Runner that spawns real child processes and waits for them."""

    def __init__(self, *, capture_output: bool = False) -> None:
        self.capture_output = capture_output

    def execute(
        self,
        argv: Sequence[str],
        env: Mapping[str, str],
        *,
        cwd: Optional[Path] = None,
    ) -> InvocationResult:
        if cwd is not None and not Path(cwd).is_dir():
            raise ActionLaunchFailed(argv, f"working directory does not exist: {cwd}")
        start = time.monotonic()
        try:
            proc = run_process(argv, env=env, cwd=cwd, capture_output=self.capture_output)
        except FileNotFoundError as exc:
            raise ActionLaunchFailed(argv, f"executable not found: {exc.filename or argv[0]}") from exc
        except PermissionError as exc:
            raise ActionLaunchFailed(argv, f"permission denied: {exc.filename or argv[0]}") from exc
        except OSError as exc:
            raise ActionLaunchFailed(argv, exc.strerror or str(exc)) from exc
        return InvocationResult(
            argv=tuple(argv),
            exit_code=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
            duration_seconds=time.monotonic() - start,
        )
