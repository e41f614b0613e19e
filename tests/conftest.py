import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

# Ensure repository root is on sys.path so the in-tree package imports cleanly.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nodetasks.commands import _reset_registry_for_tests  # noqa: E402
from nodetasks.config import _reset_config_for_tests  # noqa: E402
from nodetasks.runner import InvocationResult  # noqa: E402
from nodetasks.toolchain import _reset_selection_for_tests  # noqa: E402


class FakeRunner:
    """Runner double that records every call instead of spawning processes."""

    def __init__(
        self,
        exit_code: int = 0,
        stdout: Optional[bytes] = None,
        stderr: Optional[bytes] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def execute(
        self,
        argv: Sequence[str],
        env: Mapping[str, str],
        *,
        cwd: Optional[Path] = None,
    ) -> InvocationResult:
        self.calls.append({"argv": list(argv), "env": dict(env), "cwd": cwd})
        if self.error is not None:
            raise self.error
        return InvocationResult(
            argv=tuple(argv),
            exit_code=self.exit_code,
            stdout=self.stdout,
            stderr=self.stderr,
        )

    @property
    def last_env(self) -> Dict[str, str]:
        return self.calls[-1]["env"]


def _reset_all() -> None:
    _reset_registry_for_tests()
    _reset_selection_for_tests()
    _reset_config_for_tests()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch):
    """Drop NodeTasks and wasm build variables so every test starts from defaults."""
    for key in list(os.environ):
        if key.startswith("NODETASKS_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("SKIP_WASM_BUILD", raising=False)
    monkeypatch.delenv("WASM_BUILD_TOOLCHAIN", raising=False)
    _reset_all()
    yield
    _reset_all()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
