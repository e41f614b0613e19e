import os
import signal
import sys
import threading
import time

import pytest

from nodetasks.errors import ActionLaunchFailed
from nodetasks.runner import InvocationResult, SubprocessRunner


def _env(**extra):
    return {**os.environ, **extra}


def test_exit_code_is_returned_verbatim():
    runner = SubprocessRunner()
    result = runner.execute([sys.executable, "-c", "import sys; sys.exit(17)"], _env())
    assert isinstance(result, InvocationResult)
    assert result.exit_code == 17
    assert result.stdout is None
    assert result.duration_seconds >= 0


def test_child_sees_only_the_given_environment():
    runner = SubprocessRunner(capture_output=True)
    script = "import os; print(os.environ.get('WASM_BUILD_TOOLCHAIN', 'unset'))"

    result = runner.execute([sys.executable, "-c", script], _env(WASM_BUILD_TOOLCHAIN="nightly-x"))

    assert result.exit_code == 0
    assert result.stdout.strip() == b"nightly-x"
    assert "WASM_BUILD_TOOLCHAIN" not in os.environ


def test_captured_streams(tmp_path):
    runner = SubprocessRunner(capture_output=True)
    script = "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"

    result = runner.execute([sys.executable, "-c", script], _env(), cwd=tmp_path)

    assert result.exit_code == 3
    assert result.stdout == b"out\n"
    assert result.stderr == b"err\n"


def test_missing_executable_is_a_launch_failure():
    runner = SubprocessRunner()
    with pytest.raises(ActionLaunchFailed) as excinfo:
        runner.execute(["definitely-not-a-real-cargo-binary"], _env())
    assert "could not be started" in str(excinfo.value)
    assert excinfo.value.argv == ("definitely-not-a-real-cargo-binary",)


def test_non_executable_file_is_a_launch_failure(tmp_path):
    script = tmp_path / "init.sh"
    script.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    script.chmod(0o644)

    with pytest.raises(ActionLaunchFailed):
        SubprocessRunner().execute([str(script)], _env())


def test_missing_working_directory_is_reported_as_such(tmp_path):
    missing = tmp_path / "no-such-checkout"
    with pytest.raises(ActionLaunchFailed) as excinfo:
        SubprocessRunner().execute([sys.executable, "-c", "pass"], _env(), cwd=missing)
    assert "working directory does not exist" in str(excinfo.value)
    assert "executable not found" not in str(excinfo.value)
    assert excinfo.value.metadata["reason"].endswith(str(missing))


def test_captured_stdout_keeps_raw_bytes():
    payload = b"\xff\xfe progress\r done\n"
    script = f"import sys; sys.stdout.buffer.write({payload!r}); sys.exit(17)"

    result = SubprocessRunner(capture_output=True).execute([sys.executable, "-c", script], _env())

    assert result.exit_code == 17
    assert result.stdout == payload
    assert result.stderr == b""


def test_carriage_return_progress_is_not_translated():
    payload = b"Compiling 1/2\rCompiling 2/2\r\n"
    script = f"import sys; sys.stderr.buffer.write({payload!r}); sys.stderr.flush()"

    result = SubprocessRunner(capture_output=True).execute([sys.executable, "-c", script], _env())

    assert result.exit_code == 0
    assert result.stderr == payload


CHILD_TRAPS_SIGINT = """
import os, signal, sys, time

marker, ready = sys.argv[1], sys.argv[2]

def on_interrupt(signum, frame):
    time.sleep(0.5)
    open(marker, "w").close()
    sys.exit(0)

signal.signal(signal.SIGINT, on_interrupt)
with open(ready + ".tmp", "w") as fh:
    fh.write(str(os.getpid()))
os.replace(ready + ".tmp", ready)
time.sleep(30)
sys.exit(5)
"""


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
def test_ctrl_c_lets_the_child_decide_the_exit_code(tmp_path):
    marker = tmp_path / "cleaned-up"
    ready = tmp_path / "child.pid"
    received = []

    def interrupt_foreground_group():
        deadline = time.monotonic() + 10
        while not ready.exists() and time.monotonic() < deadline:
            time.sleep(0.02)
        child_pid = int(ready.read_text())
        time.sleep(0.2)
        # A terminal Ctrl-C signals both processes.
        os.kill(os.getpid(), signal.SIGINT)
        os.kill(child_pid, signal.SIGINT)

    previous = signal.signal(signal.SIGINT, lambda signum, frame: received.append(signum))
    try:
        interrupter = threading.Thread(target=interrupt_foreground_group, daemon=True)
        interrupter.start()
        result = SubprocessRunner().execute(
            [sys.executable, "-c", CHILD_TRAPS_SIGINT, str(marker), str(ready)], _env()
        )
        interrupter.join(timeout=10)
        handler_after = signal.getsignal(signal.SIGINT)
    finally:
        installed = signal.signal(signal.SIGINT, previous)

    assert result.exit_code == 0
    assert marker.exists()
    assert received == []
    assert handler_after is installed
