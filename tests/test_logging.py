import json
import logging

from nodetasks.logging import ContextFilter, JsonFormatter, log_context, log_extra


def _record(msg="hello", **extra):
    record = logging.LogRecord(
        name="nodetasks.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_log_extra_drops_none():
    assert log_extra(task="build", exit_code=None, argv=["cargo"]) == {"task": "build", "argv": ["cargo"]}


def test_filter_applies_defaults():
    record = _record()
    assert ContextFilter().filter(record)
    assert record.run_id == "-"
    assert record.task == "-"


def test_filter_copies_context_fields():
    record = _record()
    with log_context(run_id="abc123", task="check"):
        ContextFilter().filter(record)
    assert record.run_id == "abc123"
    assert record.task == "check"


def test_context_is_restored():
    with log_context(task="run"):
        pass
    record = _record()
    ContextFilter().filter(record)
    assert record.task == "-"


def test_json_formatter_redacts_secrets():
    record = _record(task="build", api_token="s3cr3t", wasm_toolchain="nightly-2020-10-05")
    ContextFilter().filter(record)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "hello"
    assert payload["task"] == "build"
    assert payload["api_token"] == "[REDACTED]"
    assert payload["wasm_toolchain"] == "nightly-2020-10-05"
