"""
NodeTasks Configuration

Pydantic-backed configuration loaded from environment variables.
Uses NODETASKS_ prefix for all environment variables.
"""

import os
import threading
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from nodetasks.errors import ConfigError
from nodetasks.toolchain import DEFAULT_WASM_TOOLCHAIN, is_valid_toolchain


class Config(BaseModel):
    """
    Pydantic-backed configuration loaded from environment variables.

    Key env vars:
    - NODETASKS_PROJECT_ROOT (default: .) working directory for every action
    - NODETASKS_CARGO (default: cargo)
    - NODETASKS_INIT_SCRIPT (default: ./scripts/init.sh)
    - NODETASKS_WASM_TOOLCHAIN (default: the pinned nightly revision)
    - NODETASKS_CAPTURE_OUTPUT (default: false) capture and re-emit action output
    - NODETASKS_LOG_LEVEL (default: INFO)
    - NODETASKS_LOG_JSON (default: false)
    """

    project_root: Path = Field(default=Path("."))
    cargo: str = Field(default="cargo")
    init_script: str = Field(default="./scripts/init.sh")
    wasm_toolchain: str = Field(default=DEFAULT_WASM_TOOLCHAIN)
    capture_output: bool = Field(default=False)

    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    model_config = ConfigDict(frozen=True)

    @field_validator("wasm_toolchain")
    @classmethod
    def _validate_toolchain(cls, value: str) -> str:
        value = value.strip()
        if not is_valid_toolchain(value):
            raise ValueError(f"invalid toolchain identifier: {value!r}")
        return value

    @field_validator("cargo", "init_script")
    @classmethod
    def _validate_program(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("program must not be empty")
        return value.strip()


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def load_config() -> Config:
    """
    Load NodeTasks configuration from environment.

    Raises:
        ConfigError: if any value fails validation
    """
    try:
        return Config(
            project_root=Path(os.environ.get("NODETASKS_PROJECT_ROOT", ".")).expanduser(),
            cargo=os.environ.get("NODETASKS_CARGO", "cargo"),
            init_script=os.environ.get("NODETASKS_INIT_SCRIPT", "./scripts/init.sh"),
            wasm_toolchain=os.environ.get("NODETASKS_WASM_TOOLCHAIN") or DEFAULT_WASM_TOOLCHAIN,
            capture_output=_parse_bool(os.environ.get("NODETASKS_CAPTURE_OUTPUT")),
            log_level=os.environ.get("NODETASKS_LOG_LEVEL", "INFO"),
            log_json=_parse_bool(os.environ.get("NODETASKS_LOG_JSON")),
        )
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid NodeTasks configuration: {exc.errors()[0]['msg']}",
            metadata={"errors": [str(err.get("loc")) for err in exc.errors()]},
        ) from exc


# Singleton config instance (lazy loaded)
_config: Optional[Config] = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Get or create the singleton config instance."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_config()
    return _config


def _reset_config_for_tests() -> None:
    """Reset the global config cache (tests only)."""
    global _config
    with _config_lock:
        _config = None
