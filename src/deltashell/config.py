"""Configuration management for deltashell."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from deltashell.errors import ConfigurationError
from deltashell.types import DEFAULT_SENTINEL

DEFAULT_CONFIG_FILE = ".deltarc.json"
DEFAULT_COLOR = "37"
LOCAL_TARGETS = frozenset({"localhost", "127.0.0.1"})


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="DELTASHELL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Phase configuration
    config_file: str = Field(default=DEFAULT_CONFIG_FILE, description="Phase config file, relative to the workspace")

    # Session configuration
    sentinel: str = Field(default=DEFAULT_SENTINEL, min_length=1, description="End-of-output marker")
    command_timeout: float | None = Field(default=None, gt=0, description="Seconds before a command times out")
    timeout_policy: Literal["abandon", "terminate"] = Field(default="abandon")
    ssh_command: list[str] = Field(default_factory=lambda: ["ssh", "-T"], description="argv prefix for remote phases")

    # Local execution
    local_shell: str = Field(default="bash")
    local_timeout_seconds: float = Field(default=60.0, gt=0)

    # Transformers
    env_setup: str = Field(default="export PATH=/custom/bin:$PATH; ")
    blocked_patterns: list[str] = Field(default_factory=lambda: ["rm -rf"])
    blocked_replacement: str = Field(default="echo 'Command blocked for safety!'")

    # Logging
    log_level: str = Field(default="INFO")

    def resolve_config_path(self, workspace: Path) -> Path:
        path = Path(self.config_file).expanduser()
        if not path.is_absolute():
            path = workspace / path
        return path


class PhaseConfig(BaseModel):
    color: str
    ssh: str

    @property
    def is_local(self) -> bool:
        return self.ssh in LOCAL_TARGETS


class LogicConfig(BaseModel):
    gates: dict[str, str] = Field(default_factory=dict)


class DeltaConfig(BaseModel):
    """Phases and logic gates read from the workspace config file."""

    phases: dict[str, PhaseConfig] = Field(default_factory=dict)
    logic: LogicConfig = Field(default_factory=LogicConfig)

    def targets(self) -> dict[str, str]:
        return {name: phase.ssh for name, phase in self.phases.items()}


def load_settings(workspace: Path) -> Settings:
    """Load settings from the environment and the workspace ``.env`` file."""
    try:
        return Settings(_env_file=workspace / ".env")
    except ValidationError as exc:
        raise ConfigurationError(f"invalid settings: {exc!s}") from exc


def load_config(path: Path) -> DeltaConfig:
    """Read the phase config file.

    A missing file, invalid JSON or a missing ``phases`` object is fatal.
    Individual phases that do not validate are skipped with a warning.
    """
    try:
        raw_text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"missing config file: {path}") from exc
    except OSError as exc:
        raise ConfigurationError(f"cannot read config file {path}: {exc!s}") from exc

    try:
        raw = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"invalid JSON in {path}: {exc.msg}") from exc
    if not isinstance(raw, dict) or not isinstance(raw.get("phases"), dict):
        raise ConfigurationError(f"invalid config {path}: missing 'phases'")

    phases: dict[str, PhaseConfig] = {}
    for name, value in raw["phases"].items():
        phase = _parse_phase(name, value)
        if phase is not None:
            phases[name] = phase

    logic = LogicConfig()
    raw_logic = raw.get("logic")
    if isinstance(raw_logic, dict):
        try:
            logic = LogicConfig.model_validate(raw_logic)
        except ValidationError:
            logger.warning("config.logic.invalid path={}", path)

    return DeltaConfig(phases=phases, logic=logic)


def _parse_phase(name: str, value: Any) -> PhaseConfig | None:
    try:
        return PhaseConfig.model_validate(value)
    except ValidationError:
        logger.warning("config.phase.skipped phase={}", name)
        return None
