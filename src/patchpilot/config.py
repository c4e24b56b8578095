"""YAML-backed settings with environment overrides."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

DEFAULT_CONFIG_NAME = "patchpilot.yaml"
CONFIG_SECTION = "patchpilot"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    CONFIG_SECTION: {
        "fuzz_factor": 2,
        "auto_stage": False,
        "mtime_check": True,
        "auto_correct_hunk_headers": True,
        "strict_file_search": False,
        "enable_telemetry": False,
    },
}


class PatchPilotSettings(BaseModel):
    """Defaults applied to every apply invocation."""

    model_config = ConfigDict(extra="forbid")

    fuzz_factor: int = Field(2, ge=0, le=3)
    auto_stage: bool = False
    mtime_check: bool = True
    auto_correct_hunk_headers: bool = True
    strict_file_search: bool = False
    enable_telemetry: bool = False


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return None


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    fuzz = _as_int(env.get("PATCHPILOT_FUZZ_FACTOR"))
    if fuzz is not None:
        overrides["fuzz_factor"] = min(max(fuzz, 0), 3)
    auto_stage = _as_bool(env.get("PATCHPILOT_AUTO_STAGE"))
    if auto_stage is not None:
        overrides["auto_stage"] = auto_stage
    mtime_check = _as_bool(env.get("PATCHPILOT_MTIME_CHECK"))
    if mtime_check is not None:
        overrides["mtime_check"] = mtime_check
    return overrides


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config: {error}") from error
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")
    return data


def load_settings(config_path: Path | None = None, *, env: Mapping[str, str] | None = None) -> PatchPilotSettings:
    """Build settings from ``config_path`` (when it exists) and the environment."""
    section: Mapping[str, Any] = {}
    if config_path is not None and config_path.exists():
        data = load_config(config_path)
        raw_section = data.get(CONFIG_SECTION) or {}
        if not isinstance(raw_section, Mapping):
            raise ConfigError(f"The '{CONFIG_SECTION}' section must be a mapping.")
        section = raw_section

    values = dict(section)
    values.update(_env_overrides(os.environ if env is None else env))
    try:
        return PatchPilotSettings(**values)
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration: {error}") from error


def copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def write_config(config_path: Path, config_data: Mapping[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dict(config_data), handle, sort_keys=False)


__all__ = [
    "CONFIG_SECTION",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "PatchPilotSettings",
    "copy_config_template",
    "load_config",
    "load_settings",
    "write_config",
]
