"""
Spawny Config Loader - Settings from YAML file, environment and CLI flags
"""
import os
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from spawny.errors import ConfigError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Environment variable -> settings field
ENV_VARS = {
    "SPAWNY_GRACE_PERIOD": "grace_period",
    "SPAWNY_KILL_TIMEOUT": "kill_timeout",
    "SPAWNY_LOG_LEVEL": "log_level",
    "SPAWNY_SUMMARY": "summary",
}


class Settings(BaseModel):
    """Runtime settings for a spawny run"""
    model_config = ConfigDict(extra="forbid")

    grace_period: float = Field(default=5.0, gt=0, le=3600,
                                description="Seconds between SIGTERM and SIGKILL")
    kill_timeout: float = Field(default=5.0, gt=0, le=3600,
                                description="Seconds to wait for a child after SIGKILL")
    log_level: str = Field(default="INFO")
    summary: bool = Field(default=False, description="Print a summary table after the run")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = str(v).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level


def load_config_file(path: str) -> Dict[str, Any]:
    """
    Load settings YAML file

    Args:
        path: Path to YAML file

    Returns:
        Parsed settings dict (empty for an empty file)
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Collect settings from SPAWNY_* environment variables"""
    environ = os.environ if environ is None else environ
    return {field: environ[var] for var, field in ENV_VARS.items() if environ.get(var)}


def load_settings(
    path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None
) -> Settings:
    """
    Resolve settings: defaults < YAML file < environment < overrides.

    Args:
        path: Optional YAML file; falls back to $SPAWNY_CONFIG
        overrides: Values from CLI flags (None values are ignored)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated Settings
    """
    environ = os.environ if environ is None else environ
    path = path or environ.get("SPAWNY_CONFIG")

    values: Dict[str, Any] = {}
    if path:
        values.update(load_config_file(path))
    values.update(env_overrides(environ))
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return Settings.model_validate(values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"invalid settings: {problems}")
