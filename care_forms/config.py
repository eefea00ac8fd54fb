"""Configuration for care-forms.

Settings are resolved with the following precedence (highest first):
- Environment variables (``CARE_FORMS_*``).
- ``config.yaml`` in the config home, or an explicit path.
- Defaults.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"

_ENV_KEYS = {
    "base_url": "CARE_FORMS_BASE_URL",
    "batch_path": "CARE_FORMS_BATCH_PATH",
    "timeout_seconds": "CARE_FORMS_TIMEOUT",
    "registry_path": "CARE_FORMS_REGISTRY",
    "log_level": "CARE_FORMS_LOG_LEVEL",
}


class EngineConfig(BaseModel):
    """Runtime settings of the submission engine."""

    base_url: str = "http://localhost:9000"
    batch_path: str = "/api/v1/batch_requests/"
    timeout_seconds: float = Field(default=30.0, gt=0)
    registry_path: Path | None = None
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"log_level must be a logging level name, got {v!r}")
        return level

    @property
    def batch_url(self) -> str:
        """Absolute URL of the batch endpoint."""
        return f"{self.base_url.rstrip('/')}/{self.batch_path.lstrip('/')}"


def get_config_home() -> Path:
    """Get the care-forms home directory.

    Uses CARE_FORMS_HOME if set, otherwise ~/.config/care-forms.
    """
    env_home = os.environ.get("CARE_FORMS_HOME")
    if env_home:
        return Path(env_home)
    return Path.home() / ".config" / "care-forms"


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def load_config(path: Path | None = None) -> EngineConfig:
    """Load configuration from file and environment.

    Args:
        path: Explicit config file; defaults to config.yaml in the config home.

    Returns:
        The resolved EngineConfig.

    Raises:
        pydantic.ValidationError: If a resolved value is invalid.
    """
    config_path = path if path is not None else get_config_home() / CONFIG_FILENAME
    values = _read_yaml(config_path)

    for field_name, env_key in _ENV_KEYS.items():
        env_value = os.environ.get(env_key)
        if env_value:
            values[field_name] = env_value

    try:
        return EngineConfig.model_validate(values)
    except ValidationError as e:
        logger.error("Invalid configuration from %s: %s", config_path, e)
        raise


def write_config(config: EngineConfig, path: Path | None = None) -> Path:
    """Write a config.yaml, creating the config home when needed."""
    config_path = path if path is not None else get_config_home() / CONFIG_FILENAME
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.dump(config.model_dump(mode="json", exclude_none=True), f, sort_keys=False)
    return config_path
