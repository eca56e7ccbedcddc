"""
Engine configuration.

Settings come from an optional YAML file and environment variables
(a ``.env`` file in the working directory is honoured through python-dotenv)::

    # candlekeep_stats.yaml
    strict: false
    log_level_unknown_benefit: WARNING
    disabled_benefit_types:
      - ac_bonus

Environment:
    CANDLEKEEP_STATS_CONFIG: path of the YAML file when none is passed explicitly.
    CANDLEKEEP_STATS_STRICT: "1", "true", "yes" or "on" forces strict mode.
"""

import logging
import os
from pathlib import Path

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .diagnostics import StatEngineError

logger = logging.getLogger("candlekeep-stats")

CONFIG_ENV_VAR = "CANDLEKEEP_STATS_CONFIG"
STRICT_ENV_VAR = "CANDLEKEEP_STATS_STRICT"

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(StatEngineError):
    """Raised when the configuration file cannot be read or is invalid."""


class EngineConfig(BaseModel):
    """Runtime settings for ``StatEngine``."""
    strict: bool = Field(
        default=False,
        description="Raise StrictModeError on the first dropped input instead of skipping it",
    )
    log_level_unknown_benefit: str = Field(
        default="WARNING",
        description="Log level for unknown benefit types",
    )
    disabled_benefit_types: list[str] = Field(
        default_factory=list,
        description="Built-in benefit types removed from the engine's registry",
    )

    @field_validator("log_level_unknown_benefit")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level '{value}'")
        return level

    @property
    def unknown_benefit_level(self) -> int:
        return logging.getLevelName(self.log_level_unknown_benefit)


def load_config(path: Path | str | None = None) -> EngineConfig:
    """Load engine settings from YAML and the environment.

    Args:
        path: YAML file to read. Falls back to ``$CANDLEKEEP_STATS_CONFIG``,
            then to defaults.

    Raises:
        ConfigError: The file is missing, unparsable or fails validation.
    """
    load_dotenv(find_dotenv(usecwd=True))

    if path is None and os.getenv(CONFIG_ENV_VAR):
        path = os.getenv(CONFIG_ENV_VAR)

    data: dict = {}
    if path is not None:
        path = Path(path)
        try:
            with open(path) as fh:
                loaded = yaml.safe_load(fh)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        data = loaded
        logger.debug(f"Loaded engine config from {path}")

    strict_env = os.getenv(STRICT_ENV_VAR)
    if strict_env is not None and strict_env.strip().lower() in _TRUTHY:
        data["strict"] = True

    try:
        return EngineConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid engine config: {e}") from e
