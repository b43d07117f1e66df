"""Configuration loading for the add-on manager."""

import os
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ..constants import ENV_ADDON_MANAGER_CONFIG
from .exceptions import ConfigurationError
from .settings import AddonManagerSettings

logger = structlog.get_logger()


def load_config(config_path: str | Path | None = None) -> AddonManagerSettings:
    """Load configuration from multiple sources.

    Priority (lowest to highest): field defaults, YAML config file,
    ``.env`` file and process environment.

    Args:
        config_path: Optional path to a YAML config file. Defaults to the
            ``ADDON_MANAGER_CONFIG`` environment variable.

    Returns:
        Loaded settings

    Raises:
        ConfigurationError: If the YAML file or a value is invalid
    """
    load_dotenv()

    path_value = config_path or os.getenv(ENV_ADDON_MANAGER_CONFIG)
    yaml_config = _load_yaml_config(Path(path_value)) if path_value else {}

    try:
        # Init kwargs win over the environment in pydantic-settings, so only
        # pass YAML keys that are not overridden by an environment variable.
        overrides = {
            key: value
            for key, value in yaml_config.items()
            if not _has_env_override(key)
        }
        config = AddonManagerSettings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid add-on manager configuration: {e}") from e

    logger.debug(
        "Configuration loaded",
        config_file=str(path_value) if path_value else None,
        state_directory=str(config.state_directory),
        cache_directory=str(config.cache_directory),
        legacy_service_uri=config.legacy_service_uri,
    )
    return config


def _has_env_override(key: str) -> bool:
    field = AddonManagerSettings.model_fields.get(key)
    if field is None or field.alias is None:
        return False
    return field.alias in os.environ


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    if not config_path.exists():
        logger.debug("Config file not found, using defaults", config_file=str(config_path))
        return {}

    try:
        loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e

    # yaml.safe_load can return None, str, list, etc.
    if not isinstance(loaded, dict):
        return {}
    return loaded
