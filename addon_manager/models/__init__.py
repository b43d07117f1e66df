"""Data models for the add-on manager."""

from .manifest import (  # noqa: F401
    Environment,
    EnvironmentConfig,
    Manifest,
    SelectItem,
    Service,
    Setting,
    combine_settings_with_values,
    get_volume_names,
)

__all__ = [
    "Environment",
    "EnvironmentConfig",
    "Manifest",
    "SelectItem",
    "Service",
    "Setting",
    "combine_settings_with_values",
    "get_volume_names",
]
