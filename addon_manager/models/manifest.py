"""Add-on manifest data models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..constants import ENVIRONMENT_VARIABLES_GROUP


class ManifestModel(BaseModel):
    """Base model for manifest parts: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def model_dump(self, **kwargs) -> dict[str, Any]:
        """Convert to dict with aliases and without unset optionals by default."""
        kwargs.setdefault("by_alias", True)
        kwargs.setdefault("exclude_none", True)
        return super().model_dump(**kwargs)


class SelectItem(ManifestModel):
    """A drop-down entry of a setting."""

    label: str = ""
    value: str = ""
    selected: bool = Field(default=False, alias="default")


class Setting(ManifestModel):
    """A user-supplied configuration value (text box or drop-down list)."""

    name: str
    label: str = ""
    value: str = Field(default="", alias="default")
    required: bool = False
    pattern: str | None = None
    select: list[SelectItem] | None = None

    def is_text_box(self) -> bool:
        return not self.select

    def select_value(self, value: str) -> None:
        """Select the item with the same value, deselect the others."""
        for item in self.select or []:
            item.selected = item.value == value

    def effective_value(self) -> str | None:
        """Value this setting contributes to the stack environment."""
        if self.is_text_box():
            return self.value
        for item in self.select or []:
            if item.selected:
                return item.value
        return None


class Service(ManifestModel):
    """A service of the add-on, rendered into the compose definition."""

    type: str
    config: dict[str, Any] = Field(default_factory=dict)


class EnvironmentConfig(ManifestModel):
    volumes: dict[str, dict[str, Any] | None] = Field(default_factory=dict)
    networks: dict[str, dict[str, Any] | None] = Field(default_factory=dict)


class Environment(ManifestModel):
    """A deployable unit declaring the volumes and networks of the add-on."""

    type: str
    config: EnvironmentConfig = Field(default_factory=EnvironmentConfig)


class Manifest(ManifestModel):
    """Declarative description of an add-on."""

    manifest_version: str = Field(default="", alias="manifestVersion")
    version: str = ""
    title: str = ""
    description: str = ""
    logo: str | None = None
    services: dict[str, Service] = Field(default_factory=dict)
    environments: dict[str, Environment] = Field(default_factory=dict)
    settings: dict[str, list[Setting]] | None = None
    publish: dict[str, Any] | None = None
    vendor: dict[str, Any] | None = None
    features: list[dict[str, Any]] | None = None
    platform: list[str] | None = None

    @classmethod
    def from_json(cls, content: str | bytes) -> "Manifest":
        return cls.model_validate_json(content)

    def environment_settings(self) -> list[Setting]:
        return list((self.settings or {}).get(ENVIRONMENT_VARIABLES_GROUP, []))

    def with_environment_settings(self, settings: list[Setting]) -> "Manifest":
        """Return a copy whose environment variable settings are overridden.

        Settings replace manifest entries with the same name; unknown names are
        appended. The original manifest is left untouched.
        """
        merged = self.model_copy(deep=True)
        if merged.settings is None:
            merged.settings = {}

        group = merged.settings.get(ENVIRONMENT_VARIABLES_GROUP, [])
        positions = {setting.name: index for index, setting in enumerate(group)}
        for setting in settings:
            override = setting.model_copy(deep=True)
            if setting.name in positions:
                group[positions[setting.name]] = override
            else:
                positions[setting.name] = len(group)
                group.append(override)

        merged.settings[ENVIRONMENT_VARIABLES_GROUP] = group
        return merged


def effective_volume_name(key: str, options: dict[str, Any] | None) -> str:
    """A declared volume's name is its ``name`` option if set, else its key."""
    if options and isinstance(options.get("name"), str):
        return options["name"]
    return key


def get_volume_names(environments: dict[str, Environment]) -> list[str]:
    """Return every volume name declared by the environments."""
    volume_names: list[str] = []
    for environment in environments.values():
        for key, options in environment.config.volumes.items():
            volume_names.append(effective_volume_name(key, options))
    return volume_names


def combine_settings_with_values(settings: list[Setting], values: dict[str, str]) -> list[Setting]:
    """Apply captured values to copies of the manifest settings.

    Text boxes take the value verbatim; drop-downs select the matching item.
    Settings without a captured value keep their manifest default.
    """
    combined = [setting.model_copy(deep=True) for setting in settings]
    for setting in combined:
        if setting.name not in values:
            continue
        if setting.is_text_box():
            setting.value = values[setting.name]
        else:
            setting.select_value(values[setting.name])
    return combined
