"""Core exceptions for add-on manager operations."""


class AddonManagerError(Exception):
    """Base exception for add-on manager operations."""


class ConfigurationError(AddonManagerError):
    """Configuration validation or loading failed."""


class StackServiceError(AddonManagerError):
    """Compose engine or container runtime operation failed."""


class RemoteSessionError(AddonManagerError):
    """Communication with the legacy control plane failed."""


class LegacyServiceUnavailableError(RemoteSessionError):
    """Legacy control plane did not answer the liveness probe."""


class LegacyAuthenticationError(RemoteSessionError):
    """Authentication against the legacy control plane failed."""


class CredentialsError(RemoteSessionError):
    """Administrator credentials for the legacy control plane are unusable."""


class LegacyStackNotFoundError(RemoteSessionError):
    """No legacy stack record matches the requested name."""

    def __init__(self, stack_name: str):
        super().__init__(f"Legacy stack '{stack_name}' not found")
        self.stack_name = stack_name


class MigrationError(AddonManagerError):
    """Migration operation failed."""


class UnknownStackVersionError(MigrationError):
    """No migration path exists for the detected stack-format version."""

    def __init__(self, version: str):
        super().__init__(f"Stack version {version} is unknown")
        self.version = version


class VolumeMigrationError(MigrationError):
    """Moving volume content between backends failed."""

    def __init__(self, step: str, source: str, destination: str | None, reason: str):
        target = f" to {destination}" if destination else ""
        super().__init__(f"Volume migration step '{step}' failed for {source}{target}: {reason}")
        self.step = step
        self.source = source
        self.destination = destination


class VolumeRegistryError(AddonManagerError):
    """Volume registry operation failed."""


class VolumeExistsError(VolumeRegistryError):
    """A volume with the same name is already registered."""


class VolumeNotFoundError(VolumeRegistryError):
    """No volume is registered under the requested name."""
