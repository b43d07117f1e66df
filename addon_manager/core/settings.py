"""Runtime settings for the add-on manager.

Provides centralized directory, legacy control plane and timeout configuration
using Pydantic BaseSettings with environment variable support.
"""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AddonManagerSettings(BaseSettings):
    """Add-on manager configuration."""

    # Directories (systemd provides STATE_DIRECTORY / CACHE_DIRECTORY)
    state_directory: Path = Field(
        Path("/var/lib/uc-aom"), alias="STATE_DIRECTORY", description="Persistent state directory"
    )
    cache_directory: Path = Field(
        Path("/var/cache/uc-aom"), alias="CACHE_DIRECTORY", description="Scratch cache directory"
    )
    public_volumes_path: Path | None = Field(
        None, alias="PUBLIC_VOLUMES_PATH", description="Root of the public volumes"
    )
    stacks_directory: Path | None = Field(
        None, alias="STACKS_DIRECTORY", description="Where rendered compose files are kept"
    )

    # Legacy control plane
    legacy_service_uri: str = Field(
        "portainer-service:9000", alias="PORTAINER_CE_URI", description="Legacy service host:port"
    )
    legacy_credentials_path: Path = Field(
        Path("/var/lib/portainer-ce/portainer.env"),
        alias="PORTAINER_CE_ENV_FILEPATH",
        description="KEY=VALUE file holding the local administrator credentials",
    )
    legacy_endpoint_id: int = Field(1, alias="PORTAINER_ENDPOINT_ID")
    legacy_token_refresh_window: float = Field(
        30 * 60,
        alias="LEGACY_TOKEN_REFRESH_WINDOW",
        description="Re-authenticate when the token expires within this many seconds",
    )
    legacy_status_retries: int = Field(5, alias="LEGACY_STATUS_RETRIES", ge=1)
    legacy_status_retry_delay: float = Field(3.0, alias="LEGACY_STATUS_RETRY_DELAY", ge=0)
    # Stack removal on a small device can take a very long time.
    legacy_request_timeout: float = Field(60 * 60, alias="LEGACY_REQUEST_TIMEOUT", gt=0)
    legacy_auth_timeout: float = Field(30, alias="LEGACY_AUTH_TIMEOUT", gt=0)

    # Container runtime
    docker_client_timeout: int = Field(
        30, alias="DOCKER_CLIENT_TIMEOUT", description="Docker SDK client timeout in seconds"
    )
    docker_cli_timeout: int = Field(
        600, alias="DOCKER_CLI_TIMEOUT", description="docker compose command timeout in seconds"
    )

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_dir: Path | None = Field(None, alias="LOG_DIR")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    @model_validator(mode="after")
    def _derive_directories(self) -> "AddonManagerSettings":
        if self.public_volumes_path is None:
            self.public_volumes_path = self.state_directory / "volumes-public"
        if self.stacks_directory is None:
            self.stacks_directory = self.state_directory / "stacks"
        if self.log_dir is None:
            self.log_dir = self.state_directory / "logs"
        return self

    def volume_state_file(self, driver_name: str) -> Path:
        """Registry file for the given volume driver scope."""
        return self.state_directory / f"{driver_name}.json"

    @property
    def legacy_base_url(self) -> str:
        uri = self.legacy_service_uri
        if not uri.startswith(("http://", "https://")):
            uri = f"http://{uri}"
        return uri.rstrip("/")
