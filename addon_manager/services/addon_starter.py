"""
Add-on Start-up Service

Brings an installed add-on to the current stack format, then starts it.
"""

from functools import partial

import structlog

from ..constants import CURRENT_STACK_VERSION, LEGACY_STACK_VERSION
from ..core.exceptions import UnknownStackVersionError
from ..core.legacy.session import connect, normalize_legacy_name
from ..core.migration import StackMigrator, StackVersionResolver, VolumeMigrator
from ..core.settings import AddonManagerSettings
from ..core.stack_service import StackService, create_docker_client, normalize_project_name
from ..models.manifest import Manifest, Setting, combine_settings_with_values
from .environment_resolver import EnvironmentResolver


class AddonStarter:
    """Start-up routine of an add-on: resolve version, migrate if needed, start."""

    def __init__(
        self,
        stack_service: StackService,
        migrator: StackMigrator,
        version_resolver: StackVersionResolver,
        environment_resolver: EnvironmentResolver | None = None,
    ):
        self.stack_service = stack_service
        self.migrator = migrator
        self.version_resolver = version_resolver
        self.environment_resolver = environment_resolver or EnvironmentResolver(stack_service)
        self.logger = structlog.get_logger().bind(component="addon_starter")

    @classmethod
    def from_settings(cls, settings: AddonManagerSettings) -> "AddonStarter":
        """Wire the start-up routine against the local engine and legacy service."""
        stack_service = StackService(create_docker_client(settings), settings)
        migrator = StackMigrator(
            stack_service,
            partial(connect, settings),
            VolumeMigrator(settings.cache_directory),
        )
        return cls(stack_service, migrator, StackVersionResolver(stack_service, settings.state_directory))

    async def start_addon(self, name: str, manifest: Manifest) -> None:
        """Migrate the add-on stack to the current format if needed and start it."""
        version = await self.version_resolver.resolve(name)
        if version != CURRENT_STACK_VERSION:
            await self._migrate(name, version, manifest)

        await self.stack_service.start_stack(name)
        self.logger.info("Add-on started", addon=name, title=manifest.title)

    async def _migrate(self, name: str, version: str, manifest: Manifest) -> None:
        # Only a legacy migration may leave a pending marker behind
        if version != LEGACY_STACK_VERSION:
            raise UnknownStackVersionError(version)

        settings = await self._capture_settings(name, manifest)
        self.version_resolver.mark_pending(name)
        await self.migrator.migrate_stack(name, version, manifest, *settings)
        self.version_resolver.clear_pending(name)

    async def _capture_settings(self, name: str, manifest: Manifest) -> list[Setting]:
        manifest_settings = manifest.environment_settings()
        if not manifest_settings:
            return []

        # An interrupted migration may have removed the legacy containers already
        for project in (normalize_legacy_name(name), normalize_project_name(name)):
            values = await self.environment_resolver.resolve(project)
            if values:
                self.logger.debug("Captured add-on settings", addon=name, project=project)
                return combine_settings_with_values(manifest_settings, values)
        return []
