"""Migrate an installed add-on stack from the legacy backend to compose."""

from collections.abc import Awaitable, Callable

from ...constants import CURRENT_STACK_VERSION, LEGACY_STACK_VERSION
from ...models.manifest import Manifest, Setting, get_volume_names
from ..compose_renderer import render_compose
from ..exceptions import (
    LegacyStackNotFoundError,
    RemoteSessionError,
    StackServiceError,
    UnknownStackVersionError,
)
from ..legacy.session import RemoteSession, normalize_legacy_name
from ..logging_config import get_migration_logger
from ..stack_service import StackService, normalize_project_name
from .volume_migrator import VolumeMigrator

logger = get_migration_logger()


def create_stack_scoped_volume_name(normalized_stack_name: str, volume_name: str) -> str:
    return f"{normalized_stack_name}_{volume_name}"


class StackMigrator:
    """Moves a stack, its volume data and its settings to the current backend.

    The migration never starts the stack. A failed migration is recovered by
    running it again: every step tolerates having already been done.
    """

    def __init__(
        self,
        stack_service: StackService,
        connect_session: Callable[[], Awaitable[RemoteSession]],
        volume_migrator: VolumeMigrator,
    ):
        """
        Args:
            stack_service: Current-backend stack operations
            connect_session: Opens an authenticated legacy session
            volume_migrator: Moves volume content between mounts
        """
        self.stack_service = stack_service
        self.connect_session = connect_session
        self.volume_migrator = volume_migrator
        self.logger = logger.bind(component="stack_migrator")

    async def migrate_stack(
        self, name: str, detected_version: str, manifest: Manifest, *settings: Setting
    ) -> None:
        """Bring the stack ``name`` from ``detected_version`` to the current format.

        Raises:
            UnknownStackVersionError: If no migration path exists for the version
            RemoteSessionError: If the legacy service is unreachable or rejects us
            VolumeMigrationError: If volume content could not be moved
            StackServiceError: If the compose backend failed
        """
        if detected_version == CURRENT_STACK_VERSION:
            self.logger.debug("Stack already current", stack=name, version=detected_version)
            return
        if detected_version != LEGACY_STACK_VERSION:
            raise UnknownStackVersionError(detected_version)

        self.logger.info(
            "Migrating stack",
            stack=name,
            from_version=detected_version,
            to_version=CURRENT_STACK_VERSION,
        )
        session = await self.connect_session()
        try:
            await self._migrate_legacy_stack(session, name, manifest, list(settings))
        finally:
            await self._close_session(session)

        self.logger.info("Migrated stack", stack=name, version=CURRENT_STACK_VERSION)

    async def _migrate_legacy_stack(
        self, session: RemoteSession, name: str, manifest: Manifest, settings: list[Setting]
    ) -> None:
        try:
            await session.delete_stack(name)
        except LegacyStackNotFoundError:
            self.logger.info("Legacy stack record already gone", stack=name)

        if settings:
            manifest = manifest.with_environment_settings(settings)

        await self.stack_service.create_stack_without_start(name, render_compose(manifest))

        legacy_name = normalize_legacy_name(name)
        current_name = normalize_project_name(name)
        volume_names = get_volume_names(manifest.environments)
        for volume_name in volume_names:
            legacy_volume = create_stack_scoped_volume_name(legacy_name, volume_name)
            current_volume = create_stack_scoped_volume_name(current_name, volume_name)
            if legacy_volume == current_volume:
                self.logger.debug("Volume keeps its name, nothing to move", volume=current_volume)
                continue

            legacy_mount = await self.stack_service.volume_inspect(legacy_volume)
            if legacy_mount is None:
                self.logger.info("Legacy volume already removed", volume=legacy_volume)
                continue
            current_mount = await self.stack_service.volume_inspect(current_volume)
            if current_mount is None:
                raise StackServiceError(f"Volume {current_volume} was not created")
            await self.volume_migrator.migrate_volume(legacy_mount, current_mount, current_volume)

        if legacy_name != current_name:
            await self.stack_service.remove_unused_volumes(legacy_name, *volume_names)

    async def _close_session(self, session: RemoteSession) -> None:
        try:
            await session.logout()
        except RemoteSessionError as e:
            self.logger.warning("Logout from legacy service failed", error=str(e))
        finally:
            await session.close()
