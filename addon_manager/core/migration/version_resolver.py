"""Detect which stack format an installed add-on uses."""

from pathlib import Path

from ...constants import CURRENT_STACK_VERSION, LEGACY_STACK_VERSION, PENDING_MIGRATION_SUFFIX
from ..legacy.session import normalize_legacy_name
from ..logging_config import get_migration_logger
from ..stack_service import StackService, normalize_project_name

logger = get_migration_logger()


class StackVersionResolver:
    """Resolves the stack-format version of an add-on.

    A stack created by an interrupted migration already carries the current
    label, so a marker file written before migrating keeps it on the legacy
    path until the migration completes.
    """

    def __init__(self, stack_service: StackService, state_directory: Path | str):
        self.stack_service = stack_service
        self.state_directory = Path(state_directory)
        self.logger = logger.bind(component="stack_version_resolver")

    def pending_marker(self, name: str) -> Path:
        return self.state_directory / f"{normalize_project_name(name)}{PENDING_MIGRATION_SUFFIX}"

    def is_pending(self, name: str) -> bool:
        return self.pending_marker(name).exists()

    def mark_pending(self, name: str) -> None:
        marker = self.pending_marker(name)
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.touch()
        self.logger.debug("Marked migration pending", stack=name, marker=str(marker))

    def clear_pending(self, name: str) -> None:
        self.pending_marker(name).unlink(missing_ok=True)

    async def resolve(self, name: str) -> str:
        """Return the stack-format version of ``name``.

        Order: pending marker, current-backend label, legacy containers.
        Nothing deployed at all counts as current.
        """
        if self.is_pending(name):
            self.logger.info("Resuming interrupted migration", stack=name)
            return LEGACY_STACK_VERSION

        version = await self.stack_service.get_stack_version(name)
        if version:
            return version

        legacy_containers = await self.stack_service.list_stack_containers(normalize_legacy_name(name))
        if legacy_containers:
            return LEGACY_STACK_VERSION
        return CURRENT_STACK_VERSION
