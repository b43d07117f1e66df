"""Move volume content from a legacy mount to a current mount."""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path

from ..exceptions import VolumeMigrationError
from ..logging_config import get_migration_logger

logger = get_migration_logger()

# Length of the random part tempfile.mkdtemp appends to the prefix
_STAGING_SUFFIX_LENGTH = 8
_READY_SUFFIX = ".ready"
_MOVED_SUFFIX = ".moved"


def ready_marker(staging: Path | str) -> Path:
    staging = Path(staging)
    return staging.with_name(f"{staging.name}{_READY_SUFFIX}")


def touch(path: Path | str) -> None:
    Path(path).touch()


def remove_content_of(directory: Path | str) -> None:
    """Delete everything inside ``directory`` but keep the directory itself."""
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                shutil.rmtree(entry.path)
            else:
                os.unlink(entry.path)


def copy_content(source: Path | str, destination: Path | str) -> None:
    """Copy the content of ``source`` into the existing ``destination``.

    Symlinks are copied as links; permission bits and timestamps are kept.
    Ownership is kept too when running as root.
    """
    shutil.copytree(source, destination, symlinks=True, dirs_exist_ok=True)
    if os.geteuid() == 0:
        _copy_ownership(Path(source), Path(destination))


def _copy_ownership(source: Path, destination: Path) -> None:
    for root, dirs, files in os.walk(source):
        relative = Path(root).relative_to(source)
        for name in dirs + files:
            stat = os.lstat(Path(root) / name)
            os.chown(destination / relative / name, stat.st_uid, stat.st_gid, follow_symlinks=False)


class VolumeMigrator:
    """Copies volume content through a staging directory in the cache directory.

    Once the staging copy is complete it is marked ready. A run interrupted
    after that point is finished by the next run from the ready copy, since the
    legacy content may already be gone. A finished move leaves a moved marker
    so a later run over the emptied legacy mount does not touch the data.
    """

    def __init__(self, cache_directory: Path | str):
        self.cache_directory = Path(cache_directory)
        self.logger = logger.bind(component="volume_migrator")

    async def migrate_volume(self, legacy_mount: str, current_mount: str, staging_prefix: str) -> None:
        """Replace the content of ``current_mount`` with the content of ``legacy_mount``.

        The legacy mount is left empty. A volume already moved by an earlier
        run is left as it is.

        Raises:
            VolumeMigrationError: Naming the step that failed
        """
        self.logger.info(
            "Migrating volume content", legacy_mount=legacy_mount, current_mount=current_mount
        )

        if await asyncio.to_thread(self.is_moved, staging_prefix):
            self.logger.info("Volume already migrated, keeping current content", current_mount=current_mount)
            await self._step("remove staging directory", self._discard_staging, staging_prefix)
            return

        staging = await asyncio.to_thread(self.find_ready_staging, staging_prefix)
        if staging is not None:
            self.logger.warning("Resuming interrupted volume migration", staging=staging)
        else:
            staging = await self._create_staging(staging_prefix)
            await self._step("copy to staging", copy_content, legacy_mount, staging)
            await self._step("mark staging ready", touch, str(ready_marker(staging)))

        await self._step("remove legacy content", remove_content_of, legacy_mount)
        await self._step("remove current content", remove_content_of, current_mount)
        await self._step("copy to current mount", copy_content, staging, current_mount)
        await self._step("mark volume moved", touch, str(self.moved_marker(staging_prefix)))
        await self._step("remove staging directory", self._discard_staging, staging_prefix)

        self.logger.info("Migrated volume content", current_mount=current_mount)

    def moved_marker(self, staging_prefix: str) -> Path:
        return self.cache_directory / f"{staging_prefix}{_MOVED_SUFFIX}"

    def is_moved(self, staging_prefix: str) -> bool:
        return self.moved_marker(staging_prefix).exists()

    def _staging_candidates(self, staging_prefix: str) -> list[Path]:
        prefix = f"{staging_prefix}_"
        try:
            return [
                path
                for path in self.cache_directory.iterdir()
                if path.is_dir()
                and path.name.startswith(prefix)
                and len(path.name) == len(prefix) + _STAGING_SUFFIX_LENGTH
            ]
        except FileNotFoundError:
            return []

    def find_ready_staging(self, staging_prefix: str) -> str | None:
        """Newest complete staging copy an earlier run left for this volume."""
        ready = [path for path in self._staging_candidates(staging_prefix) if ready_marker(path).exists()]
        if not ready:
            return None
        return str(max(ready, key=lambda path: path.stat().st_mtime))

    def _discard_staging(self, staging_prefix: str) -> None:
        """Remove every staging directory of the volume, complete or partial."""
        for path in self._staging_candidates(staging_prefix):
            ready_marker(path).unlink(missing_ok=True)
            shutil.rmtree(path)

    async def _create_staging(self, staging_prefix: str) -> str:
        try:
            await asyncio.to_thread(self.cache_directory.mkdir, parents=True, exist_ok=True)
            return await asyncio.to_thread(
                tempfile.mkdtemp, prefix=f"{staging_prefix}_", dir=self.cache_directory
            )
        except OSError as e:
            raise VolumeMigrationError(
                "create staging directory", str(self.cache_directory), None, str(e)
            ) from e

    async def _step(self, step: str, operation, source: str, destination: str | None = None) -> None:
        args = (source,) if destination is None else (source, destination)
        try:
            await asyncio.to_thread(operation, *args)
        except OSError as e:
            raise VolumeMigrationError(step, source, destination, str(e)) from e
        self.logger.debug("Volume migration step done", step=step, source=source, destination=destination)
