"""Local volume drivers backed by a persistent volume registry.

Both drivers answer the docker volume plugin operations (Get, List, Create,
Remove, Mount, Path, Unmount, Capabilities) with plugin-shaped dictionaries.
Serving them over the plugin socket is left to the hosting process.
"""

import os
import shutil
from pathlib import Path
from typing import Any

import structlog

from ...constants import LOCAL_PUBLIC_ACCESS_VOLUME_DRIVER, LOCAL_PUBLIC_VOLUME_DRIVER
from ..exceptions import VolumeNotFoundError
from ..settings import AddonManagerSettings
from .registry import VolumeRegistry

logger = structlog.get_logger()


def change_owner(path: Path | str, uid: int | None, gid: int | None) -> None:
    if uid is None and gid is None:
        return
    os.chown(path, -1 if uid is None else uid, -1 if gid is None else gid)


class LocalVolumeDriver:
    """Plugin operations shared by the local drivers."""

    name = ""

    def __init__(
        self,
        state_file: Path | str,
        volumes_directory: Path | str,
        owner_uid: int | None = None,
        owner_gid: int | None = None,
    ):
        self.volumes_directory = Path(volumes_directory)
        self.owner_uid = owner_uid
        self.owner_gid = owner_gid
        self.logger = logger.bind(component="volume_driver", driver=self.name)

        self.logger.debug("Starting driver...")
        self.volumes_directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        change_owner(self.volumes_directory, owner_uid, owner_gid)

        self.registry = VolumeRegistry(state_file, self._mountpoint_for)

    @classmethod
    def from_settings(
        cls,
        settings: AddonManagerSettings,
        owner_uid: int | None = None,
        owner_gid: int | None = None,
    ) -> "LocalVolumeDriver":
        """Driver keeping its registry in the state directory, serving the public volumes root."""
        return cls(
            settings.volume_state_file(cls.name),
            settings.public_volumes_path,
            owner_uid=owner_uid,
            owner_gid=owner_gid,
        )

    def _mountpoint_for(self, name: str) -> str:
        raise NotImplementedError

    def get(self, name: str) -> dict[str, Any]:
        mountpoint = self.registry.get(name)
        if mountpoint is None:
            self.logger.debug("Couldn't find volume", volume=name)
            raise VolumeNotFoundError(f"No volume found with the name {name}")
        return {"Volume": {"Name": name, "Mountpoint": mountpoint}}

    def list(self) -> dict[str, Any]:
        volumes = [
            {"Name": entry.name, "Mountpoint": entry.mountpoint}
            for entry in self.registry.list()
        ]
        self.logger.debug("List called", count=len(volumes))
        return {"Volumes": volumes}

    def create(self, name: str, options: dict[str, str] | None = None) -> None:
        self.registry.create(name)

    def remove(self, name: str) -> None:
        self.registry.remove(name)

    def mount(self, name: str, mount_id: str = "") -> dict[str, str]:
        self.logger.debug("Mount called", volume=name, mount_id=mount_id)
        return {"Mountpoint": self.registry.get(name) or ""}

    def path(self, name: str) -> dict[str, str]:
        return {"Mountpoint": self.registry.get(name) or ""}

    def unmount(self, name: str, mount_id: str = "") -> None:
        self.logger.debug("Unmount called", volume=name, mount_id=mount_id)

    def capabilities(self) -> dict[str, Any]:
        return {"Capabilities": {"Scope": "local"}}


class LocalPublicVolumeDriver(LocalVolumeDriver):
    """One owned directory per volume below the public volumes root."""

    name = LOCAL_PUBLIC_VOLUME_DRIVER

    def _mountpoint_for(self, name: str) -> str:
        return str(self.volumes_directory / name)

    def create(self, name: str, options: dict[str, str] | None = None) -> None:
        mountpoint = self.registry.create(name)
        try:
            Path(mountpoint).mkdir(mode=0o755, parents=True, exist_ok=True)
            change_owner(mountpoint, self.owner_uid, self.owner_gid)
        except OSError:
            self.logger.error("Could not prepare volume directory", mountpoint=mountpoint)
            self.registry.remove(name)
            raise
        self.logger.debug("Created volume", volume=name, mountpoint=mountpoint)

    def remove(self, name: str) -> None:
        mountpoint = self.registry.remove(name)
        if mountpoint is None:
            return
        # The volume is already unregistered; a leftover directory is harmless.
        try:
            shutil.rmtree(mountpoint)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.error("Failed to remove volume directory", mountpoint=mountpoint, error=str(e))
        self.logger.debug("Removed volume", volume=name)


class LocalPublicAccessVolumeDriver(LocalVolumeDriver):
    """Every volume exposes the whole public volumes root; nothing is deleted."""

    name = LOCAL_PUBLIC_ACCESS_VOLUME_DRIVER

    def _mountpoint_for(self, name: str) -> str:
        return str(self.volumes_directory)
