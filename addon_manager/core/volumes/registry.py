"""Persistent volume registry shared by the local volume drivers.

The registry maps a logical volume name to its absolute host path and keeps a
JSON copy of the whole mapping on disk. Every mutation rewrites the file before
returning, so the on-disk and in-memory state agree at each call boundary.
"""

import json
import os
import tempfile
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import structlog

from ...constants import VOLUME_STATE_KEY
from ..exceptions import VolumeExistsError, VolumeRegistryError

logger = structlog.get_logger()


@dataclass(frozen=True)
class VolumeEntry:
    """A registered volume."""

    name: str
    mountpoint: str


class VolumeRegistry:
    """Crash-durable name -> host path mapping for one driver scope."""

    def __init__(self, state_file: Path | str, mountpoint_for: Callable[[str], str]):
        """Rehydrate the registry from its state file.

        Args:
            state_file: JSON file backing this registry
            mountpoint_for: Maps a new volume name to its host path
        """
        self.state_file = Path(state_file)
        self._mountpoint_for = mountpoint_for
        self._lock = threading.Lock()
        self.logger = logger.bind(component="volume_registry", state_file=str(self.state_file))
        self._volumes: dict[str, str] = self._load()
        self.logger.debug("Found volumes on startup", count=len(self._volumes))

    def _load(self) -> dict[str, str]:
        """Read the state file; absence or corruption means no volumes yet."""
        try:
            data = json.loads(self.state_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            self.logger.warning("Ignoring unreadable volume state file", error=str(e))
            return {}

        state = data.get(VOLUME_STATE_KEY) if isinstance(data, dict) else None
        if not isinstance(state, dict):
            self.logger.warning("Ignoring malformed volume state file")
            return {}
        return {str(name): str(path) for name, path in state.items() if path}

    def _save(self) -> None:
        """Atomically replace the state file with the current mapping."""
        payload = json.dumps({VOLUME_STATE_KEY: self._volumes})
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=self.state_file.parent, prefix=f".{self.state_file.name}."
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(temp_path, 0o600)
            os.replace(temp_path, self.state_file)
        except OSError:
            Path(temp_path).unlink(missing_ok=True)
            raise

    def create(self, name: str) -> str:
        """Register a new volume and return its host path.

        Raises:
            VolumeExistsError: If the name is already registered
            VolumeRegistryError: If the state file cannot be written
        """
        with self._lock:
            if name in self._volumes:
                raise VolumeExistsError(f"The volume {name} already exists")

            mountpoint = self._mountpoint_for(name)
            self._volumes[name] = mountpoint
            try:
                self._save()
            except OSError as e:
                del self._volumes[name]
                raise VolumeRegistryError(
                    f"Failed to save volumes state file {self.state_file}: {e}"
                ) from e

        self.logger.debug("Registered volume", volume=name, mountpoint=mountpoint)
        return mountpoint

    def remove(self, name: str) -> str | None:
        """Unregister a volume; unknown names are ignored.

        Returns:
            The host path the volume was registered with, if any
        """
        with self._lock:
            mountpoint = self._volumes.pop(name, None)
            if mountpoint is None:
                self.logger.debug("Volume not registered, nothing to remove", volume=name)
                return None
            try:
                self._save()
            except OSError as e:
                self._volumes[name] = mountpoint
                raise VolumeRegistryError(
                    f"Failed to save volumes state file {self.state_file}: {e}"
                ) from e

        self.logger.debug("Unregistered volume", volume=name)
        return mountpoint

    def get(self, name: str) -> str | None:
        with self._lock:
            return self._volumes.get(name)

    def path_for(self, name: str) -> str:
        """Host path a volume has, or would get if created now."""
        with self._lock:
            return self._volumes.get(name) or self._mountpoint_for(name)

    def list(self) -> list[VolumeEntry]:
        with self._lock:
            return [VolumeEntry(name, path) for name, path in sorted(self._volumes.items())]

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._volumes

    def __len__(self) -> int:
        with self._lock:
            return len(self._volumes)
