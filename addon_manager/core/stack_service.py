"""Stack operations on the local compose backend."""

import asyncio
import re
import shutil
import subprocess
from pathlib import Path
from typing import Any

import docker
import docker.errors
import structlog
import yaml

from ..constants import (
    COMPOSE_FILENAME,
    CURRENT_STACK_VERSION,
    DOCKER_COMPOSE_PROJECT,
    PRODUCT_VERSION,
    PRODUCT_VERSION_LABEL,
    STACK_VERSION_LABEL,
)
from .exceptions import StackServiceError
from .settings import AddonManagerSettings

logger = structlog.get_logger()

_INVALID_PROJECT_CHARACTERS = re.compile(r"[^a-z0-9_-]+")


def normalize_project_name(name: str) -> str:
    """Compose project name: lower-case, only ``[a-z0-9_-]``, no leading ``_``/``-``."""
    return _INVALID_PROJECT_CHARACTERS.sub("", name.lower()).lstrip("_-")


def create_docker_client(settings: AddonManagerSettings) -> docker.DockerClient:
    """Docker SDK client for the local engine."""
    try:
        return docker.from_env(timeout=settings.docker_client_timeout)
    except docker.errors.DockerException as e:
        raise StackServiceError(f"Failed to connect to the container runtime: {e}") from e


def add_version_labels(compose_yaml: str) -> str:
    """Label every service, volume and network the stack owns with the versions."""
    try:
        compose = yaml.safe_load(compose_yaml) or {}
    except yaml.YAMLError as e:
        raise StackServiceError(f"Invalid compose definition: {e}") from e

    labels = {
        PRODUCT_VERSION_LABEL: PRODUCT_VERSION,
        STACK_VERSION_LABEL: CURRENT_STACK_VERSION,
    }
    for section in ("services", "volumes", "networks"):
        for name, options in (compose.get(section) or {}).items():
            options = options or {}
            # External resources are not created by the stack
            if section != "services" and options.get("external"):
                continue
            options["labels"] = _merge_labels(options.get("labels"), labels)
            compose[section][name] = options

    return yaml.safe_dump(compose, default_flow_style=False, sort_keys=True)


def _merge_labels(existing: Any, labels: dict[str, str]) -> dict[str, str]:
    merged: dict[str, str] = {}
    if isinstance(existing, list):
        for entry in existing:
            key, _, value = str(entry).partition("=")
            merged[key] = value
    elif isinstance(existing, dict):
        merged = {key: "" if value is None else str(value) for key, value in existing.items()}
    merged.update(labels)
    return merged


class StackService:
    """Create, start, stop and inspect add-on stacks with ``docker compose``."""

    def __init__(self, docker_client: docker.DockerClient, settings: AddonManagerSettings):
        self.client = docker_client
        self.settings = settings
        self.stacks_directory = Path(settings.stacks_directory)
        self._docker_bin = shutil.which("docker") or "docker"
        self.logger = logger.bind(component="stack_service")

    def compose_file(self, name: str) -> Path:
        return self.stacks_directory / normalize_project_name(name) / COMPOSE_FILENAME

    async def _run_compose(self, name: str, *args: str) -> subprocess.CompletedProcess:
        project = normalize_project_name(name)
        cmd = [
            self._docker_bin,
            "compose",
            "--project-name",
            project,
            "--file",
            str(self.compose_file(name)),
            *args,
        ]
        self.logger.debug("Running compose command", project=project, args=list(args))
        try:
            result = await asyncio.to_thread(
                subprocess.run,  # nosec B603
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.settings.docker_cli_timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise StackServiceError(f"docker compose {args[0]} failed for {project}: {e}") from e

        if result.returncode != 0:
            raise StackServiceError(
                f"docker compose {args[0]} failed for {project}: {result.stderr.strip()}"
            )
        return result

    async def _write_compose(self, name: str, compose_yaml: str) -> None:
        labelled = add_version_labels(compose_yaml)
        path = self.compose_file(name)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(labelled, encoding="utf-8")

        try:
            await asyncio.to_thread(write)
        except OSError as e:
            raise StackServiceError(f"Failed to write compose file {path}: {e}") from e

    async def create_stack_without_start(self, name: str, compose_yaml: str) -> None:
        """Create containers, volumes and networks without starting anything."""
        await self._write_compose(name, compose_yaml)
        await self._run_compose(name, "create", "--remove-orphans")
        self.logger.info("Created stack", stack=name)

    async def create_stack(self, name: str, compose_yaml: str) -> None:
        await self._write_compose(name, compose_yaml)
        await self._run_compose(name, "up", "--detach", "--remove-orphans")
        self.logger.info("Created and started stack", stack=name)

    async def start_stack(self, name: str) -> None:
        await self._run_compose(name, "start")
        self.logger.info("Started stack", stack=name)

    async def stop_stack(self, name: str) -> None:
        await self._run_compose(name, "stop")
        self.logger.info("Stopped stack", stack=name)

    async def delete_stack(self, name: str) -> None:
        await self._run_compose(name, "down", "--remove-orphans")
        self.logger.info("Deleted stack", stack=name)

    async def list_stack_containers(self, project_name: str) -> list[Any]:
        """Containers (running or not) of the compose project, as given."""
        try:
            return await asyncio.to_thread(
                self.client.containers.list,
                all=True,
                filters={"label": f"{DOCKER_COMPOSE_PROJECT}={project_name}"},
            )
        except docker.errors.DockerException as e:
            raise StackServiceError(f"Failed to list containers of {project_name}: {e}") from e

    async def inspect_container(self, container_id: str) -> dict[str, Any]:
        try:
            container = await asyncio.to_thread(self.client.containers.get, container_id)
        except docker.errors.DockerException as e:
            raise StackServiceError(f"Failed to inspect container {container_id}: {e}") from e
        return container.attrs

    async def volume_inspect(self, volume_name: str) -> str | None:
        """Return the host mount point of a volume, or None if it does not exist."""
        try:
            volume = await asyncio.to_thread(self.client.volumes.get, volume_name)
        except docker.errors.NotFound:
            return None
        except docker.errors.DockerException as e:
            raise StackServiceError(f"Failed to inspect volume {volume_name}: {e}") from e
        return volume.attrs["Mountpoint"]

    async def remove_unused_volumes(self, prefix: str, *volume_names: str) -> None:
        """Remove ``{prefix}_{name}`` volumes; missing or in-use ones are skipped."""
        for volume_name in volume_names:
            scoped_name = f"{prefix}_{volume_name}"
            try:
                volume = await asyncio.to_thread(self.client.volumes.get, scoped_name)
                await asyncio.to_thread(volume.remove)
            except docker.errors.NotFound:
                self.logger.debug("Volume already gone", volume=scoped_name)
                continue
            except docker.errors.APIError as e:
                if e.status_code == 409:
                    self.logger.info("Volume still in use, keeping it", volume=scoped_name)
                    continue
                raise StackServiceError(f"Failed to remove volume {scoped_name}: {e}") from e
            self.logger.info("Removed volume", volume=scoped_name)

    async def get_stack_version(self, name: str) -> str | None:
        """Stack-format label of the first container of the stack, if any."""
        containers = await self.list_stack_containers(normalize_project_name(name))
        for container in containers:
            version = (container.labels or {}).get(STACK_VERSION_LABEL)
            if version:
                return version
        return None
