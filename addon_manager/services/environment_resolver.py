"""Capture the environment an installed stack was configured with."""

import structlog

from ..core.exceptions import StackServiceError
from ..core.stack_service import StackService


class EnvironmentResolver:
    """Reads the environment variables of a stack from its containers."""

    def __init__(self, stack_service: StackService):
        self.stack_service = stack_service
        self.logger = structlog.get_logger().bind(component="environment_resolver")

    async def resolve(self, project_name: str) -> dict[str, str]:
        """Environment of the first inspectable container of the compose project.

        Returns an empty mapping when the project has no containers.
        """
        containers = await self.stack_service.list_stack_containers(project_name)
        for container in containers:
            try:
                attrs = await self.stack_service.inspect_container(container.id)
            except StackServiceError as e:
                self.logger.debug("Skipping container", container_id=container.id, error=str(e))
                continue
            env = (attrs.get("Config") or {}).get("Env") or []
            return parse_environment(env)

        self.logger.debug("No containers to read the environment from", project=project_name)
        return {}


def parse_environment(env: list[str]) -> dict[str, str]:
    """Turn ``KEY=VALUE`` entries into a mapping; a bare ``KEY`` maps to ``""``."""
    environment = {}
    for entry in env:
        key, _, value = entry.partition("=")
        if key:
            environment[key] = value
    return environment
