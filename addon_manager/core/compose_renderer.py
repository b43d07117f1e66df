"""Render a compose definition from an add-on manifest."""

import re
from typing import Any

import structlog
import yaml

from ..constants import (
    DOCKER_COMPOSE_TYPE,
    ENVIRONMENT_VARIABLES_GROUP,
    SUPPORTED_COMPOSE_FILE_VERSION,
)
from ..models.manifest import Environment, Manifest, Service, Setting

logger = structlog.get_logger()

_FIRST_CAP = re.compile(r"(.)([A-Z][a-z]+)")
_ALL_CAP = re.compile(r"([a-z0-9])([A-Z])")


def to_snake_case(value: str) -> str:
    snake = _FIRST_CAP.sub(r"\1_\2", value)
    snake = _ALL_CAP.sub(r"\1_\2", snake)
    return snake.lower()


def render_compose(manifest: Manifest) -> str:
    """Render the docker compose YAML for a manifest.

    Args:
        manifest: Add-on manifest, possibly with carried-over settings merged in

    Returns:
        Compose definition as YAML text
    """
    services = _compose_services(manifest.services, manifest.settings)
    volumes = _collect_environment_section(manifest.environments, "volumes")
    networks = _collect_environment_section(manifest.environments, "networks")

    compose: dict[str, Any] = {"version": SUPPORTED_COMPOSE_FILE_VERSION}
    if services:
        compose["services"] = {
            name: _snake_case_keys(config) for name, config in services.items()
        }
    if volumes:
        compose["volumes"] = {
            name: _snake_case_keys(options) if options else None
            for name, options in volumes.items()
        }
    if networks:
        compose["networks"] = {
            name: _snake_case_keys(options) if options else None
            for name, options in networks.items()
        }

    logger.debug(
        "Rendered compose definition",
        title=manifest.title,
        services=sorted(services),
        volumes=sorted(volumes),
        networks=sorted(networks),
    )
    return yaml.safe_dump(compose, default_flow_style=False, sort_keys=True)


def _compose_services(
    services: dict[str, Service], settings: dict[str, list[Setting]] | None
) -> dict[str, dict[str, Any]]:
    compose_services = {}
    for name, service in services.items():
        if service.type != DOCKER_COMPOSE_TYPE:
            continue
        config = dict(service.config)
        if settings and ENVIRONMENT_VARIABLES_GROUP in settings:
            config["environment"] = merge_environment(
                config.get("environment"), settings[ENVIRONMENT_VARIABLES_GROUP]
            )
        compose_services[name] = config
    return compose_services


def merge_environment(environment: Any, settings: list[Setting]) -> dict[str, str]:
    """Overlay setting values onto a service environment (list or mapping form)."""
    merged: dict[str, str] = {}
    if isinstance(environment, list):
        for entry in environment:
            key, _, value = str(entry).partition("=")
            merged[key] = value
    elif isinstance(environment, dict):
        merged = {key: "" if value is None else str(value) for key, value in environment.items()}

    for setting in settings:
        value = setting.effective_value()
        if value is not None:
            merged[setting.name] = value
    return merged


def _collect_environment_section(
    environments: dict[str, Environment], section: str
) -> dict[str, dict[str, Any] | None]:
    collected: dict[str, dict[str, Any] | None] = {}
    for environment in environments.values():
        if environment.type != DOCKER_COMPOSE_TYPE:
            continue
        for name, options in getattr(environment.config, section).items():
            collected[name] = options or None
    return collected


def _snake_case_keys(config: dict[str, Any]) -> dict[str, Any]:
    """Convert manifest camelCase keys to compose snake_case, except environment."""
    converted = {}
    for key, value in config.items():
        if key == "environment":
            converted[key] = value
            continue
        if isinstance(value, dict):
            value = _snake_case_keys(value)
        converted[to_snake_case(key)] = value
    return converted
