"""Authenticated session against the legacy control plane."""

import asyncio
import re
from typing import Any

import structlog

from ..exceptions import (
    LegacyServiceUnavailableError,
    LegacyStackNotFoundError,
    RemoteSessionError,
)
from ..settings import AddonManagerSettings
from .client import LegacyApiClient
from .credentials import LegacyCredentials, read_credentials
from .token import BearerTokenManager

logger = structlog.get_logger()

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def normalize_legacy_name(name: str) -> str:
    """Lower-case the name and strip every non-alphanumeric character."""
    return _NON_ALPHANUMERIC.sub("", name.lower())


class RemoteSession:
    """Stack operations on the legacy service with transparent token renewal."""

    def __init__(
        self,
        client: LegacyApiClient,
        credentials: LegacyCredentials,
        endpoint_id: int = 1,
        refresh_window: float = 30 * 60,
    ):
        self.client = client
        self.endpoint_id = endpoint_id
        self.tokens = BearerTokenManager(
            lambda: client.authenticate(credentials.username, credentials.password),
            refresh_window=refresh_window,
        )
        self.logger = logger.bind(component="legacy_session", endpoint_id=endpoint_id)

    async def login(self) -> None:
        await self.tokens.refresh()
        self.logger.debug("Authenticated against legacy service", expires_at=self.tokens.expires_at)

    async def delete_stack(self, name: str) -> None:
        """Delete the legacy stack record matching ``name``.

        Raises:
            LegacyStackNotFoundError: If no stack matches the normalized name
            RemoteSessionError: On any other failure
        """
        stack_id = await self._find_stack_id(name)
        token = await self.tokens.bearer()
        await self.client.delete_stack(token, stack_id, self.endpoint_id)
        self.logger.info("Deleted legacy stack", stack=name, stack_id=stack_id)

    async def _find_stack_id(self, name: str) -> int:
        token = await self.tokens.bearer()
        stacks = await self.client.list_stacks(token, self.endpoint_id)

        normalized_name = normalize_legacy_name(name)
        for stack in stacks:
            if stack.get("Name") == normalized_name:
                try:
                    return int(stack["Id"])
                except (KeyError, TypeError, ValueError) as e:
                    raise RemoteSessionError(
                        f"Legacy stack {normalized_name} has no usable Id: {stack.get('Id')!r}"
                    ) from e
        raise LegacyStackNotFoundError(name)

    async def logout(self) -> None:
        token = await self.tokens.bearer()
        await self.client.logout(token)
        self.tokens.invalidate()

    async def close(self) -> None:
        await self.client.close()


async def wait_for_service(client: LegacyApiClient, retries: int = 5, delay: float = 3.0) -> dict[str, Any]:
    """Probe the service status, retrying while the service is still booting.

    Raises:
        LegacyServiceUnavailableError: If every attempt failed
    """
    last_error: RemoteSessionError | None = None
    for attempt in range(1, retries + 1):
        try:
            return await client.status()
        except RemoteSessionError as e:
            last_error = e
            logger.debug("Legacy service not reachable yet", attempt=attempt, retries=retries, error=str(e))
            if attempt < retries:
                await asyncio.sleep(delay)
    raise LegacyServiceUnavailableError(
        f"Legacy service did not respond after {retries} attempts: {last_error}"
    ) from last_error


async def connect(settings: AddonManagerSettings) -> RemoteSession:
    """Open an authenticated session against the legacy service.

    Fails before returning if the service stays unavailable, the credentials
    cannot be read or authentication is rejected.
    """
    client = LegacyApiClient(
        settings.legacy_base_url,
        request_timeout=settings.legacy_request_timeout,
        auth_timeout=settings.legacy_auth_timeout,
    )
    try:
        status = await wait_for_service(
            client, settings.legacy_status_retries, settings.legacy_status_retry_delay
        )
        logger.info("Legacy service available", version=status.get("Version"))

        credentials = read_credentials(settings.legacy_credentials_path)
        session = RemoteSession(
            client,
            credentials,
            endpoint_id=settings.legacy_endpoint_id,
            refresh_window=settings.legacy_token_refresh_window,
        )
        await session.login()
    except BaseException:
        await client.close()
        raise
    return session
