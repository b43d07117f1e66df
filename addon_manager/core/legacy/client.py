"""Thin HTTP client for the legacy stack-management REST API."""

import asyncio
import json
from typing import Any

import aiohttp
import structlog

from ...constants import LEGACY_API_BASE_PATH
from ..exceptions import LegacyAuthenticationError, RemoteSessionError

logger = structlog.get_logger()


class LegacyApiClient:
    """Exposes only the operations needed to tear down a legacy stack.

    All calls are bounded by a timeout; none of them is retried here.
    """

    def __init__(
        self,
        base_url: str,
        request_timeout: float = 60 * 60,
        auth_timeout: float = 30,
        session: aiohttp.ClientSession | None = None,
    ):
        """
        Args:
            base_url: Scheme, host and port of the legacy service
            request_timeout: Timeout in seconds for stack operations
            auth_timeout: Timeout in seconds for status and authentication calls
            session: Optional pre-built HTTP session (owned by the caller)
        """
        self.api_url = f"{base_url.rstrip('/')}{LEGACY_API_BASE_PATH}"
        self.request_timeout = aiohttp.ClientTimeout(total=request_timeout)
        self.auth_timeout = aiohttp.ClientTimeout(total=auth_timeout)
        self._session = session
        self._owns_session = session is None
        self.logger = logger.bind(component="legacy_api_client", api_url=self.api_url)

    async def __aenter__(self) -> "LegacyApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(connector=aiohttp.TCPConnector(limit=10))
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        timeout: aiohttp.ClientTimeout,
        token: str | None = None,
        **kwargs,
    ) -> tuple[int, Any]:
        """Perform one request and return (status, decoded JSON body or None)."""
        url = f"{self.api_url}{endpoint}"
        headers = kwargs.pop("headers", {})
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"
        self.logger.debug("Legacy API request", method=method, endpoint=endpoint)

        try:
            async with self._get_session().request(
                method, url, headers=headers, timeout=timeout, **kwargs
            ) as response:
                if response.status >= 400:
                    detail = (await response.text()).strip()
                    raise RemoteSessionError(
                        f"{method} {endpoint} failed with HTTP {response.status}: {detail}"
                    )
                if response.status == 204:
                    return response.status, None
                body = await response.read()
                if not body:
                    return response.status, None
                return response.status, json.loads(body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteSessionError(f"{method} {endpoint} failed: {e}") from e
        except ValueError as e:
            raise RemoteSessionError(f"{method} {endpoint} returned invalid JSON: {e}") from e

    async def status(self) -> dict[str, Any]:
        """Liveness probe; returns the service status document."""
        _, payload = await self._request("GET", "/status", self.auth_timeout)
        return payload or {}

    async def authenticate(self, username: str, password: str) -> str:
        """Exchange administrator credentials for a JWT."""
        try:
            _, payload = await self._request(
                "POST",
                "/auth",
                self.auth_timeout,
                json={"username": username, "password": password},
            )
        except RemoteSessionError as e:
            raise LegacyAuthenticationError(f"Failed to authenticate as {username}: {e}") from e

        token = (payload or {}).get("jwt")
        if not token:
            raise LegacyAuthenticationError("Legacy service returned no token")
        return token

    async def logout(self, token: str) -> None:
        await self._request("POST", "/auth/logout", self.auth_timeout, token=token)

    async def list_stacks(self, token: str, endpoint_id: int) -> list[dict[str, Any]]:
        """List the stacks of an endpoint; 204 No Content means no stacks."""
        filters = json.dumps({"EndpointID": endpoint_id}, separators=(",", ":"))
        _, payload = await self._request(
            "GET", "/stacks", self.request_timeout, token=token, params={"filters": filters}
        )
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise RemoteSessionError(f"Unexpected stack list payload: {type(payload).__name__}")
        return payload

    async def delete_stack(self, token: str, stack_id: int, endpoint_id: int) -> None:
        await self._request(
            "DELETE",
            f"/stacks/{stack_id}",
            self.request_timeout,
            token=token,
            params={"endpointId": str(endpoint_id)},
        )
