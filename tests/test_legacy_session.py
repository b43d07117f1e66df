"""Tests for the legacy control plane session against an in-process server."""

import json

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from addon_manager.core.exceptions import (
    CredentialsError,
    LegacyAuthenticationError,
    LegacyServiceUnavailableError,
    LegacyStackNotFoundError,
    RemoteSessionError,
)
from addon_manager.core.legacy import LegacyApiClient, connect, normalize_legacy_name

ADMIN_USER = "admin"
ADMIN_PASSWORD = "pa$$word"


class FakeLegacyService:
    """Minimal stand-in for the legacy REST API, recording what it receives."""

    def __init__(self, make_token):
        self.make_token = make_token
        self.token_lifetime = 8 * 60 * 60
        self.status_failures = 0
        self.status_calls = 0
        self.auth_calls = 0
        self.logout_calls = 0
        self.stacks = [{"Id": 7, "Name": "ucaddontest", "EndpointId": 1}]
        self.deleted: list[tuple[str, str]] = []
        self.issued_tokens: list[str] = []

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/status", self.status)
        app.router.add_post("/api/auth", self.auth)
        app.router.add_post("/api/auth/logout", self.logout)
        app.router.add_get("/api/stacks", self.list_stacks)
        app.router.add_delete("/api/stacks/{id}", self.delete_stack)
        return app

    def _authorized(self, request: web.Request) -> bool:
        header = request.headers.get("Authorization", "")
        return header.startswith("Bearer ") and header[len("Bearer "):] in self.issued_tokens

    async def status(self, request: web.Request) -> web.Response:
        self.status_calls += 1
        if self.status_failures > 0:
            self.status_failures -= 1
            return web.Response(status=503)
        return web.json_response({"Version": "2.9.3"})

    async def auth(self, request: web.Request) -> web.Response:
        self.auth_calls += 1
        body = await request.json()
        if body != {"username": ADMIN_USER, "password": ADMIN_PASSWORD}:
            return web.json_response({"message": "Invalid credentials"}, status=422)
        token = self.make_token(self.token_lifetime)
        self.issued_tokens.append(token)
        return web.json_response({"jwt": token})

    async def logout(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401)
        self.logout_calls += 1
        return web.Response(status=204)

    async def list_stacks(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401)
        if json.loads(request.query["filters"]) != {"EndpointID": 1}:
            return web.Response(status=400)
        if not self.stacks:
            return web.Response(status=204)
        return web.json_response(self.stacks)

    async def delete_stack(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401)
        stack_id = int(request.match_info["id"])
        self.deleted.append((request.match_info["id"], request.query.get("endpointId")))
        self.stacks = [stack for stack in self.stacks if stack["Id"] != stack_id]
        return web.Response(status=204)


@pytest_asyncio.fixture
async def legacy_service(make_token):
    service = FakeLegacyService(make_token)
    server = TestServer(service.app())
    await server.start_server()
    service.base_url = f"http://{server.host}:{server.port}"
    yield service
    await server.close()


@pytest.fixture
def legacy_settings(settings, legacy_service):
    settings.legacy_credentials_path.write_text(
        f"PORTAINER_LOCAL_ADMIN_USER={ADMIN_USER}\nPORTAINER_LOCAL_ADMIN_PW='{ADMIN_PASSWORD}'\n"
    )
    return settings.model_copy(
        update={"legacy_service_uri": legacy_service.base_url, "legacy_status_retries": 3}
    )


@pytest.mark.parametrize(
    "name,expected",
    [
        ("uc-addon-test", "ucaddontest"),
        ("UC_Addon.Test 1", "ucaddontest1"),
        ("already", "already"),
    ],
)
def test_normalize_legacy_name(name, expected):
    assert normalize_legacy_name(name) == expected


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_authenticates(self, legacy_settings, legacy_service):
        session = await connect(legacy_settings)
        try:
            assert legacy_service.auth_calls == 1
            assert session.endpoint_id == 1
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_connect_waits_for_service(self, legacy_settings, legacy_service):
        legacy_service.status_failures = 2

        session = await connect(legacy_settings)
        await session.close()

        assert legacy_service.status_calls == 3

    @pytest.mark.asyncio
    async def test_connect_fails_closed_when_unavailable(self, legacy_settings, legacy_service):
        legacy_service.status_failures = 10

        with pytest.raises(LegacyServiceUnavailableError):
            await connect(legacy_settings)

        assert legacy_service.status_calls == 3
        assert legacy_service.auth_calls == 0

    @pytest.mark.asyncio
    async def test_connect_rejects_wrong_credentials(self, legacy_settings):
        legacy_settings.legacy_credentials_path.write_text(
            "PORTAINER_LOCAL_ADMIN_USER=admin\nPORTAINER_LOCAL_ADMIN_PW=wrong\n"
        )

        with pytest.raises(LegacyAuthenticationError):
            await connect(legacy_settings)

    @pytest.mark.asyncio
    async def test_connect_without_credentials_file(self, legacy_settings):
        legacy_settings.legacy_credentials_path.unlink()

        with pytest.raises(CredentialsError):
            await connect(legacy_settings)


class TestRemoteSession:
    @pytest_asyncio.fixture
    async def session(self, legacy_settings):
        session = await connect(legacy_settings)
        yield session
        await session.close()

    @pytest.mark.asyncio
    async def test_delete_stack(self, session, legacy_service):
        await session.delete_stack("uc-addon-test")

        assert legacy_service.deleted == [("7", "1")]
        assert legacy_service.stacks == []

    @pytest.mark.asyncio
    async def test_delete_missing_stack(self, session, legacy_service):
        legacy_service.stacks = [{"Id": 3, "Name": "other", "EndpointId": 1}]

        with pytest.raises(LegacyStackNotFoundError) as exc_info:
            await session.delete_stack("uc-addon-test")

        assert exc_info.value.stack_name == "uc-addon-test"
        assert legacy_service.deleted == []

    @pytest.mark.asyncio
    async def test_no_content_means_no_stacks(self, session, legacy_service):
        legacy_service.stacks = []

        with pytest.raises(LegacyStackNotFoundError):
            await session.delete_stack("uc-addon-test")

    @pytest.mark.asyncio
    async def test_stack_without_usable_id(self, session, legacy_service):
        legacy_service.stacks = [{"Name": "ucaddontest", "EndpointId": 1}]

        with pytest.raises(RemoteSessionError, match="ucaddontest has no usable Id") as exc_info:
            await session.delete_stack("uc-addon-test")

        assert not isinstance(exc_info.value, LegacyStackNotFoundError)
        assert legacy_service.deleted == []

    @pytest.mark.asyncio
    async def test_token_near_expiry_is_renewed(self, session, legacy_service):
        legacy_service.token_lifetime = 10 * 60
        session.tokens.invalidate()

        await session.delete_stack("uc-addon-test")

        # Short-lived tokens are inside the refresh window, so every call re-authenticates.
        assert legacy_service.auth_calls == 3

    @pytest.mark.asyncio
    async def test_logout(self, session, legacy_service):
        await session.logout()

        assert legacy_service.logout_calls == 1


class TestLegacyApiClient:
    @pytest.mark.asyncio
    async def test_unreachable_service(self):
        async with LegacyApiClient("http://127.0.0.1:1", auth_timeout=2) as client:
            with pytest.raises(RemoteSessionError):
                await client.status()

    @pytest.mark.asyncio
    async def test_unauthorized_request(self, legacy_service):
        async with LegacyApiClient(legacy_service.base_url) as client:
            with pytest.raises(RemoteSessionError, match="HTTP 401"):
                await client.list_stacks("not-a-token", 1)
