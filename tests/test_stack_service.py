"""Tests for the compose backend stack service."""

import subprocess
from unittest.mock import MagicMock, patch

import docker.errors
import pytest
import yaml

from addon_manager.constants import (
    CURRENT_STACK_VERSION,
    PRODUCT_VERSION,
    PRODUCT_VERSION_LABEL,
    STACK_VERSION_LABEL,
)
from addon_manager.core.exceptions import StackServiceError
from addon_manager.core.stack_service import (
    StackService,
    add_version_labels,
    normalize_project_name,
)

COMPOSE = """
version: "2"
services:
  web:
    image: nginx
    labels:
      - existing=1
volumes:
  data: null
  shared:
    external: true
networks:
  backend: {}
"""


@pytest.mark.parametrize(
    "name,expected",
    [
        ("uc-addon-test", "uc-addon-test"),
        ("UC Addon.Test", "ucaddontest"),
        ("__-my_addon", "my_addon"),
    ],
)
def test_normalize_project_name(name, expected):
    assert normalize_project_name(name) == expected


def test_add_version_labels():
    compose = yaml.safe_load(add_version_labels(COMPOSE))

    expected = {PRODUCT_VERSION_LABEL: PRODUCT_VERSION, STACK_VERSION_LABEL: CURRENT_STACK_VERSION}
    assert compose["services"]["web"]["labels"] == {"existing": "1", **expected}
    assert compose["volumes"]["data"]["labels"] == expected
    assert "labels" not in compose["volumes"]["shared"]
    assert compose["networks"]["backend"]["labels"] == expected


def test_add_version_labels_rejects_invalid_yaml():
    with pytest.raises(StackServiceError):
        add_version_labels("services: [unclosed")


@pytest.fixture
def docker_client():
    return MagicMock()


@pytest.fixture
def service(docker_client, settings):
    return StackService(docker_client, settings)


def completed(returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout="", stderr=stderr)


class TestComposeCommands:
    @pytest.mark.asyncio
    async def test_create_without_start(self, service, settings):
        with patch("addon_manager.core.stack_service.subprocess.run", return_value=completed()) as mock_run:
            await service.create_stack_without_start("uc-addon-test", COMPOSE)

        compose_file = settings.stacks_directory / "uc-addon-test" / "docker-compose.yml"
        written = yaml.safe_load(compose_file.read_text())
        assert written["services"]["web"]["labels"][STACK_VERSION_LABEL] == CURRENT_STACK_VERSION

        cmd = mock_run.call_args.args[0]
        assert cmd[1:] == [
            "compose",
            "--project-name",
            "uc-addon-test",
            "--file",
            str(compose_file),
            "create",
            "--remove-orphans",
        ]
        assert mock_run.call_args.kwargs["timeout"] == settings.docker_cli_timeout

    @pytest.mark.asyncio
    async def test_start_stack(self, service):
        with patch("addon_manager.core.stack_service.subprocess.run", return_value=completed()) as mock_run:
            await service.start_stack("uc-addon-test")

        assert mock_run.call_args.args[0][-1] == "start"

    @pytest.mark.asyncio
    async def test_failed_command_raises(self, service):
        with patch(
            "addon_manager.core.stack_service.subprocess.run",
            return_value=completed(returncode=1, stderr="no such image"),
        ):
            with pytest.raises(StackServiceError, match="no such image"):
                await service.stop_stack("uc-addon-test")

    @pytest.mark.asyncio
    async def test_timeout_raises(self, service):
        with patch(
            "addon_manager.core.stack_service.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="docker", timeout=1),
        ):
            with pytest.raises(StackServiceError):
                await service.delete_stack("uc-addon-test")


class TestDockerQueries:
    @pytest.mark.asyncio
    async def test_volume_inspect(self, service, docker_client):
        docker_client.volumes.get.return_value.attrs = {"Mountpoint": "/var/lib/docker/volumes/x/_data"}

        assert await service.volume_inspect("x") == "/var/lib/docker/volumes/x/_data"

    @pytest.mark.asyncio
    async def test_volume_inspect_missing(self, service, docker_client):
        docker_client.volumes.get.side_effect = docker.errors.NotFound("gone")

        assert await service.volume_inspect("x") is None

    @pytest.mark.asyncio
    async def test_remove_unused_volumes(self, service, docker_client):
        in_use = MagicMock()
        in_use.remove.side_effect = docker.errors.APIError(
            "in use", response=MagicMock(status_code=409)
        )
        removable = MagicMock()
        volumes = {"ucaddontest_data": removable, "ucaddontest_busy": in_use}

        def get(name):
            if name not in volumes:
                raise docker.errors.NotFound(name)
            return volumes[name]

        docker_client.volumes.get.side_effect = get

        await service.remove_unused_volumes("ucaddontest", "data", "busy", "gone")

        removable.remove.assert_called_once_with()
        assert [call.args[0] for call in docker_client.volumes.get.call_args_list] == [
            "ucaddontest_data",
            "ucaddontest_busy",
            "ucaddontest_gone",
        ]

    @pytest.mark.asyncio
    async def test_remove_unused_volumes_other_error(self, service, docker_client):
        docker_client.volumes.get.return_value.remove.side_effect = docker.errors.APIError(
            "boom", response=MagicMock(status_code=500)
        )

        with pytest.raises(StackServiceError):
            await service.remove_unused_volumes("ucaddontest", "data")

    @pytest.mark.asyncio
    async def test_get_stack_version(self, service, docker_client):
        unlabelled = MagicMock(labels={})
        labelled = MagicMock(labels={STACK_VERSION_LABEL: "0.2.1"})
        docker_client.containers.list.return_value = [unlabelled, labelled]

        assert await service.get_stack_version("UC-Addon-Test") == "0.2.1"
        assert docker_client.containers.list.call_args.kwargs["filters"] == {
            "label": "com.docker.compose.project=uc-addon-test"
        }

    @pytest.mark.asyncio
    async def test_get_stack_version_without_containers(self, service, docker_client):
        docker_client.containers.list.return_value = []

        assert await service.get_stack_version("uc-addon-test") is None

    @pytest.mark.asyncio
    async def test_list_containers_failure(self, service, docker_client):
        docker_client.containers.list.side_effect = docker.errors.APIError("down")

        with pytest.raises(StackServiceError):
            await service.list_stack_containers("uc-addon-test")


class TestStackLifecycle:
    @pytest.mark.asyncio
    async def test_create_stack_starts_it(self, service):
        with patch("addon_manager.core.stack_service.subprocess.run", return_value=completed()) as mock_run:
            await service.create_stack("uc-addon-test", COMPOSE)

        assert mock_run.call_args.args[0][-3:] == ["up", "--detach", "--remove-orphans"]

    @pytest.mark.asyncio
    async def test_inspect_container(self, service, docker_client):
        docker_client.containers.get.return_value.attrs = {"Config": {"Env": ["A=1"]}}

        assert await service.inspect_container("abc") == {"Config": {"Env": ["A=1"]}}
        docker_client.containers.get.assert_called_once_with("abc")
