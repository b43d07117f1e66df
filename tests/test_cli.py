"""Tests for the command line entry point."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import structlog

from addon_manager.cli import main, parse_args
from addon_manager.core.exceptions import StackServiceError

MANIFEST_JSON = '{"manifestVersion": "0.1", "title": "uc-addon-test", "services": {}}'


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("STATE_DIRECTORY", str(tmp_path / "state"))
    monkeypatch.delenv("ADDON_MANAGER_CONFIG", raising=False)
    with patch("addon_manager.core.config_loader.load_dotenv"):
        yield
    for name in ("addon_manager", "migration"):
        for handler in logging.getLogger(name).handlers[:]:
            handler.close()
            logging.getLogger(name).removeHandler(handler)
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
def manifest_file(tmp_path):
    path = tmp_path / "manifest.json"
    path.write_text(MANIFEST_JSON)
    return path


@pytest.fixture
def starter():
    starter = MagicMock()
    starter.start_addon = AsyncMock()
    with patch("addon_manager.cli.AddonStarter.from_settings", return_value=starter) as from_settings:
        starter.from_settings = from_settings
        yield starter


def test_command_required_without_validate_config():
    with pytest.raises(SystemExit):
        parse_args([])


def test_validate_config(tmp_path, starter):
    assert main(["--validate-config"]) == 0

    starter.from_settings.assert_not_called()
    assert (tmp_path / "state" / "logs" / "addon_manager.log").exists()


def test_start_wires_settings_and_manifest(tmp_path, starter, manifest_file):
    assert main(["--log-level", "DEBUG", "start", "uc-addon-test", str(manifest_file)]) == 0

    settings = starter.from_settings.call_args.args[0]
    assert settings.state_directory == tmp_path / "state"
    name, manifest = starter.start_addon.await_args.args
    assert name == "uc-addon-test"
    assert manifest.title == "uc-addon-test"


def test_start_failure_exits_nonzero(starter, manifest_file):
    starter.start_addon.side_effect = StackServiceError("compose failed")

    assert main(["start", "uc-addon-test", str(manifest_file)]) == 1


def test_missing_manifest_exits_nonzero(tmp_path, starter):
    assert main(["start", "uc-addon-test", str(tmp_path / "missing.json")]) == 1

    starter.start_addon.assert_not_awaited()
