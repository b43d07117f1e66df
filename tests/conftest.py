"""Shared pytest fixtures for add-on manager tests."""

import time
from pathlib import Path

import jwt
import pytest

from addon_manager.core.settings import AddonManagerSettings
from addon_manager.models.manifest import Manifest

MANIFEST_JSON = """
{
  "manifestVersion": "0.1",
  "version": "1.0.0",
  "title": "uc-addon-test",
  "description": "Add-on used by the migration tests",
  "logo": "logo.png",
  "services": {
    "test-service": {
      "type": "docker-compose",
      "config": {
        "image": "test-image:1.0",
        "containerName": "test-service",
        "restart": "no",
        "environment": ["STATIC=1"],
        "volumes": ["data:/data"]
      }
    }
  },
  "environments": {
    "test-environment": {
      "type": "docker-compose",
      "config": {
        "volumes": {"data": {}}
      }
    }
  },
  "settings": {
    "environmentVariables": [
      {"name": "param1", "label": "Parameter 1", "default": "aaa", "required": true},
      {
        "name": "mode",
        "label": "Mode",
        "select": [
          {"label": "Fast", "value": "fast", "default": true},
          {"label": "Safe", "value": "safe"}
        ]
      }
    ]
  }
}
"""


@pytest.fixture
def manifest() -> Manifest:
    """Manifest of a small add-on with one volume and two settings."""
    return Manifest.from_json(MANIFEST_JSON)


@pytest.fixture
def settings(tmp_path: Path) -> AddonManagerSettings:
    """Settings rooted in a temporary directory."""
    return AddonManagerSettings(
        state_directory=tmp_path / "state",
        cache_directory=tmp_path / "cache",
        legacy_credentials_path=tmp_path / "portainer.env",
        legacy_status_retry_delay=0,
    )


@pytest.fixture
def make_token():
    """Build an (unsigned-for-us) JWT expiring ``lifetime`` seconds from now."""

    def _make(lifetime: float = 8 * 60 * 60, now: float | None = None) -> str:
        issued = time.time() if now is None else now
        return jwt.encode({"id": 1, "exp": int(issued + lifetime)}, "test-secret", algorithm="HS256")

    return _make
