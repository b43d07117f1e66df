"""Local administrator credentials of the legacy control plane."""

from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values

from ...constants import LEGACY_ADMIN_PASSWORD_KEY, LEGACY_ADMIN_USER_KEY
from ..exceptions import CredentialsError


@dataclass(frozen=True)
class LegacyCredentials:
    username: str
    password: str = field(repr=False)


def read_credentials(path: Path | str) -> LegacyCredentials:
    """Read the administrator credentials from a ``KEY=VALUE`` file.

    Raises:
        CredentialsError: If the file cannot be read or lacks the user name
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as handle:
            properties = dotenv_values(stream=handle, interpolate=False)
    except OSError as e:
        raise CredentialsError(f"Failed to read legacy credentials from {path}: {e}") from e

    username = (properties.get(LEGACY_ADMIN_USER_KEY) or "").strip()
    password = (properties.get(LEGACY_ADMIN_PASSWORD_KEY) or "").strip()
    if not username:
        raise CredentialsError(f"{LEGACY_ADMIN_USER_KEY} is missing in {path}")
    return LegacyCredentials(username=username, password=password)
