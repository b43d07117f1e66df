"""Client side of the legacy stack-management control plane."""

from .client import LegacyApiClient  # noqa: F401
from .credentials import LegacyCredentials, read_credentials  # noqa: F401
from .session import RemoteSession, connect, normalize_legacy_name, wait_for_service  # noqa: F401
from .token import BearerTokenManager, TokenState, token_expiry  # noqa: F401

__all__ = [
    "BearerTokenManager",
    "LegacyApiClient",
    "LegacyCredentials",
    "RemoteSession",
    "TokenState",
    "connect",
    "normalize_legacy_name",
    "read_credentials",
    "token_expiry",
    "wait_for_service",
]
