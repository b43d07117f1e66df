"""Bearer token lifecycle for the legacy control plane.

The token moves through an explicit state machine::

    UNAUTHENTICATED --authenticate--> VALID
    VALID --(expiry within refresh window)--> NEAR_EXPIRY
    NEAR_EXPIRY --(expiry passed)--> EXPIRED
    NEAR_EXPIRY / EXPIRED --authenticate--> VALID

``BearerTokenManager.bearer()`` is the single transition point and is awaited
before every authenticated request.
"""

import time
from collections.abc import Awaitable, Callable
from enum import Enum

import jwt
import structlog

from ..exceptions import LegacyAuthenticationError

logger = structlog.get_logger()


class TokenState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    VALID = "valid"
    NEAR_EXPIRY = "near_expiry"
    EXPIRED = "expired"


def token_expiry(token: str) -> float:
    """Return the ``exp`` claim of a JWT without verifying its signature."""
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise LegacyAuthenticationError(f"Malformed token from legacy service: {e}") from e

    expires_at = claims.get("exp")
    if not isinstance(expires_at, int | float):
        raise LegacyAuthenticationError("Token from legacy service has no expiry")
    return float(expires_at)


class BearerTokenManager:
    """Keeps a bearer token usable by re-authenticating ahead of expiry."""

    def __init__(
        self,
        authenticate: Callable[[], Awaitable[str]],
        refresh_window: float = 30 * 60,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            authenticate: Coroutine function returning a fresh JWT
            refresh_window: Seconds before expiry at which the token is renewed
            clock: Source of the current UNIX time
        """
        self._authenticate = authenticate
        self.refresh_window = refresh_window
        self._clock = clock
        self._token: str | None = None
        self._expires_at = 0.0
        self.logger = logger.bind(component="legacy_token")

    @property
    def expires_at(self) -> float:
        return self._expires_at

    def state(self) -> TokenState:
        if self._token is None:
            return TokenState.UNAUTHENTICATED
        now = self._clock()
        if self._expires_at <= now:
            return TokenState.EXPIRED
        if self._expires_at <= now + self.refresh_window:
            return TokenState.NEAR_EXPIRY
        return TokenState.VALID

    async def bearer(self) -> str:
        """Return a token in the VALID state, authenticating when required."""
        state = self.state()
        if state is not TokenState.VALID:
            self.logger.debug("Authenticating against legacy service", state=state.value)
            await self.refresh()
        return self._token

    async def refresh(self) -> None:
        token = await self._authenticate()
        self._expires_at = token_expiry(token)
        self._token = token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0
