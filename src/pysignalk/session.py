"""Authentication token state for SignalK requests."""

from __future__ import annotations

import enum
import time

from pydantic import BaseModel, ConfigDict, Field

#: Tokens expiring within this many seconds are treated as expired so a
#: command is never sent with a token about to lapse.
EXPIRY_MARGIN_SECONDS: float = 3600.0


class AuthType(enum.StrEnum):
    DEVICE = "device"
    USER = "user"


class AuthToken(BaseModel):
    """Bearer token obtained from login or an approved access request.

    Parameters
    ----------
    token : str
        JWT sent as ``Authorization: Bearer <token>``.
    auth_type : AuthType
        Whether the token came from a user login or a device request.
    username : str or None
        User the token was issued to (user auth).
    client_id : str or None
        Device client id (device auth).
    issued_at : float
        Wall-clock time (``time.time()``) the token was obtained.
    ttl : float or None
        Time-to-live in seconds reported by the server, if any.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )

    token: str
    auth_type: AuthType = AuthType.USER
    username: str | None = None
    client_id: str | None = None
    issued_at: float = Field(default_factory=time.time)
    ttl: float | None = None

    @property
    def expires_at(self) -> float | None:
        if self.ttl is None:
            return None
        return self.issued_at + self.ttl

    @property
    def is_expired(self) -> bool:
        """Whether the token has expired or will within :data:`EXPIRY_MARGIN_SECONDS`."""
        expires_at = self.expires_at
        if expires_at is None:
            return False
        margin = min(EXPIRY_MARGIN_SECONDS, (self.ttl or 0) / 2)
        return time.time() >= expires_at - margin

    @property
    def age(self) -> float:
        """Seconds since the token was issued."""
        return time.time() - self.issued_at
