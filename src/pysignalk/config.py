"""Client configuration for pysignalk."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pysignalk.exceptions import SignalKConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class SignalKConfig:
    """Client configuration.

    Parameters
    ----------
    host : str
        Server ``host:port`` without scheme (e.g. ``"localhost:3000"``).
    secure : bool
        Use ``https``/``wss`` instead of ``http``/``ws``.
    username : str or None
        Account used for ``/signalk/v1/auth/login`` and the WebSocket
        login message.
    password : str or None
        Password for *username*.
    token : str or None
        Pre-issued bearer token (e.g. from an approved device access
        request).  Takes precedence over username/password login.
    request_timeout : float
        Total timeout in seconds for a single REST request.
    verify_timeout : float
        Default window in seconds the state verifier waits for a command's
        effect to show up on the data stream.
    grace_window : float
        Seconds an optimistic override hides disagreeing pushes after a
        command.
    numeric_tolerance : float
        Absolute tolerance used when verifying numeric values.  ``0``
        means exact comparison.
    stale_ttl : float
        Seconds after which a cached data point is considered stale.
        ``0`` disables staleness checks.
    skew_allowance_seconds : float
        How much older than the cached timestamp a push may be and still be
        accepted for the same path/source.
    subscribe_period : int
        Subscription ``period`` in milliseconds.
    subscribe_policy : str
        Subscription ``policy`` (``"instant"``, ``"ideal"``, ``"fixed"``).
    use_units_preference : bool
        Stream from the ``signalk-units-preference`` plugin, which
        delivers pre-converted values.  Requires credentials.
    watch_autopilot_notifications : bool
        Resolve verifications as rejected when an autopilot alarm
        notification arrives.
    reconnect_initial_delay : float
        First delay before re-opening a dropped stream.
    reconnect_max_delay : float
        Upper bound of the exponential reconnect backoff.
    """

    host: str = "localhost:3000"
    secure: bool = False
    username: str | None = None
    password: str | None = None
    token: str | None = None
    request_timeout: float = 10.0
    verify_timeout: float = 5.0
    grace_window: float = 3.0
    numeric_tolerance: float = 0.0
    stale_ttl: float = 0.0
    skew_allowance_seconds: float = 0.0
    subscribe_period: int = 1000
    subscribe_policy: str = "instant"
    use_units_preference: bool = False
    watch_autopilot_notifications: bool = True
    reconnect_initial_delay: float = 1.0
    reconnect_max_delay: float = 30.0

    def __post_init__(self) -> None:
        if not self.host or not self.host.strip():
            raise SignalKConfigError("host must be non-empty")
        if "://" in self.host:
            raise SignalKConfigError(f"host must not include a scheme, got {self.host!r}")
        if self.verify_timeout < 0 or self.grace_window < 0:
            raise SignalKConfigError("verify_timeout and grace_window must be >= 0")
        if self.use_units_preference and not self.has_credentials:
            raise SignalKConfigError("use_units_preference requires username and password")

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)

    @property
    def http_base(self) -> str:
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.host}"

    @property
    def ws_base(self) -> str:
        scheme = "wss" if self.secure else "ws"
        return f"{scheme}://{self.host}"

    @classmethod
    def from_env(cls, **overrides: Any) -> SignalKConfig:
        """Create configuration from environment variables.

        Reads ``SIGNALK_HOST`` and optional ``SIGNALK_*`` variables.
        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        SignalKConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "SIGNALK_HOST": "host",
            "SIGNALK_USERNAME": "username",
            "SIGNALK_PASSWORD": "password",
            "SIGNALK_TOKEN": "token",
            "SIGNALK_SUBSCRIBE_POLICY": "subscribe_policy",
        }
        _ENV_FLOAT_MAP = {
            "SIGNALK_REQUEST_TIMEOUT": "request_timeout",
            "SIGNALK_VERIFY_TIMEOUT": "verify_timeout",
            "SIGNALK_GRACE_WINDOW": "grace_window",
            "SIGNALK_NUMERIC_TOLERANCE": "numeric_tolerance",
            "SIGNALK_STALE_TTL": "stale_ttl",
            "SIGNALK_SKEW_ALLOWANCE": "skew_allowance_seconds",
            "SIGNALK_RECONNECT_INITIAL_DELAY": "reconnect_initial_delay",
            "SIGNALK_RECONNECT_MAX_DELAY": "reconnect_max_delay",
        }
        _ENV_BOOL_MAP = {
            "SIGNALK_SECURE": ("secure", False),
            "SIGNALK_USE_UNITS_PREFERENCE": ("use_units_preference", False),
            "SIGNALK_WATCH_AUTOPILOT_NOTIFICATIONS": ("watch_autopilot_notifications", True),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = float(val)
                except ValueError as exc:
                    raise SignalKConfigError(f"{env_key} must be numeric, got {val!r}") from exc

        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        period_env = env.get("SIGNALK_SUBSCRIBE_PERIOD")
        if period_env is not None and "subscribe_period" not in overrides:
            config_kwargs["subscribe_period"] = int(period_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
