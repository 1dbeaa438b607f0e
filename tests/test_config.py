from __future__ import annotations

import pytest

from pysignalk.config import SignalKConfig
from pysignalk.exceptions import SignalKConfigError


def test_defaults() -> None:
    config = SignalKConfig()

    assert config.http_base == "http://localhost:3000"
    assert config.ws_base == "ws://localhost:3000"
    assert config.verify_timeout == 5.0
    assert config.grace_window == 3.0
    assert not config.has_credentials


def test_secure_urls() -> None:
    config = SignalKConfig(host="boat.local:3443", secure=True)

    assert config.http_base == "https://boat.local:3443"
    assert config.ws_base == "wss://boat.local:3443"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"host": ""},
        {"host": "http://boat.local"},
        {"verify_timeout": -1.0},
        {"grace_window": -0.5},
        {"use_units_preference": True},
    ],
)
def test_invalid_config(kwargs: dict[str, object]) -> None:
    with pytest.raises(SignalKConfigError):
        SignalKConfig(**kwargs)  # type: ignore[arg-type]


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SIGNALK_HOST", "192.168.1.10:3000")
    monkeypatch.setenv("SIGNALK_USERNAME", "skipper")
    monkeypatch.setenv("SIGNALK_PASSWORD", "secret")
    monkeypatch.setenv("SIGNALK_VERIFY_TIMEOUT", "2.5")
    monkeypatch.setenv("SIGNALK_USE_UNITS_PREFERENCE", "yes")
    monkeypatch.setenv("SIGNALK_WATCH_AUTOPILOT_NOTIFICATIONS", "off")
    monkeypatch.setenv("SIGNALK_SUBSCRIBE_PERIOD", "500")

    config = SignalKConfig.from_env(grace_window=1.0)

    assert config.host == "192.168.1.10:3000"
    assert config.has_credentials
    assert config.verify_timeout == 2.5
    assert config.grace_window == 1.0
    assert config.use_units_preference
    assert not config.watch_autopilot_notifications
    assert config.subscribe_period == 500


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SIGNALK_HOST", "env-host:3000")
    monkeypatch.setenv("SIGNALK_VERIFY_TIMEOUT", "9")

    config = SignalKConfig.from_env(host="explicit:3000", verify_timeout=1.0)

    assert config.host == "explicit:3000"
    assert config.verify_timeout == 1.0


def test_from_env_rejects_non_numeric(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SIGNALK_GRACE_WINDOW", "soon")

    with pytest.raises(SignalKConfigError):
        SignalKConfig.from_env()
