"""Helpers for safe debug logging.

Login bodies, WebSocket login messages and access-request responses carry
passwords and bearer tokens.  ``redact_for_log`` masks those fields before
payloads reach DEBUG logs and shortens the long value lists of full delta
frames and vessel trees.
"""

from __future__ import annotations

from typing import Any

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "accesstoken",
        "refreshtoken",
        "authorization",
        "cookie",
        "jwt",
    }
)
_BEARER_PREFIX = "bearer "


def redact_for_log(value: Any, *, max_string: int = 512, max_items: int = 50, _depth: int = 0) -> Any:
    """Return a redacted copy of a decoded JSON payload for debug logs.

    Parameters
    ----------
    value : Any
        Decoded JSON (dicts, lists, scalars) or a value about to be sent.
    max_string : int
        Longer strings are truncated.
    max_items : int
        Longer lists (``updates``, ``values``) keep their first items plus a
        count of what was dropped.
    """
    if _depth > 20:
        return "<max-depth>"

    if isinstance(value, str):
        if value.lower().startswith(_BEARER_PREFIX):
            return "Bearer <redacted>"
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if value is None or isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, dict):
        return {
            str(key): (
                "<redacted>"
                if str(key).lower() in _SENSITIVE_KEYS
                else redact_for_log(item, max_string=max_string, max_items=max_items, _depth=_depth + 1)
            )
            for key, item in value.items()
        }

    if isinstance(value, (list, tuple)):
        kept = [
            redact_for_log(item, max_string=max_string, max_items=max_items, _depth=_depth + 1)
            for item in value[:max_items]
        ]
        if len(value) > max_items:
            kept.append(f"<{len(value) - max_items} more>")
        return kept

    return repr(value)
