"""Device access request models."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import model_validator

from pysignalk.models._base import SignalKBaseModel, SignalKTimestamp


class AccessRequestState(enum.StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    COMPLETED = "COMPLETED"

    @classmethod
    def _missing_(cls, value: object) -> AccessRequestState:
        if isinstance(value, str):
            upper = value.strip().upper()
            for member in cls:
                if member.value == upper:
                    return member
        return cls.PENDING


class AccessRequest(SignalKBaseModel):
    """State of a device access request.

    The server nests the outcome as
    ``{"state": "COMPLETED", "accessRequest": {"permission": "APPROVED",
    "token": "..."}}``; the validator flattens that into ``state`` and
    ``token``.
    """

    request_id: str | None = None
    client_id: str = ""
    description: str = ""
    state: AccessRequestState = AccessRequestState.PENDING
    token: str | None = None
    status_href: str | None = None
    message: str | None = None
    expires_at: SignalKTimestamp = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_access_request(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        merged = dict(values)
        nested = merged.get("accessRequest")
        if isinstance(nested, dict):
            permission = str(nested.get("permission") or "").upper()
            if permission == "APPROVED":
                merged["state"] = AccessRequestState.APPROVED.value
                merged["token"] = nested.get("token")
                if "expiresAt" in nested:
                    merged["expiresAt"] = nested.get("expiresAt")
            elif permission == "DENIED":
                merged["state"] = AccessRequestState.DENIED.value
        if "href" in merged and "statusHref" not in merged:
            merged["statusHref"] = merged["href"]
        return merged

    @property
    def is_final(self) -> bool:
        return self.state in (AccessRequestState.APPROVED, AccessRequestState.DENIED)
