"""Autopilot models for the V1 (plugin PUT) and V2 (REST) APIs."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from pysignalk.models._base import SignalKBaseModel


class AutopilotApiVersion(enum.StrEnum):
    V1 = "v1"
    V2 = "v2"


class TackDirection(enum.StrEnum):
    PORT = "port"
    STARBOARD = "starboard"


class AutopilotInstance(SignalKBaseModel):
    """An autopilot provider registered with the V2 API."""

    id: str
    name: str = ""
    provider: str = "unknown"
    is_default: bool = Field(default=False, validation_alias=AliasChoices("default", "isDefault", "is_default"))
    endpoints: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _default_name(self) -> AutopilotInstance:
        if not self.name:
            object.__setattr__(self, "name", self.id)
        return self


class AutopilotStateOption(SignalKBaseModel):
    """A selectable autopilot state and whether it steers the boat."""

    name: str
    engaged: bool = False

    @model_validator(mode="before")
    @classmethod
    def _from_plain_string(cls, values: Any) -> Any:
        # Some providers list states as bare strings.
        if isinstance(values, str):
            return {"name": values, "engaged": values.strip().lower() != "standby"}
        return values


class AutopilotOptions(SignalKBaseModel):
    states: list[AutopilotStateOption] = Field(default_factory=list)
    modes: list[str] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)

    @field_validator("modes", "actions", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) for item in value]
        return value


class AutopilotInfo(SignalKBaseModel):
    """Current state and capabilities of one V2 autopilot instance."""

    options: AutopilotOptions = Field(default_factory=AutopilotOptions)
    mode: str | None = None
    state: str | None = None
    engaged: bool = False
    target: float | None = None


class AutopilotDetection(SignalKBaseModel):
    """Result of probing which autopilot API the server offers."""

    version: AutopilotApiVersion = AutopilotApiVersion.V1
    instances: list[AutopilotInstance] = Field(default_factory=list)

    @property
    def is_v2(self) -> bool:
        return self.version == AutopilotApiVersion.V2

    @property
    def default_instance(self) -> AutopilotInstance | None:
        """The instance marked default, else the first one."""
        if not self.instances:
            return None
        for instance in self.instances:
            if instance.is_default:
                return instance
        return self.instances[0]
