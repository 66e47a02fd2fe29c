"""Device token DTOs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RegisterDeviceTokenDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    token: str = Field(min_length=1, max_length=512)
    user_agent: str = Field(default="", max_length=255)


class UnregisterDeviceTokenDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    token: str = Field(min_length=1, max_length=512)
