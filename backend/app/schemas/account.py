"""API schemas for account token and claim endpoints."""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    access_token: str = Field(alias="accessToken")
    token_type: str = Field(default="bearer", alias="tokenType")
    premium: bool
    premium_until: Optional[int] = Field(default=None, alias="premiumUntil")

    model_config = ConfigDict(populate_by_name=True)


class EntitlementResponse(BaseModel):
    user_id: str = Field(alias="userId")
    premium: bool
    premium_until: Optional[int] = Field(default=None, alias="premiumUntil")
    active: bool

    model_config = ConfigDict(populate_by_name=True)


class AdminClaimsRequest(BaseModel):
    target_user_id: Optional[str] = Field(default=None, alias="targetUserId")
    action: Optional[str] = None
    days: Optional[int] = Field(default=None, ge=1, le=3650)

    model_config = ConfigDict(populate_by_name=True)


class AdminClaimsResponse(BaseModel):
    success: bool = True
    action: Literal["set", "clear"]
    target_user_id: str = Field(alias="targetUserId")
    premium_until: Optional[str] = Field(default=None, alias="premiumUntil")
    message: str

    model_config = ConfigDict(populate_by_name=True)
