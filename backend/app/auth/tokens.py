"""Access tokens carrying the premium claim."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict

from ..entitlements.models import PremiumClaims

JWT_ALGORITHM = "HS256"


class InvalidTokenError(ValueError):
    """The token could not be decoded, has expired, or lacks a subject."""


@dataclass(frozen=True)
class TokenConfig:
    secret_key: str
    expires_minutes: int
    cookie_name: str
    cookie_secure: bool


def load_token_config(env: Optional[Mapping[str, str]] = None) -> TokenConfig:
    env_mapping = os.environ if env is None else env
    return TokenConfig(
        secret_key=env_mapping.get("JWT_SECRET_KEY", "dev-secret-change-me"),
        expires_minutes=int(env_mapping.get("JWT_EXP_MINUTES", str(60 * 24 * 7))),
        cookie_name=env_mapping.get("SESSION_COOKIE_NAME", "session"),
        cookie_secure=env_mapping.get("SESSION_COOKIE_SECURE", "0").lower() in {"1", "true", "yes"},
    )


class Principal(BaseModel):
    """Authenticated caller as described by its access token."""

    user_id: str
    email: Optional[str] = None
    claims: PremiumClaims = PremiumClaims()

    model_config = ConfigDict(frozen=True)


def issue_access_token(
    principal: Principal,
    config: TokenConfig,
    *,
    claims: Optional[PremiumClaims] = None,
    now: Optional[datetime] = None,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    effective_claims = claims if claims is not None else principal.claims
    payload: Dict[str, Any] = {
        "sub": principal.user_id,
        "exp": issued_at + timedelta(minutes=config.expires_minutes),
        **effective_claims.to_claims(),
    }
    if principal.email:
        payload["email"] = principal.email
    return jwt.encode(payload, config.secret_key, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, config: TokenConfig) -> Principal:
    try:
        payload = jwt.decode(token, config.secret_key, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        raise InvalidTokenError("Invalid access token") from exc

    subject = payload.get("sub")
    if not subject:
        raise InvalidTokenError("Access token has no subject")
    return Principal(
        user_id=str(subject),
        email=payload.get("email"),
        claims=PremiumClaims(
            premium=bool(payload.get("premium", False)),
            premium_until=payload.get("premiumUntil"),
        ),
    )


__all__ = [
    "InvalidTokenError",
    "JWT_ALGORITHM",
    "Principal",
    "TokenConfig",
    "decode_access_token",
    "issue_access_token",
    "load_token_config",
]
