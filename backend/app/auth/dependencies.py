"""FastAPI dependencies resolving the caller from its access token."""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from .tokens import InvalidTokenError, Principal, TokenConfig, decode_access_token, load_token_config


@lru_cache(maxsize=1)
def get_token_config() -> TokenConfig:
    return load_token_config()


def _extract_token(request: Request, cookie_name: str) -> Optional[str]:
    authorization = request.headers.get("Authorization") or ""
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(cookie_name)


def get_current_principal(
    request: Request,
    config: TokenConfig = Depends(get_token_config),
) -> Principal:
    token = _extract_token(request, config.cookie_name)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        return decode_access_token(token, config)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated") from exc


def require_premium(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Allow only callers whose token carries an unexpired premium claim."""

    if not principal.claims.is_active():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Premium subscription required")
    return principal


__all__ = ["get_current_principal", "get_token_config", "require_premium"]
