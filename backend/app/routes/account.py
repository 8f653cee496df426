"""API routes for account tokens and premium claims."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Response

from ..auth import Principal, TokenConfig, issue_access_token
from ..auth.dependencies import get_current_principal, get_token_config
from ..entitlements import EntitlementManager, PremiumClaims
from ..entitlements.service import ClaimsStore
from ..payments import (
    InternalError,
    InvalidArgumentError,
    PaymentsConfig,
    PermissionDeniedError,
)
from ..schemas.account import (
    AdminClaimsRequest,
    AdminClaimsResponse,
    EntitlementResponse,
    TokenResponse,
)
from ..services.payments import get_claims_store, get_entitlement_manager, get_payments_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/account", tags=["account"])

DEFAULT_ADMIN_CLAIM_DAYS = 30


@router.post("/token/refresh", response_model=TokenResponse)
def refresh_token(
    response: Response,
    principal: Principal = Depends(get_current_principal),
    claims_store: ClaimsStore = Depends(get_claims_store),
    token_config: TokenConfig = Depends(get_token_config),
) -> TokenResponse:
    """Mint a new token carrying the caller's current premium claim."""

    claims = claims_store.get_claims(principal.user_id) or PremiumClaims.revoked()
    token = issue_access_token(principal, token_config, claims=claims)
    response.set_cookie(
        key=token_config.cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=token_config.cookie_secure,
        max_age=int(timedelta(minutes=token_config.expires_minutes).total_seconds()),
        path="/",
    )
    return TokenResponse(
        access_token=token,
        premium=claims.premium,
        premium_until=claims.premium_until,
    )


@router.get("/entitlement", response_model=EntitlementResponse)
def get_entitlement(principal: Principal = Depends(get_current_principal)) -> EntitlementResponse:
    return EntitlementResponse(
        user_id=principal.user_id,
        premium=principal.claims.premium,
        premium_until=principal.claims.premium_until,
        active=principal.claims.is_active(),
    )


@router.post("/admin/premium-claims", response_model=AdminClaimsResponse)
def admin_set_premium_claims(
    payload: AdminClaimsRequest,
    principal: Principal = Depends(get_current_principal),
    config: PaymentsConfig = Depends(get_payments_config),
    manager: EntitlementManager = Depends(get_entitlement_manager),
) -> AdminClaimsResponse:
    caller_email = (principal.email or "").strip().lower()
    try:
        if not config.claims_admin_email or caller_email != config.claims_admin_email:
            raise PermissionDeniedError("Only the claims administrator may call this endpoint")
        if not payload.target_user_id:
            raise InvalidArgumentError("targetUserId is required")

        if payload.action == "set":
            days = payload.days or DEFAULT_ADMIN_CLAIM_DAYS
            expires_at = datetime.now(timezone.utc) + timedelta(days=days)
            if not manager.set_premium_claims(payload.target_user_id, expires_at):
                raise InternalError("Failed to set premium claims")
            logger.info(
                "Premium claims set by administrator",
                extra={"target_user_id": payload.target_user_id, "days": days, "admin_id": principal.user_id},
            )
            return AdminClaimsResponse(
                action="set",
                target_user_id=payload.target_user_id,
                premium_until=expires_at.isoformat(),
                message=f"Premium claims set for {days} days",
            )

        if payload.action == "clear":
            if not manager.revoke(payload.target_user_id):
                raise InternalError("Failed to clear premium claims")
            logger.info(
                "Premium claims cleared by administrator",
                extra={"target_user_id": payload.target_user_id, "admin_id": principal.user_id},
            )
            return AdminClaimsResponse(
                action="clear",
                target_user_id=payload.target_user_id,
                message="Premium claims cleared",
            )

        raise InvalidArgumentError('action must be "set" or "clear"')
    except (PermissionDeniedError, InvalidArgumentError, InternalError) as exc:
        raise exc.to_http_exception() from exc


__all__ = ["router"]
