from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException, Response

from backend.app.auth import Principal, decode_access_token, load_token_config
from backend.app.entitlements import PremiumClaims
from backend.app.routes import account as account_routes
from backend.app.schemas.account import AdminClaimsRequest

TOKEN_CONFIG = load_token_config({"JWT_SECRET_KEY": "unit-test-secret"})
ADMIN = Principal(user_id="admin", email="Claims@LexGO.hu")


def test_refresh_token_embeds_stored_claims(claims_store):
    expires_at = datetime.now(timezone.utc) + timedelta(days=30)
    claims_store.set_claims("u1", PremiumClaims.granted(expires_at))
    response = Response()

    result = account_routes.refresh_token(
        response,
        principal=Principal(user_id="u1", email="reader@example.com"),
        claims_store=claims_store,
        token_config=TOKEN_CONFIG,
    )

    assert result.premium is True
    decoded = decode_access_token(result.access_token, TOKEN_CONFIG)
    assert decoded.claims.is_active() is True
    assert TOKEN_CONFIG.cookie_name in response.headers["set-cookie"]


def test_refresh_token_without_stored_claims_is_not_premium(claims_store):
    result = account_routes.refresh_token(
        Response(),
        principal=Principal(user_id="u1"),
        claims_store=claims_store,
        token_config=TOKEN_CONFIG,
    )

    assert result.premium is False
    assert result.premium_until is None


def test_entitlement_reflects_token_claims():
    principal = Principal(
        user_id="u1", claims=PremiumClaims.granted(datetime.now(timezone.utc) + timedelta(days=2))
    )

    result = account_routes.get_entitlement(principal=principal)

    assert result.user_id == "u1"
    assert result.active is True


def test_admin_can_set_claims(payments_config, entitlement_manager, claims_store):
    result = account_routes.admin_set_premium_claims(
        AdminClaimsRequest(targetUserId="u1", action="set", days=7),
        principal=ADMIN,
        config=payments_config,
        manager=entitlement_manager,
    )

    assert result.action == "set"
    assert result.message == "Premium claims set for 7 days"
    assert claims_store.claims["u1"].premium is True


def test_admin_set_defaults_to_thirty_days(payments_config, entitlement_manager):
    result = account_routes.admin_set_premium_claims(
        AdminClaimsRequest(targetUserId="u1", action="set"),
        principal=ADMIN,
        config=payments_config,
        manager=entitlement_manager,
    )

    assert result.message == "Premium claims set for 30 days"


def test_admin_can_clear_claims(payments_config, entitlement_manager, claims_store):
    claims_store.set_claims("u1", PremiumClaims.granted(datetime.now(timezone.utc) + timedelta(days=3)))

    result = account_routes.admin_set_premium_claims(
        AdminClaimsRequest(targetUserId="u1", action="clear"),
        principal=ADMIN,
        config=payments_config,
        manager=entitlement_manager,
    )

    assert result.action == "clear"
    assert claims_store.claims["u1"].premium is False


def test_non_admin_is_forbidden(payments_config, entitlement_manager):
    with pytest.raises(HTTPException) as excinfo:
        account_routes.admin_set_premium_claims(
            AdminClaimsRequest(targetUserId="u1", action="set"),
            principal=Principal(user_id="u1", email="reader@example.com"),
            config=payments_config,
            manager=entitlement_manager,
        )

    assert excinfo.value.status_code == 403


@pytest.mark.parametrize(
    "payload",
    [
        AdminClaimsRequest(action="set"),
        AdminClaimsRequest(targetUserId="u1", action="extend"),
        AdminClaimsRequest(targetUserId="u1"),
    ],
)
def test_admin_request_validation(payments_config, entitlement_manager, payload):
    with pytest.raises(HTTPException) as excinfo:
        account_routes.admin_set_premium_claims(
            payload, principal=ADMIN, config=payments_config, manager=entitlement_manager
        )

    assert excinfo.value.status_code == 400


def test_admin_claim_store_failure_is_500(payments_config, entitlement_manager, claims_store):
    claims_store.fail = True

    with pytest.raises(HTTPException) as excinfo:
        account_routes.admin_set_premium_claims(
            AdminClaimsRequest(targetUserId="u1", action="clear"),
            principal=ADMIN,
            config=payments_config,
            manager=entitlement_manager,
        )

    assert excinfo.value.status_code == 500
