from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend.app.entitlements import EntitlementManager, PremiumClaims, to_epoch_millis
from backend.app.plans import resolve_plan

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def test_grant_writes_entitlement_and_claims(entitlement_manager, user_repository, claims_store):
    entitlement = entitlement_manager.grant(
        "u1",
        resolve_plan("monthly_web"),
        provider_transaction_id="501234",
        provider_order_id="ORD-1",
    )

    expires_at = NOW + timedelta(days=30)
    assert entitlement.is_subscription_active is True
    assert entitlement.subscription_status == "premium"
    assert entitlement.subscription_end_date == expires_at
    assert entitlement.last_payment_date == NOW
    assert entitlement.free_trial_end_date == NOW
    assert user_repository.entitlements["u1"] == entitlement

    document = entitlement.subscription.to_document()
    assert document == {
        "status": "ACTIVE",
        "productId": "monthly_premium_prepaid",
        "purchaseToken": "501234",
        "orderId": "ORD-1",
        "endTime": expires_at.isoformat(),
        "lastUpdateTime": NOW.isoformat(),
        "source": "lexgo_simplepay",
    }

    assert claims_store.claims["u1"] == PremiumClaims(premium=True, premium_until=to_epoch_millis(expires_at))


def test_grant_uses_configured_subscription_source(user_repository, claims_store):
    manager = EntitlementManager(
        user_repository, claims_store, subscription_source="lexgo_web", clock=lambda: NOW
    )

    entitlement = manager.grant("u1", resolve_plan("monthly_web"), provider_transaction_id=None, provider_order_id=None)

    assert entitlement.subscription.source == "lexgo_web"


def test_grant_for_missing_user_raises_before_claims(entitlement_manager, claims_store):
    with pytest.raises(LookupError):
        entitlement_manager.grant("ghost", resolve_plan("monthly_web"), provider_transaction_id=None, provider_order_id=None)

    assert claims_store.claims == {}


def test_claim_failure_is_swallowed(entitlement_manager, user_repository, claims_store):
    claims_store.fail = True

    entitlement = entitlement_manager.grant(
        "u1", resolve_plan("monthly_web"), provider_transaction_id=None, provider_order_id=None
    )

    assert user_repository.entitlements["u1"] == entitlement
    assert entitlement_manager.set_premium_claims("u1", NOW) is False


def test_revoke_clears_claims(entitlement_manager, claims_store):
    entitlement_manager.set_premium_claims("u1", NOW + timedelta(days=3))

    assert entitlement_manager.revoke("u1") is True
    assert claims_store.claims["u1"] == PremiumClaims.revoked()


def test_revoke_reports_failure(entitlement_manager, claims_store):
    claims_store.fail = True

    assert entitlement_manager.revoke("u1") is False


def test_premium_claims_activity_window():
    claims = PremiumClaims.granted(NOW + timedelta(days=1))

    assert claims.is_active(NOW) is True
    assert claims.is_active(NOW + timedelta(days=2)) is False
    assert PremiumClaims.revoked().is_active(NOW) is False
    assert claims.to_claims() == {"premium": True, "premiumUntil": to_epoch_millis(NOW + timedelta(days=1))}


def test_naive_datetimes_are_treated_as_utc():
    assert to_epoch_millis(datetime(2026, 1, 15, 12, 0)) == to_epoch_millis(NOW)
