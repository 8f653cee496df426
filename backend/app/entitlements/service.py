"""Applies and revokes premium entitlement for user accounts."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from ..plans import Plan
from .models import Entitlement, PremiumClaims, SubscriptionSnapshot

logger = logging.getLogger(__name__)


class EntitlementStore(Protocol):
    """Durable storage of entitlement fields on the user record."""

    def apply_entitlement(self, entitlement: Entitlement) -> None:
        """Merge ``entitlement`` into the user record and drop pending reminders."""


class ClaimsStore(Protocol):
    """Storage for claims embedded into newly issued access tokens."""

    def set_claims(self, user_id: str, claims: PremiumClaims) -> None:
        ...

    def get_claims(self, user_id: str) -> Optional[PremiumClaims]:
        ...


class EntitlementManager:
    """Writes the durable entitlement record and mirrors it into token claims."""

    def __init__(
        self,
        store: EntitlementStore,
        claims_store: ClaimsStore,
        *,
        subscription_source: str = "lexgo_simplepay",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._claims_store = claims_store
        self._subscription_source = subscription_source
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def grant(
        self,
        user_id: str,
        plan: Plan,
        *,
        provider_transaction_id: Optional[str],
        provider_order_id: Optional[str],
    ) -> Entitlement:
        """Activate premium access for ``plan.subscription_days`` from now."""

        now = self._clock()
        expires_at = now + timedelta(days=plan.subscription_days)
        entitlement = Entitlement(
            user_id=user_id,
            subscription_end_date=expires_at,
            subscription=SubscriptionSnapshot(
                product_id=plan.plan_id,
                purchase_token=provider_transaction_id,
                order_id=provider_order_id,
                end_time=expires_at,
                last_update_time=now,
                source=self._subscription_source,
            ),
            last_payment_date=now,
            free_trial_end_date=now,
        )
        self._store.apply_entitlement(entitlement)
        self.set_premium_claims(user_id, expires_at)
        logger.info(
            "Entitlement granted",
            extra={"user_id": user_id, "plan_id": plan.plan_id, "expires_at": expires_at.isoformat()},
        )
        return entitlement

    def revoke(self, user_id: str) -> bool:
        """Drop the premium claim; the stored entitlement is left for the expiry sweep."""

        return self.clear_premium_claims(user_id)

    def set_premium_claims(self, user_id: str, expires_at: datetime) -> bool:
        # The persisted entitlement stays authoritative; a failed claim write only
        # costs downstream checks a storage read.
        try:
            self._claims_store.set_claims(user_id, PremiumClaims.granted(expires_at))
        except Exception:
            logger.exception("Failed to set premium claims", extra={"user_id": user_id})
            return False
        logger.info(
            "Premium claims set",
            extra={"user_id": user_id, "expires_at": expires_at.isoformat()},
        )
        return True

    def clear_premium_claims(self, user_id: str) -> bool:
        try:
            self._claims_store.set_claims(user_id, PremiumClaims.revoked())
        except Exception:
            logger.exception("Failed to clear premium claims", extra={"user_id": user_id})
            return False
        logger.info("Premium claims cleared", extra={"user_id": user_id})
        return True


__all__ = ["ClaimsStore", "EntitlementManager", "EntitlementStore"]
