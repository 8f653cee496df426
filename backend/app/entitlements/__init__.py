"""Entitlement models and the manager that grants premium access."""

from .models import Entitlement, PremiumClaims, SubscriptionSnapshot, to_epoch_millis
from .service import ClaimsStore, EntitlementManager, EntitlementStore

__all__ = [
    "ClaimsStore",
    "Entitlement",
    "EntitlementManager",
    "EntitlementStore",
    "PremiumClaims",
    "SubscriptionSnapshot",
    "to_epoch_millis",
]
