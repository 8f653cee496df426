"""Application wiring for the payment service."""
from __future__ import annotations

from functools import lru_cache

from ..entitlements import EntitlementManager
from ..entitlements.claims import PostgresClaimsStore
from ..payments import PaymentService, PaymentsConfig, SimplePayClient, load_payments_config
from ..payments.repository import PostgresPaymentRepository, PostgresUserRepository


@lru_cache(maxsize=1)
def get_payments_config() -> PaymentsConfig:
    return load_payments_config()


@lru_cache(maxsize=1)
def get_claims_store() -> PostgresClaimsStore:
    return PostgresClaimsStore()


@lru_cache(maxsize=1)
def get_entitlement_manager() -> EntitlementManager:
    config = get_payments_config()
    return EntitlementManager(
        store=PostgresUserRepository(),
        claims_store=get_claims_store(),
        subscription_source=config.subscription_source,
    )


@lru_cache(maxsize=1)
def get_payment_service() -> PaymentService:
    config = get_payments_config()
    return PaymentService(
        config=config,
        repository=PostgresPaymentRepository(),
        users=PostgresUserRepository(),
        gateway=SimplePayClient(config),
        entitlements=get_entitlement_manager(),
    )


__all__ = [
    "get_claims_store",
    "get_entitlement_manager",
    "get_payment_service",
    "get_payments_config",
]
