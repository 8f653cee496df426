from __future__ import annotations

import pathlib
import sys
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.app.entitlements import Entitlement, EntitlementManager, PremiumClaims
from backend.app.payments import (
    PaymentService,
    PaymentTransaction,
    ProviderStatus,
    QueryResult,
    StartResult,
    TransactionStatus,
    UserProfile,
    load_payments_config,
)
from backend.app.payments.repository import DuplicateTransactionError
from backend.app.plans import Plan

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

TEST_ENV = {
    "SIMPLEPAY_MERCHANT_ID": "M0001",
    "SIMPLEPAY_SECRET_KEY": "test-secret",
    "SIMPLEPAY_ENV": "sandbox",
    "RETURN_BASES": "https://app.lexgo.hu/,https://staging.lexgo.hu",
    "SIMPLEPAY_WEBHOOK_URL": "https://api.lexgo.hu/api/payments/simplepay/webhook",
    "PAYMENTS_ADMIN_EMAILS": "Owner@LexGO.hu",
    "CLAIMS_ADMIN_EMAIL": "claims@lexgo.hu",
}


class InMemoryPaymentRepository:
    def __init__(self) -> None:
        self.transactions: Dict[str, PaymentTransaction] = {}
        self.fail_provider_id_update = False

    def save_transaction(self, transaction: PaymentTransaction) -> PaymentTransaction:
        if transaction.order_ref in self.transactions:
            raise DuplicateTransactionError(transaction.order_ref)
        self.transactions[transaction.order_ref] = transaction
        return transaction

    def get_transaction(self, order_ref: str) -> Optional[PaymentTransaction]:
        return self.transactions.get(order_ref)

    def set_provider_transaction_id(self, order_ref: str, provider_transaction_id: str) -> None:
        if self.fail_provider_id_update:
            raise RuntimeError("database unavailable")
        transaction = self.transactions[order_ref]
        self.transactions[order_ref] = transaction.model_copy(
            update={"provider_transaction_id": provider_transaction_id}
        )

    def mark_transaction_completed(
        self,
        order_ref: str,
        *,
        provider_transaction_id: Optional[str],
        provider_order_id: Optional[str],
    ) -> Optional[PaymentTransaction]:
        transaction = self.transactions.get(order_ref)
        if transaction is None or transaction.status != TransactionStatus.INITIATED:
            return None
        updated = transaction.model_copy(
            update={
                "status": TransactionStatus.COMPLETED,
                "provider_transaction_id": provider_transaction_id or transaction.provider_transaction_id,
                "provider_order_id": provider_order_id or transaction.provider_order_id,
                "completed_at": FIXED_NOW,
            }
        )
        self.transactions[order_ref] = updated
        return updated


class InMemoryUserRepository:
    def __init__(self) -> None:
        self.users: Dict[str, UserProfile] = {}
        self.entitlements: Dict[str, Entitlement] = {}
        self.grants: List[Entitlement] = []

    def add(self, user: UserProfile) -> UserProfile:
        self.users[user.user_id] = user
        return user

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        return self.users.get(user_id)

    def apply_entitlement(self, entitlement: Entitlement) -> None:
        if entitlement.user_id not in self.users:
            raise LookupError(f"User {entitlement.user_id} not found")
        self.entitlements[entitlement.user_id] = entitlement
        self.grants.append(entitlement)


class InMemoryClaimsStore:
    def __init__(self) -> None:
        self.claims: Dict[str, PremiumClaims] = {}
        self.fail = False

    def set_claims(self, user_id: str, claims: PremiumClaims) -> None:
        if self.fail:
            raise RuntimeError("claims backend unavailable")
        self.claims[user_id] = claims

    def get_claims(self, user_id: str) -> Optional[PremiumClaims]:
        return self.claims.get(user_id)


class FakeGateway:
    def __init__(self) -> None:
        self.start_calls: List[dict] = []
        self.query_calls: List[str] = []
        self.start_result = StartResult(
            payment_url="https://sandbox.simplepay.hu/pay/abc",
            provider_transaction_id="501234",
        )
        self.query_result = QueryResult(
            status=ProviderStatus.SUCCESS,
            raw_status="SUCCESS",
            provider_transaction_id="501234",
            provider_order_id="ORD-1",
        )
        self.start_error: Optional[Exception] = None

    def start(self, *, order_ref: str, customer_email: str, plan: Plan, price: int) -> StartResult:
        self.start_calls.append(
            {"order_ref": order_ref, "customer_email": customer_email, "plan": plan, "price": price}
        )
        if self.start_error is not None:
            raise self.start_error
        return self.start_result

    def query(self, order_ref: str) -> QueryResult:
        self.query_calls.append(order_ref)
        return self.query_result


@pytest.fixture
def payments_config():
    return load_payments_config(TEST_ENV)


@pytest.fixture
def payment_repository() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture
def user_repository() -> InMemoryUserRepository:
    users = InMemoryUserRepository()
    users.add(
        UserProfile(
            user_id="u1",
            email="reader@example.com",
            consent_accepted_at=datetime(2025, 12, 1, tzinfo=timezone.utc),
        )
    )
    return users


@pytest.fixture
def claims_store() -> InMemoryClaimsStore:
    return InMemoryClaimsStore()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def entitlement_manager(user_repository, claims_store) -> EntitlementManager:
    return EntitlementManager(user_repository, claims_store, clock=lambda: FIXED_NOW)


@pytest.fixture
def payment_service(payments_config, payment_repository, user_repository, gateway, entitlement_manager):
    return PaymentService(
        config=payments_config,
        repository=payment_repository,
        users=user_repository,
        gateway=gateway,
        entitlements=entitlement_manager,
        clock=lambda: FIXED_NOW,
    )
