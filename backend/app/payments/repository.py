"""Persistence layer for payment transactions and user entitlement fields."""
from __future__ import annotations

from typing import Optional, Protocol

import psycopg2.errors
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection

from ..db import dict_cursor
from ..entitlements.models import Entitlement
from .models import PaymentTransaction, TransactionStatus, UserProfile


class DuplicateTransactionError(Exception):
    """A transaction with the same order reference is already stored."""

    def __init__(self, order_ref: str) -> None:
        super().__init__(f"Payment transaction {order_ref} already exists")
        self.order_ref = order_ref


class PaymentRepository(Protocol):
    """Persistence operations required by the payment service."""

    def save_transaction(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """Insert a new transaction, raising ``DuplicateTransactionError`` if its order ref exists."""

    def get_transaction(self, order_ref: str) -> Optional[PaymentTransaction]:
        ...

    def set_provider_transaction_id(self, order_ref: str, provider_transaction_id: str) -> None:
        ...

    def mark_transaction_completed(
        self,
        order_ref: str,
        *,
        provider_transaction_id: Optional[str],
        provider_order_id: Optional[str],
    ) -> Optional[PaymentTransaction]:
        """Move ``order_ref`` from INITIATED to COMPLETED.

        Returns ``None`` when the row is missing or was already completed.
        """


class UserRepository(Protocol):
    """Read access to user profiles plus the entitlement write path."""

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        ...

    def apply_entitlement(self, entitlement: Entitlement) -> None:
        ...


def _row_to_transaction(row: dict) -> PaymentTransaction:
    return PaymentTransaction(
        order_ref=row["order_ref"],
        user_id=row["user_id"],
        plan_id=row["plan_id"],
        amount=int(row["amount"]),
        status=TransactionStatus(row["status"]),
        source=row["source"],
        provider_transaction_id=row.get("provider_transaction_id"),
        provider_order_id=row.get("provider_order_id"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        completed_at=row.get("completed_at"),
    )


def _row_to_user(row: dict) -> UserProfile:
    return UserProfile(
        user_id=row["id"],
        email=row.get("email"),
        is_admin=bool(row.get("is_admin")),
        consent_accepted_at=row.get("data_transfer_consent_accepted_at"),
    )


class PostgresPaymentRepository:
    """Concrete repository persisting payment attempts in PostgreSQL."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def save_transaction(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """Insert a new payment attempt. Order references are never reused."""

        try:
            return self._insert_transaction(transaction)
        except psycopg2.errors.UniqueViolation as exc:
            raise DuplicateTransactionError(transaction.order_ref) from exc

    def _insert_transaction(self, transaction: PaymentTransaction) -> PaymentTransaction:
        with dict_cursor(self._conn) as cursor:
            cursor.execute(
                """
                INSERT INTO web_payments (
                    order_ref,
                    user_id,
                    plan_id,
                    amount,
                    status,
                    source,
                    provider_transaction_id,
                    provider_order_id,
                    created_at,
                    updated_at
                )
                VALUES (%(order_ref)s, %(user_id)s, %(plan_id)s, %(amount)s, %(status)s,
                        %(source)s, %(provider_transaction_id)s, %(provider_order_id)s,
                        %(created_at)s, %(updated_at)s)
                RETURNING *
                """,
                {
                    "order_ref": transaction.order_ref,
                    "user_id": transaction.user_id,
                    "plan_id": transaction.plan_id,
                    "amount": transaction.amount,
                    "status": transaction.status.value,
                    "source": transaction.source,
                    "provider_transaction_id": transaction.provider_transaction_id,
                    "provider_order_id": transaction.provider_order_id,
                    "created_at": transaction.created_at,
                    "updated_at": transaction.updated_at,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist payment transaction")
            return _row_to_transaction(row)

    def get_transaction(self, order_ref: str) -> Optional[PaymentTransaction]:
        with dict_cursor(self._conn) as cursor:
            cursor.execute(
                """
                SELECT *
                FROM web_payments
                WHERE order_ref = %s
                LIMIT 1
                """,
                (order_ref,),
            )
            row = cursor.fetchone()
            return _row_to_transaction(row) if row else None

    def set_provider_transaction_id(self, order_ref: str, provider_transaction_id: str) -> None:
        with dict_cursor(self._conn) as cursor:
            cursor.execute(
                """
                UPDATE web_payments
                SET provider_transaction_id = %s,
                    updated_at = NOW()
                WHERE order_ref = %s
                """,
                (provider_transaction_id, order_ref),
            )

    def mark_transaction_completed(
        self,
        order_ref: str,
        *,
        provider_transaction_id: Optional[str],
        provider_order_id: Optional[str],
    ) -> Optional[PaymentTransaction]:
        with dict_cursor(self._conn) as cursor:
            cursor.execute(
                """
                UPDATE web_payments
                SET status = %(completed)s,
                    provider_transaction_id = COALESCE(%(provider_transaction_id)s, provider_transaction_id),
                    provider_order_id = COALESCE(%(provider_order_id)s, provider_order_id),
                    completed_at = NOW(),
                    updated_at = NOW()
                WHERE order_ref = %(order_ref)s
                  AND status = %(initiated)s
                RETURNING *
                """,
                {
                    "order_ref": order_ref,
                    "completed": TransactionStatus.COMPLETED.value,
                    "initiated": TransactionStatus.INITIATED.value,
                    "provider_transaction_id": provider_transaction_id,
                    "provider_order_id": provider_order_id,
                },
            )
            row = cursor.fetchone()
            return _row_to_transaction(row) if row else None


class PostgresUserRepository:
    """Reads user profiles and merges entitlement columns into them."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        with dict_cursor(self._conn) as cursor:
            cursor.execute(
                """
                SELECT id, email, is_admin, data_transfer_consent_accepted_at
                FROM users
                WHERE id = %s
                LIMIT 1
                """,
                (user_id,),
            )
            row = cursor.fetchone()
            return _row_to_user(row) if row else None

    def apply_entitlement(self, entitlement: Entitlement) -> None:
        """Update only the entitlement columns; other profile fields are left alone."""

        with dict_cursor(self._conn) as cursor:
            cursor.execute(
                """
                UPDATE users
                SET is_subscription_active = %(is_subscription_active)s,
                    subscription_status = %(subscription_status)s,
                    subscription_end_date = %(subscription_end_date)s,
                    subscription = %(subscription)s,
                    last_payment_date = %(last_payment_date)s,
                    free_trial_end_date = %(free_trial_end_date)s,
                    last_reminder = NULL,
                    updated_at = NOW()
                WHERE id = %(user_id)s
                """,
                {
                    "user_id": entitlement.user_id,
                    "is_subscription_active": entitlement.is_subscription_active,
                    "subscription_status": entitlement.subscription_status,
                    "subscription_end_date": entitlement.subscription_end_date,
                    "subscription": psycopg2.extras.Json(entitlement.subscription.to_document()),
                    "last_payment_date": entitlement.last_payment_date,
                    "free_trial_end_date": entitlement.free_trial_end_date,
                },
            )
            if cursor.rowcount == 0:
                raise LookupError(f"User {entitlement.user_id} not found")


__all__ = [
    "DuplicateTransactionError",
    "PaymentRepository",
    "PostgresPaymentRepository",
    "PostgresUserRepository",
    "UserRepository",
]
