"""Coordinates payment initiation, confirmation, and IPN reconciliation."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from ..entitlements import EntitlementManager
from ..plans import Plan, UnknownPlanError, resolve_plan
from .config import PaymentsConfig
from .exceptions import (
    ConfigurationError,
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
    UnauthorizedError,
)
from .gateway import PaymentGateway
from .models import (
    ConfirmationResult,
    OrderReference,
    PaymentInitiation,
    PaymentTransaction,
    TransactionStatus,
    UserProfile,
    WebhookAck,
    WebhookNotification,
)
from .repository import DuplicateTransactionError, PaymentRepository, UserRepository
from .signature import MissingSignatureError, verify_signature

logger = logging.getLogger("payments")

ORDER_REF_ATTEMPTS = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PaymentService:
    """Runs the three payment entry points over one reconciliation step."""

    config: PaymentsConfig
    repository: PaymentRepository
    users: UserRepository
    gateway: PaymentGateway
    entitlements: EntitlementManager
    clock: Callable[[], datetime] = field(default=_utcnow)

    def initiate(self, plan_id: Optional[str], user_id: Optional[str]) -> PaymentInitiation:
        logger.info("Initiating payment", extra={"plan_id": plan_id, "user_id": user_id})
        if not plan_id or not user_id:
            raise InvalidArgumentError("planId and userId are required")

        try:
            plan = resolve_plan(plan_id)
        except UnknownPlanError as exc:
            raise InvalidArgumentError("Invalid plan") from exc

        if not self.config.is_configured:
            raise ConfigurationError("Payment provider configuration missing")

        user = self.users.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.consent_accepted_at is None:
            raise FailedPreconditionError("Data transfer consent must be accepted before paying")
        if not user.email:
            raise FailedPreconditionError("User has no email address")

        amount = self.price_for(user, plan)
        # The row is written before the provider reserves the order so every
        # provider-side order has a local record that confirm and IPN can find.
        order_ref = self._record_initiation(user_id, plan, amount)

        started = self.gateway.start(
            order_ref=order_ref,
            customer_email=user.email,
            plan=plan,
            price=amount,
        )
        if started.provider_transaction_id:
            self._remember_provider_transaction(order_ref, started.provider_transaction_id)

        logger.info(
            "Payment initiated",
            extra={"order_ref": order_ref, "user_id": user_id, "amount": amount},
        )
        return PaymentInitiation(payment_url=started.payment_url, order_ref=order_ref, amount=amount)

    def confirm(self, order_ref: Optional[str]) -> ConfirmationResult:
        reference = self._parse_order_ref(order_ref)
        if not self.config.is_configured:
            raise ConfigurationError("Payment provider configuration missing")

        transaction = self.repository.get_transaction(str(order_ref))
        if transaction is None:
            raise NotFoundError("Payment record not found")
        if transaction.source != self.config.source_tag:
            raise FailedPreconditionError("Payment does not belong to this product")
        if transaction.user_id != reference.user_id:
            raise FailedPreconditionError("Payment record does not match its order reference")

        try:
            plan = resolve_plan(transaction.plan_id)
        except UnknownPlanError as exc:
            raise FailedPreconditionError("Invalid plan") from exc

        if transaction.is_completed:
            return ConfirmationResult(success=True, status=TransactionStatus.COMPLETED.value)

        result = self.gateway.query(transaction.order_ref)
        if not result.is_successful:
            logger.warning(
                "Payment not confirmed by provider",
                extra={"order_ref": transaction.order_ref, "provider_status": result.reported_status},
            )
            return ConfirmationResult(success=False, status=result.reported_status)

        self.reconcile(
            transaction,
            plan,
            provider_transaction_id=result.provider_transaction_id or transaction.provider_transaction_id,
            provider_order_id=result.provider_order_id,
        )
        logger.info("Payment confirmed", extra={"order_ref": transaction.order_ref, "user_id": reference.user_id})
        return ConfirmationResult(success=True, status=TransactionStatus.COMPLETED.value)

    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> WebhookAck:
        if not self.config.secret_key:
            raise ConfigurationError("Payment provider secret not configured")
        try:
            valid = verify_signature(raw_body, signature, self.config.secret_key)
        except MissingSignatureError as exc:
            raise UnauthorizedError("Missing signature") from exc
        if not valid:
            logger.warning("Rejected IPN with invalid signature")
            raise UnauthorizedError("Invalid signature")

        notification = self._parse_notification(raw_body)
        provider_status = notification.provider_status
        logger.info(
            "IPN received",
            extra={"provider_status": provider_status.value, "order_ref": notification.order_ref},
        )
        if not provider_status.is_success:
            return WebhookAck(message="OK")

        reference = self._parse_order_ref(notification.order_ref)
        transaction = self.repository.get_transaction(str(notification.order_ref))
        if transaction is None:
            raise NotFoundError("Payment record not found")
        if transaction.source != self.config.source_tag:
            logger.info("IPN for another product ignored", extra={"order_ref": transaction.order_ref})
            return WebhookAck(message="OK - not handled")
        if transaction.user_id != reference.user_id:
            raise InvalidArgumentError("Payment record does not match its order reference")

        try:
            plan = resolve_plan(transaction.plan_id)
        except UnknownPlanError as exc:
            raise InvalidArgumentError("Invalid plan") from exc

        applied = self.reconcile(
            transaction,
            plan,
            provider_transaction_id=notification.transaction_id or transaction.provider_transaction_id,
            provider_order_id=notification.order_id,
        )
        logger.info(
            "IPN processed",
            extra={"order_ref": transaction.order_ref, "user_id": reference.user_id, "applied": applied},
        )
        return WebhookAck(message="OK", applied=applied)

    def reconcile(
        self,
        transaction: PaymentTransaction,
        plan: Plan,
        *,
        provider_transaction_id: Optional[str],
        provider_order_id: Optional[str],
    ) -> bool:
        """Grant the plan and complete the transaction.

        Returns ``True`` only for the call that moved the transaction to
        COMPLETED. A completed transaction is never granted again; two racing
        calls may both grant, which only rewrites the same expiry.
        """

        if transaction.is_completed:
            logger.info("Payment already reconciled", extra={"order_ref": transaction.order_ref})
            return False

        self.entitlements.grant(
            transaction.user_id,
            plan,
            provider_transaction_id=provider_transaction_id,
            provider_order_id=provider_order_id,
        )
        completed = self.repository.mark_transaction_completed(
            transaction.order_ref,
            provider_transaction_id=provider_transaction_id,
            provider_order_id=provider_order_id,
        )
        if completed is None:
            logger.info("Payment completed concurrently", extra={"order_ref": transaction.order_ref})
            return False
        return True

    def _record_initiation(self, user_id: str, plan: Plan, amount: int) -> str:
        """Store the INITIATED row under a fresh order reference and return it.

        References only have millisecond resolution, so a collision with a
        concurrent initiate for the same user moves on to the next millisecond.
        """

        now = self.clock()
        for offset in range(ORDER_REF_ATTEMPTS):
            created_at = now + timedelta(milliseconds=offset)
            try:
                order_ref = str(OrderReference.build(user_id, created_at, prefix=self.config.order_prefix))
            except ValueError as exc:
                raise InvalidArgumentError("Invalid userId") from exc
            try:
                self.repository.save_transaction(
                    PaymentTransaction(
                        order_ref=order_ref,
                        user_id=user_id,
                        plan_id=plan.plan_id,
                        amount=amount,
                        status=TransactionStatus.INITIATED,
                        source=self.config.source_tag,
                        created_at=now,
                        updated_at=now,
                    )
                )
            except DuplicateTransactionError:
                logger.warning("Order reference already taken", extra={"order_ref": order_ref, "user_id": user_id})
                continue
            return order_ref
        raise FailedPreconditionError("Another payment for this user is being started; try again")

    def price_for(self, user: UserProfile, plan: Plan) -> int:
        if user.is_admin or self.config.is_admin_email(user.email):
            return self.config.admin_price
        return plan.price

    def _parse_order_ref(self, order_ref: Optional[str]) -> OrderReference:
        try:
            return OrderReference.parse(order_ref, prefix=self.config.order_prefix)
        except ValueError as exc:
            raise InvalidArgumentError("Invalid order reference") from exc

    def _parse_notification(self, raw_body: bytes) -> WebhookNotification:
        try:
            data = json.loads(raw_body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidArgumentError("Malformed payload") from exc
        if not isinstance(data, dict):
            raise InvalidArgumentError("Malformed payload")
        try:
            return WebhookNotification.model_validate(data)
        except ValidationError as exc:
            raise InvalidArgumentError("Malformed payload") from exc

    def _remember_provider_transaction(self, order_ref: str, provider_transaction_id: str) -> None:
        try:
            self.repository.set_provider_transaction_id(order_ref, provider_transaction_id)
        except Exception:
            # Confirm falls back to the id returned by the query call.
            logger.exception(
                "Failed to store provider transaction id",
                extra={"order_ref": order_ref, "provider_transaction_id": provider_transaction_id},
            )


__all__ = ["PaymentService"]
