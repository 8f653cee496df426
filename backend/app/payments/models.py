"""Domain models for web payment transactions."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TransactionStatus(str, Enum):
    """Lifecycle status of a payment attempt. Moves forward only."""

    INITIATED = "INITIATED"
    COMPLETED = "COMPLETED"


class ProviderStatus(str, Enum):
    """Statuses reported by SimplePay through query responses and IPN posts."""

    INIT = "INIT"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    NOTAUTHORIZED = "NOTAUTHORIZED"
    INPAYMENT = "INPAYMENT"
    INFRAUD = "INFRAUD"
    AUTHORIZED = "AUTHORIZED"
    FRAUD = "FRAUD"
    REVERSED = "REVERSED"
    REFUND = "REFUND"
    FAIL = "FAIL"
    SUCCESS = "SUCCESS"
    FINISHED = "FINISHED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: object) -> "ProviderStatus":
        """Map a raw provider string onto the enumeration, falling back to ``UNKNOWN``."""

        normalized = str(raw or "").strip().upper()
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_success(self) -> bool:
        return self in {ProviderStatus.SUCCESS, ProviderStatus.FINISHED}


class OrderReference(NamedTuple):
    """Provider-facing order reference encoding its owner and creation time."""

    prefix: str
    user_id: str
    created_ms: int

    def __str__(self) -> str:
        return f"{self.prefix}_{self.user_id}_{self.created_ms}"

    @classmethod
    def build(cls, user_id: str, created_at: datetime, *, prefix: str = "WEB") -> "OrderReference":
        if not user_id:
            raise ValueError("user_id must be provided")
        if "_" in user_id:
            raise ValueError("user_id must not contain underscores")
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        created_ms = (created_at - _EPOCH) // timedelta(milliseconds=1)
        return cls(prefix=prefix, user_id=user_id, created_ms=created_ms)

    @classmethod
    def parse(cls, value: object, *, prefix: str = "WEB") -> "OrderReference":
        """Parse ``WEB_<userId>_<millis>``, raising ``ValueError`` when malformed."""

        if not isinstance(value, str) or not value:
            raise ValueError("order reference must be a non-empty string")
        parts = value.split("_")
        if len(parts) < 3 or parts[0] != prefix or not parts[1]:
            raise ValueError(f"Invalid order reference: {value!r}")
        try:
            created_ms = int(parts[2])
        except ValueError:
            created_ms = 0
        return cls(prefix=parts[0], user_id=parts[1], created_ms=created_ms)


class PaymentTransaction(BaseModel):
    """Persisted record of a single payment attempt."""

    order_ref: str
    user_id: str
    plan_id: str
    amount: int = Field(ge=0)
    status: TransactionStatus = TransactionStatus.INITIATED
    source: str
    provider_transaction_id: Optional[str] = None
    provider_order_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED


class UserProfile(BaseModel):
    """Subset of the user record the payment flows depend on."""

    user_id: str
    email: Optional[str] = None
    is_admin: bool = False
    consent_accepted_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


class StartResult(BaseModel):
    """Successful response of the provider ``start`` call."""

    payment_url: str
    provider_transaction_id: Optional[str] = None
    timeout: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class QueryResult(BaseModel):
    """Interpreted response of the provider ``query`` call."""

    status: ProviderStatus
    raw_status: Optional[str] = None
    provider_transaction_id: Optional[str] = None
    provider_order_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_successful(self) -> bool:
        # Status strings are not reliable on their own; a transaction id also counts.
        return self.status == ProviderStatus.SUCCESS or bool(self.provider_transaction_id)

    @property
    def reported_status(self) -> str:
        return self.raw_status or ProviderStatus.UNKNOWN.value


class PaymentInitiation(BaseModel):
    """Outcome of a started payment returned to the caller."""

    payment_url: str
    order_ref: str
    amount: int

    model_config = ConfigDict(frozen=True)


class ConfirmationResult(BaseModel):
    """Outcome of a client-driven confirmation."""

    success: bool
    status: str

    model_config = ConfigDict(frozen=True)


class WebhookNotification(BaseModel):
    """IPN body posted by the provider."""

    status: Optional[str] = None
    order_ref: Optional[str] = Field(default=None, alias="orderRef")
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")
    order_id: Optional[str] = Field(default=None, alias="orderId")

    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    @property
    def provider_status(self) -> ProviderStatus:
        return ProviderStatus.parse(self.status)


class WebhookAck(BaseModel):
    """Acknowledgement returned to the provider."""

    status_code: int = 200
    message: str = "OK"
    applied: bool = False

    model_config = ConfigDict(frozen=True)


__all__ = [
    "ConfirmationResult",
    "OrderReference",
    "PaymentInitiation",
    "PaymentTransaction",
    "ProviderStatus",
    "QueryResult",
    "StartResult",
    "TransactionStatus",
    "UserProfile",
    "WebhookAck",
    "WebhookNotification",
]
