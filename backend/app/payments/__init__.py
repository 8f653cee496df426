"""Payments domain package: SimplePay gateway, transactions, and reconciliation."""

from .config import PaymentsConfig, load_payments_config
from .exceptions import (
    ConfigurationError,
    FailedPreconditionError,
    GatewayError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    PaymentError,
    PermissionDeniedError,
    UnauthorizedError,
)
from .gateway import PaymentGateway, SimplePayClient
from .models import (
    ConfirmationResult,
    OrderReference,
    PaymentInitiation,
    PaymentTransaction,
    ProviderStatus,
    QueryResult,
    StartResult,
    TransactionStatus,
    UserProfile,
    WebhookAck,
    WebhookNotification,
)
from .repository import PaymentRepository, UserRepository
from .service import PaymentService

__all__ = [
    "ConfigurationError",
    "ConfirmationResult",
    "FailedPreconditionError",
    "GatewayError",
    "InternalError",
    "InvalidArgumentError",
    "NotFoundError",
    "OrderReference",
    "PaymentError",
    "PaymentGateway",
    "PaymentInitiation",
    "PaymentRepository",
    "PaymentService",
    "PaymentTransaction",
    "PaymentsConfig",
    "PermissionDeniedError",
    "ProviderStatus",
    "QueryResult",
    "SimplePayClient",
    "StartResult",
    "TransactionStatus",
    "UnauthorizedError",
    "UserProfile",
    "UserRepository",
    "WebhookAck",
    "WebhookNotification",
    "load_payments_config",
]
