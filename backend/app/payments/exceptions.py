"""Typed errors raised by the payment flows."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping, Optional

from fastapi import HTTPException, status


@dataclass(eq=False)
class PaymentError(Exception):
    """Represents a payment failure surfaced to API callers."""

    message: str
    detail: Optional[Mapping[str, Any]] = None
    code: ClassVar[str] = "internal"
    status_code: ClassVar[int] = status.HTTP_500_INTERNAL_SERVER_ERROR
    _payload: Dict[str, Any] = field(init=False, repr=False, default_factory=dict)

    def __post_init__(self) -> None:
        base_detail: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail:
            base_detail.update(self.detail)
        self._payload = base_detail
        super().__init__(self.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        """Serialized representation suitable for JSON responses."""

        return self._payload

    def to_http_exception(self) -> HTTPException:
        """Convert the domain error into a FastAPI HTTPException."""

        return HTTPException(status_code=self.status_code, detail=dict(self.payload))


class InvalidArgumentError(PaymentError):
    code = "invalid-argument"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(PaymentError):
    code = "not-found"
    status_code = status.HTTP_404_NOT_FOUND


class FailedPreconditionError(PaymentError):
    code = "failed-precondition"
    status_code = status.HTTP_400_BAD_REQUEST


class ConfigurationError(FailedPreconditionError):
    """Required payment settings are missing."""


class UnauthorizedError(PaymentError):
    code = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(PaymentError):
    code = "permission-denied"
    status_code = status.HTTP_403_FORBIDDEN


class InternalError(PaymentError):
    code = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class GatewayError(InternalError):
    """The payment provider could not be reached or rejected the request."""


__all__ = [
    "ConfigurationError",
    "FailedPreconditionError",
    "GatewayError",
    "InternalError",
    "InvalidArgumentError",
    "NotFoundError",
    "PaymentError",
    "PermissionDeniedError",
    "UnauthorizedError",
]
