"""API schemas for payment endpoints."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..payments import ConfirmationResult, PaymentInitiation


class InitiatePaymentRequest(BaseModel):
    plan_id: Optional[str] = Field(default=None, alias="planId")
    user_id: Optional[str] = Field(default=None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class InitiatePaymentResponse(BaseModel):
    success: bool = True
    payment_url: str = Field(alias="paymentUrl")
    order_ref: str = Field(alias="orderRef")
    amount: int

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_initiation(cls, initiation: PaymentInitiation) -> "InitiatePaymentResponse":
        return cls(
            payment_url=initiation.payment_url,
            order_ref=initiation.order_ref,
            amount=initiation.amount,
        )


class ConfirmPaymentRequest(BaseModel):
    order_ref: Optional[str] = Field(default=None, alias="orderRef")

    model_config = ConfigDict(populate_by_name=True)


class ConfirmPaymentResponse(BaseModel):
    success: bool
    status: str

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: ConfirmationResult) -> "ConfirmPaymentResponse":
        return cls(success=result.success, status=result.status)
