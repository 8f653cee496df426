"""Domain models for premium entitlement state."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def to_epoch_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


class PremiumClaims(BaseModel):
    """Fast-path authorization attribute mirrored onto the user's credential."""

    premium: bool = False
    premium_until: Optional[int] = Field(default=None, alias="premiumUntil")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @classmethod
    def granted(cls, expires_at: datetime) -> "PremiumClaims":
        return cls(premium=True, premium_until=to_epoch_millis(expires_at))

    @classmethod
    def revoked(cls) -> "PremiumClaims":
        return cls(premium=False, premium_until=None)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        if not self.premium or self.premium_until is None:
            return False
        current = now or datetime.now(timezone.utc)
        return self.premium_until > to_epoch_millis(current)

    def to_claims(self) -> Dict[str, Any]:
        """Represent the claim the way it is embedded in tokens."""

        return {"premium": self.premium, "premiumUntil": self.premium_until}


class SubscriptionSnapshot(BaseModel):
    """Embedded record of the purchase that produced the current entitlement."""

    status: str = "ACTIVE"
    product_id: str = Field(alias="productId")
    purchase_token: Optional[str] = Field(default=None, alias="purchaseToken")
    order_id: Optional[str] = Field(default=None, alias="orderId")
    end_time: datetime = Field(alias="endTime")
    last_update_time: datetime = Field(alias="lastUpdateTime")
    source: str

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_document(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "productId": self.product_id,
            "purchaseToken": self.purchase_token,
            "orderId": self.order_id,
            "endTime": self.end_time.isoformat(),
            "lastUpdateTime": self.last_update_time.isoformat(),
            "source": self.source,
        }


class Entitlement(BaseModel):
    """Premium fields written onto a user record by a successful payment."""

    user_id: str
    is_subscription_active: bool = True
    subscription_status: str = "premium"
    subscription_end_date: datetime
    subscription: SubscriptionSnapshot
    last_payment_date: datetime
    free_trial_end_date: datetime

    model_config = ConfigDict(frozen=True)

    @property
    def claims(self) -> PremiumClaims:
        return PremiumClaims.granted(self.subscription_end_date)


__all__ = ["Entitlement", "PremiumClaims", "SubscriptionSnapshot", "to_epoch_millis"]
