"""Payment provider configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Tuple
import logging
import os

logger = logging.getLogger(__name__)

SANDBOX_BASE_URL = "https://sandbox.simplepay.hu/payment/v2/"
PRODUCTION_BASE_URL = "https://secure.simplepay.hu/payment/v2/"


@dataclass(frozen=True)
class PaymentsConfig:
    """Configuration for the SimplePay integration and entitlement rules."""

    merchant_id: str
    secret_key: str
    environment: str
    base_url: str
    return_bases: Tuple[str, ...]
    webhook_url: str
    currency: str
    language: str
    payment_methods: Tuple[str, ...]
    sdk_version: str
    timeout_minutes: int
    http_timeout_seconds: float
    source_tag: str
    subscription_source: str
    order_prefix: str
    admin_emails: Tuple[str, ...]
    admin_price: int
    claims_admin_email: Optional[str]

    @property
    def is_configured(self) -> bool:
        # Without an IPN URL the provider has nowhere to push results.
        return bool(self.merchant_id and self.secret_key and self.base_url and self.webhook_url)

    @property
    def return_base(self) -> str:
        if not self.return_bases:
            return ""
        return self.return_bases[0].rstrip("/")

    def is_admin_email(self, email: Optional[str]) -> bool:
        if not email:
            return False
        return email.strip().lower() in self.admin_emails


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def _split_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def load_payments_config(env: Optional[Mapping[str, str]] = None) -> PaymentsConfig:
    """Load :class:`PaymentsConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    environment = (env_mapping.get("SIMPLEPAY_ENV") or "sandbox").strip().lower() or "sandbox"
    base_url = PRODUCTION_BASE_URL if environment == "production" else SANDBOX_BASE_URL

    return_bases = _split_csv(env_mapping.get("RETURN_BASES") or env_mapping.get("NEXTAUTH_URL"))
    methods = _split_csv(env_mapping.get("SIMPLEPAY_METHODS")) or ("CARD",)
    admin_emails = tuple(email.lower() for email in _split_csv(env_mapping.get("PAYMENTS_ADMIN_EMAILS")))
    claims_admin_email = (env_mapping.get("CLAIMS_ADMIN_EMAIL") or "").strip().lower() or None

    config = PaymentsConfig(
        merchant_id=(env_mapping.get("SIMPLEPAY_MERCHANT_ID") or "").strip(),
        secret_key=(env_mapping.get("SIMPLEPAY_SECRET_KEY") or "").strip(),
        environment=environment,
        base_url=base_url,
        return_bases=return_bases,
        webhook_url=(env_mapping.get("SIMPLEPAY_WEBHOOK_URL") or "").strip(),
        currency=(env_mapping.get("SIMPLEPAY_CURRENCY") or "HUF").strip().upper(),
        language=(env_mapping.get("SIMPLEPAY_LANGUAGE") or "HU").strip().upper(),
        payment_methods=tuple(method.upper() for method in methods),
        sdk_version=env_mapping.get("SIMPLEPAY_SDK_VERSION", "LexGO_Functions_v1"),
        timeout_minutes=max(1, _to_int(env_mapping.get("SIMPLEPAY_TIMEOUT_MINUTES"), default=30)),
        http_timeout_seconds=max(1.0, _to_float(env_mapping.get("SIMPLEPAY_HTTP_TIMEOUT"), default=15.0)),
        source_tag=(env_mapping.get("PAYMENTS_SOURCE_TAG") or "lexgo").strip(),
        subscription_source=(env_mapping.get("PAYMENTS_SUBSCRIPTION_SOURCE") or "lexgo_simplepay").strip(),
        order_prefix="WEB",
        admin_emails=admin_emails,
        admin_price=max(0, _to_int(env_mapping.get("PAYMENTS_ADMIN_PRICE"), default=5)),
        claims_admin_email=claims_admin_email,
    )
    if config.merchant_id and config.secret_key and not config.webhook_url:
        logger.warning("SIMPLEPAY_WEBHOOK_URL is not set; payments stay disabled until it is configured")
    return config
