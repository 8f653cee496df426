"""SimplePay v2 client for the ``start`` and ``query`` endpoints."""
from __future__ import annotations

import json
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Protocol
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request

from ..plans import Plan
from .config import PaymentsConfig
from .exceptions import ConfigurationError, FailedPreconditionError, GatewayError
from .models import ProviderStatus, QueryResult, StartResult
from .signature import compute_signature, serialize_payload

logger = logging.getLogger(__name__)

_REDIRECT_OUTCOMES = {
    "success": "success",
    "fail": "fail",
    "timeout": "timeout",
    "cancel": "cancelled",
}


class PaymentGateway(Protocol):
    """External payment processor integration."""

    def start(
        self,
        *,
        order_ref: str,
        customer_email: str,
        plan: Plan,
        price: int,
    ) -> StartResult:
        """Open a payment at the provider and return its hosted payment page."""

    def query(self, order_ref: str) -> QueryResult:
        """Ask the provider for the current status of ``order_ref``."""


def _format_deadline(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _new_salt() -> str:
    return secrets.token_hex(16)


class SimplePayClient:
    """Builds signed requests against the SimplePay v2 REST API."""

    def __init__(
        self,
        config: PaymentsConfig,
        *,
        urlopen: Optional[Callable[..., Any]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        salt_factory: Callable[[], str] = _new_salt,
    ) -> None:
        self._config = config
        self._urlopen = urlopen or urllib_request.urlopen
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._salt_factory = salt_factory

    def start(
        self,
        *,
        order_ref: str,
        customer_email: str,
        plan: Plan,
        price: int,
    ) -> StartResult:
        payload = self.build_start_payload(
            order_ref=order_ref,
            customer_email=customer_email,
            plan=plan,
            price=price,
        )
        status_code, body = self._post("start", payload, order_ref=order_ref)
        data = _decode_json(body)
        payment_url = data.get("paymentUrl") if isinstance(data, dict) else None
        if not payment_url:
            logger.error(
                "SimplePay start response missing paymentUrl",
                extra={"order_ref": order_ref, "http_status": status_code, "error_codes": _error_codes(data)},
            )
            raise FailedPreconditionError("Payment provider did not return a payment URL")

        transaction_id = data.get("transactionId")
        return StartResult(
            payment_url=str(payment_url),
            provider_transaction_id=str(transaction_id) if transaction_id else None,
            timeout=data.get("timeout"),
        )

    def query(self, order_ref: str) -> QueryResult:
        payload = {
            "salt": self._salt_factory(),
            "merchant": self._config.merchant_id,
            "orderRef": order_ref,
        }
        _, body = self._post("query", payload, order_ref=order_ref)
        data = _decode_json(body)
        if not isinstance(data, dict):
            logger.warning("SimplePay query returned a non-JSON body", extra={"order_ref": order_ref})
            return QueryResult(status=ProviderStatus.UNKNOWN)

        raw_status = data.get("status")
        transaction_id = data.get("transactionId")
        order_id = data.get("orderId")
        return QueryResult(
            status=ProviderStatus.parse(raw_status),
            raw_status=str(raw_status) if raw_status else None,
            provider_transaction_id=str(transaction_id) if transaction_id else None,
            provider_order_id=str(order_id) if order_id else None,
        )

    def build_start_payload(
        self,
        *,
        order_ref: str,
        customer_email: str,
        plan: Plan,
        price: int,
    ) -> Dict[str, Any]:
        config = self._config
        deadline = self._clock() + timedelta(minutes=config.timeout_minutes)
        return {
            "salt": self._salt_factory(),
            "merchant": config.merchant_id,
            "orderRef": order_ref,
            "customerEmail": customer_email,
            "language": config.language,
            "sdkVersion": config.sdk_version,
            "currency": config.currency,
            "timeout": _format_deadline(deadline),
            "methods": list(config.payment_methods),
            "url": config.webhook_url,
            "urls": self.build_redirect_urls(order_ref),
            "items": [
                {
                    "ref": plan.plan_id,
                    "title": plan.name,
                    "description": plan.description,
                    "amount": 1,
                    "price": price,
                }
            ],
        }

    def build_redirect_urls(self, order_ref: str) -> Dict[str, str]:
        base = self._config.return_base
        return {
            key: f"{base}/account?{urllib_parse.urlencode({'payment': outcome, 'orderRef': order_ref})}"
            for key, outcome in _REDIRECT_OUTCOMES.items()
        }

    def _post(self, endpoint: str, payload: Mapping[str, Any], *, order_ref: str) -> tuple[int, bytes]:
        if not self._config.is_configured:
            raise ConfigurationError("Payment provider configuration missing")

        body = serialize_payload(payload)
        signature = compute_signature(body, self._config.secret_key)
        request = urllib_request.Request(
            f"{self._config.base_url}{endpoint}",
            data=body,
            headers={
                "Content-Type": "application/json; charset=utf-8",
                "Signature": signature,
            },
            method="POST",
        )
        try:
            with self._urlopen(request, timeout=self._config.http_timeout_seconds) as response:
                status_code = getattr(response, "status", 200)
                response_body = response.read()
        except urllib_error.HTTPError as exc:
            error_text = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            logger.error(
                "SimplePay HTTP error",
                extra={"endpoint": endpoint, "http_status": exc.code, "error_text": error_text, "order_ref": order_ref},
            )
            raise GatewayError("Payment provider API error") from exc
        except (urllib_error.URLError, TimeoutError, OSError) as exc:
            logger.error(
                "SimplePay request failed",
                extra={"endpoint": endpoint, "error": str(exc), "order_ref": order_ref},
            )
            raise GatewayError("Payment provider unreachable") from exc

        if not 200 <= status_code < 300:
            logger.error(
                "SimplePay unexpected status",
                extra={"endpoint": endpoint, "http_status": status_code, "order_ref": order_ref},
            )
            raise GatewayError("Payment provider API error")
        return status_code, response_body


def _decode_json(body: bytes) -> Optional[Any]:
    try:
        return json.loads(body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def _error_codes(data: Any) -> Any:
    if isinstance(data, dict):
        return data.get("errorCodes")
    return None


__all__ = ["PaymentGateway", "SimplePayClient"]
