"""API routes exposing the web payment flow."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from ..payments import (
    ConfigurationError,
    InternalError,
    PaymentError,
    PaymentService,
)
from ..schemas.payments import (
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
)
from ..services.payments import get_payment_service

logger = logging.getLogger("payments")

router = APIRouter(prefix="/api/payments", tags=["payments"])

WEBHOOK_PATH = "/simplepay/webhook"
WEBHOOK_ROUTE = f"{router.prefix}{WEBHOOK_PATH}"

SIGNATURE_HEADERS = ("signature", "x-simplepay-signature", "x-signature")
WEBHOOK_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Signature, x-simplepay-signature, x-signature",
}


def _internal_error(message: str) -> Exception:
    logger.exception(message)
    return InternalError("Unexpected server error").to_http_exception()


@router.post("/initiate", response_model=InitiatePaymentResponse)
def initiate_payment(
    payload: InitiatePaymentRequest,
    service: PaymentService = Depends(get_payment_service),
) -> InitiatePaymentResponse:
    try:
        initiation = service.initiate(payload.plan_id, payload.user_id)
    except PaymentError as exc:
        logger.warning(
            "Payment initiation rejected",
            extra={"error_code": exc.code, "error_message": exc.message, "user_id": payload.user_id},
        )
        raise exc.to_http_exception() from exc
    except Exception as exc:
        raise _internal_error("Unexpected error while initiating payment") from exc
    return InitiatePaymentResponse.from_initiation(initiation)


@router.post("/confirm", response_model=ConfirmPaymentResponse)
def confirm_payment(
    payload: ConfirmPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
) -> ConfirmPaymentResponse:
    try:
        result = service.confirm(payload.order_ref)
    except PaymentError as exc:
        logger.warning(
            "Payment confirmation rejected",
            extra={"error_code": exc.code, "error_message": exc.message, "order_ref": payload.order_ref},
        )
        raise exc.to_http_exception() from exc
    except Exception as exc:
        raise _internal_error("Unexpected error while confirming payment") from exc
    return ConfirmPaymentResponse.from_result(result)


def _read_signature(request: Request) -> Optional[str]:
    for header in SIGNATURE_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return None


def _plain(status_code: int, content: str) -> PlainTextResponse:
    return PlainTextResponse(content, status_code=status_code, headers=WEBHOOK_CORS_HEADERS)


@router.api_route(
    WEBHOOK_PATH,
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    include_in_schema=False,
)
async def simplepay_webhook(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
) -> PlainTextResponse:
    if request.method == "OPTIONS":
        return _plain(status.HTTP_200_OK, "")
    if request.method != "POST":
        return _plain(status.HTTP_405_METHOD_NOT_ALLOWED, "Method not allowed")

    raw_body = await request.body()
    signature = _read_signature(request)
    try:
        ack = await run_in_threadpool(service.handle_webhook, raw_body, signature)
    except ConfigurationError as exc:
        logger.error("IPN rejected: %s", exc.message)
        return _plain(status.HTTP_500_INTERNAL_SERVER_ERROR, "Configuration error")
    except PaymentError as exc:
        logger.warning("IPN rejected", extra={"error_code": exc.code, "error_message": exc.message})
        return _plain(exc.status_code, exc.message)
    except Exception:
        logger.exception("Unexpected error while processing IPN")
        return _plain(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal error")
    return _plain(ack.status_code, ack.message)


__all__ = ["WEBHOOK_ROUTE", "router"]
