from __future__ import annotations

import json
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from backend.app.payments import PaymentTransaction, TransactionStatus
from backend.app.payments.signature import compute_signature
from backend.app.routes import payments as payment_routes
from backend.app.schemas.payments import ConfirmPaymentRequest, InitiatePaymentRequest
from backend.app.services.payments import get_payment_service

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
WEBHOOK_PATH = "/api/payments/simplepay/webhook"


@pytest.fixture
def client(payment_service):
    app = FastAPI()
    app.include_router(payment_routes.router)
    app.dependency_overrides[get_payment_service] = lambda: payment_service
    return TestClient(app)


def _seed(repository, order_ref="WEB_u1_1768478400000"):
    return repository.save_transaction(
        PaymentTransaction(
            order_ref=order_ref,
            user_id="u1",
            plan_id="monthly_premium_prepaid",
            amount=4350,
            source="lexgo",
            created_at=NOW,
            updated_at=NOW,
        )
    )


def test_initiate_route_returns_payment_url(payment_service):
    response = payment_routes.initiate_payment(
        InitiatePaymentRequest(planId="monthly_web", userId="u1"),
        service=payment_service,
    )

    assert response.success is True
    assert response.amount == 4350
    assert response.payment_url == "https://sandbox.simplepay.hu/pay/abc"
    assert response.model_dump(by_alias=True)["orderRef"].startswith("WEB_u1_")


def test_initiate_route_maps_domain_errors(payment_service):
    with pytest.raises(HTTPException) as excinfo:
        payment_routes.initiate_payment(InitiatePaymentRequest(planId="gold", userId="u1"), service=payment_service)

    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == {"error": "invalid-argument", "message": "Invalid plan"}


def test_initiate_route_hides_unexpected_errors():
    def explode(plan_id, user_id):
        raise RuntimeError("database exploded")

    with pytest.raises(HTTPException) as excinfo:
        payment_routes.initiate_payment(
            InitiatePaymentRequest(planId="monthly_web", userId="u1"),
            service=SimpleNamespace(initiate=explode),
        )

    assert excinfo.value.status_code == 500
    assert "database" not in json.dumps(excinfo.value.detail)


def test_confirm_route_reports_completion(payment_service, payment_repository):
    transaction = _seed(payment_repository)

    response = payment_routes.confirm_payment(
        ConfirmPaymentRequest(orderRef=transaction.order_ref),
        service=payment_service,
    )

    assert response.success is True
    assert response.status == "COMPLETED"


def test_confirm_route_unknown_order_is_404(payment_service):
    with pytest.raises(HTTPException) as excinfo:
        payment_routes.confirm_payment(ConfirmPaymentRequest(orderRef="WEB_u1_1"), service=payment_service)

    assert excinfo.value.status_code == 404


def test_initiate_over_http_uses_camel_case(client):
    response = client.post("/api/payments/initiate", json={"planId": "monthly_web", "userId": "u1"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["paymentUrl"] == "https://sandbox.simplepay.hu/pay/abc"
    assert body["amount"] == 4350


def test_webhook_success_over_http(client, payment_repository):
    transaction = _seed(payment_repository)
    body = json.dumps({"status": "SUCCESS", "orderRef": transaction.order_ref}).encode()

    response = client.post(
        WEBHOOK_PATH,
        content=body,
        headers={"Signature": compute_signature(body, "test-secret"), "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.text == "OK"
    assert response.headers["access-control-allow-origin"] == "*"
    assert payment_repository.get_transaction(transaction.order_ref).status == TransactionStatus.COMPLETED


@pytest.mark.parametrize("header", ["x-simplepay-signature", "x-signature"])
def test_webhook_accepts_alternate_signature_headers(client, payment_repository, header):
    transaction = _seed(payment_repository)
    body = json.dumps({"status": "FINISHED", "orderRef": transaction.order_ref}).encode()

    response = client.post(WEBHOOK_PATH, content=body, headers={header: compute_signature(body, "test-secret")})

    assert response.status_code == 200


def test_webhook_bad_signature_is_401(client, payment_repository):
    transaction = _seed(payment_repository)
    body = json.dumps({"status": "SUCCESS", "orderRef": transaction.order_ref}).encode()

    response = client.post(WEBHOOK_PATH, content=body, headers={"Signature": compute_signature(b"{}", "test-secret")})

    assert response.status_code == 401
    assert payment_repository.get_transaction(transaction.order_ref).status == TransactionStatus.INITIATED


def test_webhook_missing_signature_is_401(client):
    response = client.post(WEBHOOK_PATH, content=b'{"status":"SUCCESS"}')

    assert response.status_code == 401


def test_webhook_unknown_order_is_404(client):
    body = b'{"status":"SUCCESS","orderRef":"WEB_u1_1"}'

    response = client.post(WEBHOOK_PATH, content=body, headers={"Signature": compute_signature(body, "test-secret")})

    assert response.status_code == 404


def test_webhook_preflight_is_allowed(client):
    response = client.options(WEBHOOK_PATH)

    assert response.status_code == 200
    assert "POST" in response.headers["access-control-allow-methods"]


def test_webhook_rejects_other_methods(client):
    assert client.get(WEBHOOK_PATH).status_code == 405


def test_webhook_unexpected_error_is_500():
    def explode(raw_body, signature):
        raise RuntimeError("boom")

    app = FastAPI()
    app.include_router(payment_routes.router)
    app.dependency_overrides[get_payment_service] = lambda: SimpleNamespace(handle_webhook=explode)

    response = TestClient(app).post(WEBHOOK_PATH, content=b"{}", headers={"Signature": "x"})

    assert response.status_code == 500
    assert response.text == "Internal error"
