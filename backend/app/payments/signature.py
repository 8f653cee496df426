"""HMAC-SHA384 signing shared by outbound requests and inbound IPN posts."""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from typing import Any, Mapping, Optional


class SignatureConfigurationError(ValueError):
    """The shared secret is missing, so nothing can be signed or verified."""


class MissingSignatureError(ValueError):
    """The inbound request carried no signature header."""


def serialize_payload(payload: Mapping[str, Any]) -> bytes:
    """Serialize a request body to the exact bytes that are signed and sent."""

    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_signature(body: bytes, secret: str) -> str:
    if not secret:
        raise SignatureConfigurationError("secret must be provided")
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha384).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(raw_body: bytes, header_signature: Optional[str], secret: Optional[str]) -> bool:
    """Check ``header_signature`` against the MAC of the raw request bytes.

    The body must be the bytes exactly as received; re-serializing parsed JSON
    can change whitespace or key order and break the comparison.
    """

    if not secret:
        raise SignatureConfigurationError("secret must be provided")
    if not header_signature:
        raise MissingSignatureError("signature header missing")

    expected = compute_signature(raw_body, secret).encode("ascii")
    supplied = header_signature.strip().encode("utf-8")
    if len(supplied) != len(expected):
        return False
    return hmac.compare_digest(supplied, expected)


__all__ = [
    "MissingSignatureError",
    "SignatureConfigurationError",
    "compute_signature",
    "serialize_payload",
    "verify_signature",
]
