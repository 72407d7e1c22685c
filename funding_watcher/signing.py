from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from typing import Union

from funding_watcher.constants import SERVICE_TOKEN_SCOPE, SERVICE_TOKEN_TTL_SEC


def sign_callback(timestamp_ms: str, payload: Union[bytes, str], secret: str) -> str:
    """
    Signature for outbound funding callbacks.
    Data to sign: <timestamp_ms>.<raw body>, hex encoded HMAC-SHA256.
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    message = timestamp_ms.encode("utf-8") + b"." + payload
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_callback_signature(timestamp_ms: str, payload: Union[bytes, str], secret: str, signature: str) -> bool:
    return hmac.compare_digest(sign_callback(timestamp_ms, payload, secret), signature)


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _compact_json(obj: dict) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


def create_service_token(
    secret: str,
    issuer: str,
    audience: str,
    subject: str,
    ttl_sec: int = SERVICE_TOKEN_TTL_SEC,
    now: int | None = None,
) -> str:
    """Short-lived HS256 JWT identifying this watcher to the core API."""
    issued_at = int(time.time()) if now is None else now
    header = {"alg": "HS256", "typ": "JWT"}
    claims = {
        "sub": subject,
        "iss": issuer,
        "aud": audience,
        "exp": issued_at + ttl_sec,
        "iat": issued_at,
        "tokenType": "service",
        "scope": [SERVICE_TOKEN_SCOPE],
    }
    signing_input = _b64url(_compact_json(header)) + "." + _b64url(_compact_json(claims))
    sig = hmac.new(secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256).digest()
    return signing_input + "." + _b64url(sig)
