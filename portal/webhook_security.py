"""
Webhook Security Module

Signature verification for inbound payment webhooks:
- Constant-time signature comparison
- Timestamp validation against replay
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


class WebhookSignatureError(Exception):
    """Raised when webhook signature verification fails"""

    pass


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """Reject webhooks whose timestamp is missing, malformed or older than max_age"""
    if not timestamp:
        return False

    try:
        age = abs(int(time.time()) - int(timestamp))
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


def parse_stripe_signature_header(header: str) -> tuple[Optional[str], list[str]]:
    """Split "t=123,v1=abc,v1=def" into the timestamp and its v1 signatures"""
    timestamp = None
    signatures = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)
    return timestamp, signatures


def verify_stripe_signature(
    payload: bytes, header: str, secret: str, tolerance: int = MAX_WEBHOOK_AGE_SECONDS
) -> None:
    """
    Verify a Stripe-Signature header.
    The signed message is "{timestamp}.{raw body}" keyed with the endpoint secret.

    Raises:
        WebhookSignatureError: if the header is malformed, stale or does not match
    """
    if not header:
        raise WebhookSignatureError("Missing signature header")

    timestamp, signatures = parse_stripe_signature_header(header)
    if not timestamp or not signatures:
        raise WebhookSignatureError("Malformed signature header")

    if not verify_timestamp(timestamp, tolerance):
        raise WebhookSignatureError("Timestamp outside tolerance")

    signed_payload = timestamp.encode("utf-8") + b"." + payload
    expected = compute_hmac_sha256(secret, signed_payload)

    if not any(constant_time_compare(expected, candidate) for candidate in signatures):
        raise WebhookSignatureError("Signature mismatch")


async def verify_stripe_webhook(request: Request, secret: Optional[str]) -> bytes:
    """Verify the request and return its raw body; raises 400/500 HTTP errors"""
    if not secret:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    raw_body = await request.body()
    try:
        verify_stripe_signature(raw_body, request.headers.get("Stripe-Signature", ""), secret)
    except WebhookSignatureError as e:
        logger.error(f"❌ Stripe webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail="Invalid webhook signature") from e

    logger.info("✅ Stripe webhook signature verified")
    return raw_body
