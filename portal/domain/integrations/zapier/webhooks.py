"""
Outbound automation webhooks

Events are POSTed as {event, timestamp, organization_id, data} to every active
webhook of the organization subscribed to the event. Ten consecutive failures
deactivate a webhook.
"""

import logging
import time
from datetime import datetime
from typing import Any, Optional

import httpx
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from ....models_webhooks import WebhookDelivery, ZapierWebhook

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS = [
    "ticket.created",
    "ticket.updated",
    "ticket.closed",
    "invoice.created",
    "invoice.paid",
    "invoice.overdue",
    "contract.created",
    "contract.signed",
    "contract.completed",
    "message.received",
    "form.submitted",
]

WEBHOOK_TIMEOUT_SECONDS = 10
WEBHOOK_USER_AGENT = "KT-Portal-Webhooks/1.0"
MAX_CONSECUTIVE_FAILURES = 10
RESPONSE_BODY_LIMIT = 1000


def passes_filters(data: dict, filters: Optional[dict]) -> bool:
    """Every filter key must equal the payload value exactly"""
    if not filters:
        return True
    return all(data.get(key) == value for key, value in filters.items())


def build_payload(event: str, organization_id: int, data: Any) -> dict:
    return {
        "event": event,
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "organization_id": organization_id,
        "data": jsonable_encoder(data),
    }


async def send_webhook(db: Session, webhook: ZapierWebhook, payload: dict) -> WebhookDelivery:
    """Deliver one payload, update the webhook's health and log the attempt"""
    started = time.monotonic()
    status_code = None
    response_body = None
    error = None
    success = False

    try:
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS) as client:
            response = await client.post(
                webhook.url,
                json=payload,
                headers={"Content-Type": "application/json", "User-Agent": WEBHOOK_USER_AGENT},
            )
        status_code = response.status_code
        response_body = response.text
        success = response.is_success
        if not success:
            error = f"HTTP {status_code}: {response_body[:500]}"
    except httpx.HTTPError as e:
        error = str(e) or e.__class__.__name__

    webhook.last_triggered_at = datetime.utcnow()
    if success:
        webhook.failure_count = 0
        webhook.last_error = None
    else:
        webhook.failure_count = (webhook.failure_count or 0) + 1
        webhook.last_error = error
        if webhook.failure_count >= MAX_CONSECUTIVE_FAILURES:
            webhook.is_active = False
            logger.warning(
                f"⚠️ Webhook {webhook.id} disabled after {webhook.failure_count} consecutive failures"
            )

    delivery = WebhookDelivery(
        webhook_id=webhook.id,
        event=payload["event"],
        payload=payload["data"],
        status_code=status_code,
        response_body=response_body[:RESPONSE_BODY_LIMIT] if response_body else None,
        error=error,
        duration_ms=int((time.monotonic() - started) * 1000),
        success=success,
    )
    db.add(delivery)
    db.commit()

    if success:
        logger.info(f"✅ Webhook {webhook.id} delivered {payload['event']} ({status_code})")
    else:
        logger.error(f"❌ Webhook {webhook.id} failed for {payload['event']}: {error}")
    return delivery


async def trigger_webhooks(db: Session, organization_id: int, event: str, data: dict) -> int:
    """Fan an event out to matching webhooks; returns the number of successful deliveries"""
    if event not in WEBHOOK_EVENTS:
        raise ValueError(f"Unknown webhook event: {event}")

    webhooks = (
        db.query(ZapierWebhook)
        .filter(ZapierWebhook.organization_id == organization_id, ZapierWebhook.is_active.is_(True))
        .all()
    )
    targets = [
        w for w in webhooks if event in (w.events or []) and passes_filters(data, w.filters)
    ]
    if not targets:
        return 0

    payload = build_payload(event, organization_id, data)
    delivered = 0
    for webhook in targets:
        delivery = await send_webhook(db, webhook, payload)
        delivered += int(delivery.success)
    return delivered


async def emit_event(db: Session, organization_id: int, event: str, data: dict) -> int:
    """trigger_webhooks for domain services; delivery problems never fail the caller"""
    try:
        return await trigger_webhooks(db, organization_id, event, data)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to trigger {event} webhooks for organization {organization_id}: {e}")
        return 0
