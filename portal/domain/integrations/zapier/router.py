"""Zapier router - manage outbound automation webhooks"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ....audit import log_action
from ....auth import require_roles
from ....database import get_db
from ....models import User
from ....models_webhooks import WebhookDelivery, ZapierWebhook
from ....permissions import PRIVILEGED_ROLES
from ....scoping import apply_org_scope, ensure_org_access
from .schemas import WebhookCreate, WebhookDeliveryResponse, WebhookResponse, WebhookUpdate
from .webhooks import WEBHOOK_EVENTS, build_payload, send_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations/zapier", tags=["Zapier"])

require_privileged = require_roles(*PRIVILEGED_ROLES)


def _get_webhook(db: Session, user: User, webhook_id: int) -> ZapierWebhook:
    webhook = db.query(ZapierWebhook).filter(ZapierWebhook.id == webhook_id).first()
    if not webhook:
        raise HTTPException(status_code=404, detail="Webhook not found")
    ensure_org_access(db, user, webhook.organization_id)
    return webhook


@router.get("/events")
async def list_events(current_user: User = Depends(require_privileged)):
    return {"events": WEBHOOK_EVENTS}


@router.get("/webhooks", response_model=list[WebhookResponse])
async def list_webhooks(
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(require_privileged),
    db: Session = Depends(get_db),
):
    query = apply_org_scope(db.query(ZapierWebhook), ZapierWebhook.organization_id, db, current_user)
    if organization_id:
        query = query.filter(ZapierWebhook.organization_id == organization_id)
    return query.order_by(ZapierWebhook.id).all()


@router.post("/webhooks", response_model=WebhookResponse, status_code=201)
async def create_webhook(
    data: WebhookCreate,
    current_user: User = Depends(require_privileged),
    db: Session = Depends(get_db),
):
    organization_id = data.organization_id or current_user.organization_id
    ensure_org_access(db, current_user, organization_id)

    webhook = ZapierWebhook(
        organization_id=organization_id,
        name=data.name,
        url=data.url,
        events=data.events,
        filters=data.filters,
        created_by=current_user.id,
    )
    db.add(webhook)
    db.commit()
    db.refresh(webhook)

    log_action(db, current_user, "webhook.create", "zapier_webhook", webhook.id, organization_id=organization_id)
    logger.info(f"✅ Webhook {webhook.id} created for organization {organization_id}")
    return webhook


@router.patch("/webhooks/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(
    webhook_id: int,
    data: WebhookUpdate,
    current_user: User = Depends(require_privileged),
    db: Session = Depends(get_db),
):
    webhook = _get_webhook(db, current_user, webhook_id)
    updates = data.model_dump(exclude_unset=True)
    for field, value in updates.items():
        setattr(webhook, field, value)
    if updates.get("is_active"):
        webhook.failure_count = 0
    db.commit()
    db.refresh(webhook)
    return webhook


@router.delete("/webhooks/{webhook_id}")
async def delete_webhook(
    webhook_id: int,
    current_user: User = Depends(require_privileged),
    db: Session = Depends(get_db),
):
    webhook = _get_webhook(db, current_user, webhook_id)
    organization_id = webhook.organization_id
    db.delete(webhook)
    db.commit()
    log_action(db, current_user, "webhook.delete", "zapier_webhook", webhook_id, organization_id=organization_id)
    return {"message": "Webhook deleted"}


@router.post("/webhooks/{webhook_id}/test", response_model=WebhookDeliveryResponse)
async def test_webhook(
    webhook_id: int,
    current_user: User = Depends(require_privileged),
    db: Session = Depends(get_db),
):
    """Send a sample payload for the webhook's first subscribed event"""
    webhook = _get_webhook(db, current_user, webhook_id)
    event = (webhook.events or WEBHOOK_EVENTS)[0]
    payload = build_payload(event, webhook.organization_id, {"test": True, "message": "Test delivery"})
    return await send_webhook(db, webhook, payload)


@router.get("/webhooks/{webhook_id}/deliveries", response_model=list[WebhookDeliveryResponse])
async def list_deliveries(
    webhook_id: int,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_privileged),
    db: Session = Depends(get_db),
):
    webhook = _get_webhook(db, current_user, webhook_id)
    return (
        db.query(WebhookDelivery)
        .filter(WebhookDelivery.webhook_id == webhook.id)
        .order_by(WebhookDelivery.id.desc())
        .limit(limit)
        .all()
    )
