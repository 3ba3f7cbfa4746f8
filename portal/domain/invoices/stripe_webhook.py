"""
Stripe Webhook Handler
Records online card payments against invoices
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...config import STRIPE_WEBHOOK_SECRET
from ...database import get_db
from ...webhook_security import verify_stripe_webhook
from ..integrations.zapier.webhooks import emit_event
from .payments import PaymentError, apply_payment
from .repository import InvoiceRepository
from .service import invoice_event_data

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/stripe", tags=["webhooks"])

PAYMENT_EVENTS = ("checkout.session.completed", "payment_intent.succeeded")


def extract_payment(payload: dict) -> tuple[str, dict]:
    event_type = payload.get("type") or ""
    obj = (payload.get("data") or {}).get("object") or {}
    return event_type, obj


async def handle_payment_object(db: Session, obj: dict) -> dict:
    """Apply a succeeded Stripe payment to the invoice named in its metadata"""
    metadata = obj.get("metadata") or {}
    invoice_id = metadata.get("invoice_id")
    if not invoice_id:
        logger.info("ℹ️ Stripe payment without invoice_id metadata - ignoring")
        return {"status": "ignored"}

    # A checkout session and its payment intent describe the same charge
    external_id = obj.get("payment_intent") or obj.get("id")
    if external_id and InvoiceRepository.get_payment_by_external_id(db, external_id):
        logger.info(f"ℹ️ Stripe payment {external_id} already recorded")
        return {"status": "duplicate"}

    try:
        invoice = InvoiceRepository.get_by_id(db, int(invoice_id))
    except (TypeError, ValueError):
        invoice = None
    if not invoice:
        logger.warning(f"⚠️ Stripe payment for unknown invoice {invoice_id}")
        return {"status": "ignored"}

    amount = obj.get("amount_total") or obj.get("amount_received") or 0
    try:
        apply_payment(
            db,
            invoice,
            int(amount),
            "stripe",
            payment_source="stripe",
            reference=obj.get("id"),
            external_id=external_id,
        )
    except PaymentError as e:
        db.rollback()
        logger.error(f"❌ Could not apply Stripe payment {external_id} to invoice {invoice.id}: {e}")
        return {"status": "rejected", "reason": str(e)}

    db.commit()
    db.refresh(invoice)
    if invoice.status == "paid":
        await emit_event(db, invoice.organization_id, "invoice.paid", invoice_event_data(invoice))
    return {"status": "recorded", "invoice_id": invoice.id}


@router.post("")
async def handle_stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Handle Stripe webhook events

    Events handled:
    - checkout.session.completed
    - payment_intent.succeeded
    """
    raw_body = await verify_stripe_webhook(request, STRIPE_WEBHOOK_SECRET)
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.error("❌ Invalid JSON payload")
        raise HTTPException(status_code=400, detail="Invalid JSON") from None

    event_type, obj = extract_payment(payload)
    logger.info(f"📥 Received Stripe webhook: {event_type}")

    if event_type not in PAYMENT_EVENTS:
        logger.info(f"ℹ️ Unhandled event type: {event_type}")
        return {"received": True, "event_type": event_type}

    result = await handle_payment_object(db, obj)
    return {"received": True, "event_type": event_type, **result}
