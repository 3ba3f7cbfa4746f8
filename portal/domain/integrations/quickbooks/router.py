"""QuickBooks router - OAuth connection, invoice and payment sync"""

import logging
import secrets
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ....auth import require_roles
from ....config import QUICKBOOKS_ENVIRONMENT
from ....database import get_db
from ....models import User
from ....models_invoice import Invoice, InvoicePayment
from ....models_quickbooks import QuickBooksIntegration, QuickBooksSyncLog
from ....security_utils import decrypt_token, generate_timed_token, verify_timed_token
from . import client as qb

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations/quickbooks", tags=["QuickBooks"])

require_super_admin = require_roles("super_admin")

OAUTH_STATE_SALT = "quickbooks-oauth"
OAUTH_STATE_MAX_AGE = 600


class OAuthInitiateRequest(BaseModel):
    organization_id: Optional[int] = None


def _resolve_org(user: User, organization_id: Optional[int]) -> int:
    org_id = organization_id or user.organization_id
    if not org_id:
        raise HTTPException(status_code=400, detail="organization_id is required")
    return org_id


def _get_integration(db: Session, organization_id: int) -> QuickBooksIntegration:
    integration = (
        db.query(QuickBooksIntegration).filter(QuickBooksIntegration.organization_id == organization_id).first()
    )
    if not integration:
        raise HTTPException(status_code=404, detail="QuickBooks not connected")
    return integration


@router.post("/oauth/initiate")
async def initiate_oauth(
    data: OAuthInitiateRequest,
    current_user: User = Depends(require_super_admin),
):
    """Start the OAuth 2.0 flow; the returned URL carries a signed state"""
    if not qb.is_configured():
        raise HTTPException(status_code=500, detail="QuickBooks not configured")

    organization_id = _resolve_org(current_user, data.organization_id)
    state = generate_timed_token(
        {"organization_id": organization_id, "user_id": current_user.id, "nonce": secrets.token_urlsafe(16)},
        salt=OAUTH_STATE_SALT,
    )
    logger.info(f"🔄 QuickBooks OAuth initiated for organization {organization_id} ({QUICKBOOKS_ENVIRONMENT})")
    return {"oauth_url": qb.build_authorize_url(state), "state": state}


@router.get("/callback")
async def oauth_callback(
    code: str,
    realmId: str,
    state: str,
    current_user: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    """Complete the OAuth flow after QuickBooks redirects back with a code"""
    payload = verify_timed_token(state, max_age=OAUTH_STATE_MAX_AGE, salt=OAUTH_STATE_SALT)
    if not payload or payload.get("user_id") != current_user.id:
        raise HTTPException(status_code=400, detail="Invalid or expired OAuth state")

    try:
        token_data = await qb.exchange_code(code)
    except qb.QuickBooksError as e:
        raise HTTPException(status_code=400, detail=f"Failed to exchange authorization code: {e}") from e

    company_name = None
    try:
        company = await qb.fetch_company_info(token_data["access_token"], realmId)
        company_name = company.get("CompanyName")
    except qb.QuickBooksError as e:
        logger.warning(f"⚠️ Failed to fetch company info: {e}")

    organization_id = payload["organization_id"]
    integration = (
        db.query(QuickBooksIntegration).filter(QuickBooksIntegration.organization_id == organization_id).first()
    )
    if not integration:
        integration = QuickBooksIntegration(organization_id=organization_id)
        db.add(integration)
    qb.store_tokens(integration, token_data)
    integration.realm_id = realmId
    integration.company_name = company_name
    integration.environment = QUICKBOOKS_ENVIRONMENT
    integration.connected_by = current_user.id
    db.commit()

    logger.info(f"✅ QuickBooks connected for organization {organization_id}")
    return {"success": True, "realm_id": realmId, "company_name": company_name}


@router.get("/status")
async def get_status(
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    org_id = _resolve_org(current_user, organization_id)
    integration = db.query(QuickBooksIntegration).filter(QuickBooksIntegration.organization_id == org_id).first()
    if not integration:
        return {"connected": False}
    return {
        "connected": True,
        "realm_id": integration.realm_id,
        "company_name": integration.company_name,
        "environment": integration.environment,
        "last_invoice_sync": integration.last_invoice_sync,
        "last_payment_sync": integration.last_payment_sync,
    }


@router.get("/company-info")
async def get_company_info(
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    integration = _get_integration(db, _resolve_org(current_user, organization_id))
    try:
        access_token = await qb.get_valid_access_token(db, integration)
        return await qb.fetch_company_info(access_token, integration.realm_id)
    except qb.QuickBooksError as e:
        raise HTTPException(status_code=502, detail=f"QuickBooks request failed: {e}") from e


@router.post("/disconnect")
async def disconnect(
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    integration = _get_integration(db, _resolve_org(current_user, organization_id))
    try:
        await qb.revoke_token(decrypt_token(integration.refresh_token))
    except ValueError as e:
        logger.warning(f"⚠️ Skipping token revoke: {e}")

    db.query(QuickBooksSyncLog).filter(QuickBooksSyncLog.integration_id == integration.id).delete()
    db.delete(integration)
    db.commit()
    logger.info(f"✅ QuickBooks disconnected for organization {integration.organization_id}")
    return {"success": True}


@router.post("/sync/invoice/{invoice_id}")
async def sync_invoice(
    invoice_id: int,
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    """Push an issued invoice to the connected QuickBooks company"""
    integration = _get_integration(db, _resolve_org(current_user, organization_id))
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    if invoice.status in ("draft", "void"):
        raise HTTPException(status_code=400, detail="Only issued invoices can be synced")

    log = await qb.sync_invoice(db, integration, invoice)
    if log.status != "success":
        raise HTTPException(status_code=502, detail=f"Failed to sync invoice: {log.error_message}")
    return {"success": True, "quickbooks_id": log.quickbooks_id, "synced_at": datetime.utcnow()}


@router.post("/sync/payment/{payment_id}")
async def sync_payment(
    payment_id: int,
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    """Push a recorded payment; its invoice must already be in QuickBooks"""
    integration = _get_integration(db, _resolve_org(current_user, organization_id))
    payment = db.query(InvoicePayment).filter(InvoicePayment.id == payment_id).first()
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    if payment.quickbooks_id:
        return {"success": True, "quickbooks_id": payment.quickbooks_id, "synced_at": payment.quickbooks_synced_at}
    if not payment.invoice.quickbooks_id:
        raise HTTPException(status_code=400, detail="Sync the invoice to QuickBooks before its payments")

    log = await qb.sync_payment(db, integration, payment)
    if log.status != "success":
        raise HTTPException(status_code=502, detail=f"Failed to sync payment: {log.error_message}")
    return {"success": True, "quickbooks_id": log.quickbooks_id, "synced_at": payment.quickbooks_synced_at}


@router.get("/sync-logs")
async def list_sync_logs(
    organization_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    integration = _get_integration(db, _resolve_org(current_user, organization_id))
    logs = (
        db.query(QuickBooksSyncLog)
        .filter(QuickBooksSyncLog.integration_id == integration.id)
        .order_by(QuickBooksSyncLog.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": log.id,
            "sync_type": log.sync_type,
            "entity_type": log.entity_type,
            "entity_id": log.entity_id,
            "quickbooks_id": log.quickbooks_id,
            "status": log.status,
            "error_message": log.error_message,
            "created_at": log.created_at,
        }
        for log in logs
    ]
