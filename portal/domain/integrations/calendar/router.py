"""Calendar router - connect Google/Microsoft calendars and sync busy time"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ....auth import require_roles
from ....database import get_db
from ....models import User
from ....models_staff import CalendarBlock, CalendarIntegration
from ....permissions import STAFF_ROLES
from ....security_utils import decrypt_token, encrypt_token
from .oauth import (
    PROVIDERS,
    CalendarOAuthError,
    build_authorize_url,
    create_state,
    exchange_code,
    fetch_account_email,
    revoke_token,
    verify_state,
)
from .sync import sync_integration

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations/calendar", tags=["Calendar"])

require_staff = require_roles(*STAFF_ROLES)


class ConnectRequest(BaseModel):
    redirect_url: Optional[str] = None


def _check_provider(provider: str) -> str:
    if provider not in PROVIDERS:
        raise HTTPException(status_code=400, detail=f"Unsupported calendar provider: {provider}")
    return provider


def _get_integration(db: Session, user: User, provider: str) -> CalendarIntegration:
    integration = (
        db.query(CalendarIntegration)
        .filter(CalendarIntegration.user_id == user.id, CalendarIntegration.provider == provider)
        .first()
    )
    if not integration:
        raise HTTPException(status_code=404, detail="Calendar not connected")
    return integration


@router.get("/status")
async def get_status(current_user: User = Depends(require_staff), db: Session = Depends(get_db)):
    integrations = db.query(CalendarIntegration).filter(CalendarIntegration.user_id == current_user.id).all()
    return [
        {
            "provider": integration.provider,
            "account_email": integration.account_email,
            "sync_enabled": integration.sync_enabled,
            "last_synced_at": integration.last_synced_at,
        }
        for integration in integrations
    ]


@router.get("/callback")
async def oauth_callback(
    code: str = Query(...),
    state: str = Query(...),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    """Exchange the authorization code and store the calendar tokens"""
    try:
        payload = verify_state(state)
    except CalendarOAuthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if payload["user_id"] != current_user.id:
        raise HTTPException(status_code=400, detail="OAuth state does not belong to this user")

    provider = payload["provider"]
    try:
        tokens = await exchange_code(provider, code)
    except CalendarOAuthError as e:
        raise HTTPException(status_code=400, detail=f"Failed to connect calendar: {e}") from e

    integration = (
        db.query(CalendarIntegration)
        .filter(CalendarIntegration.user_id == current_user.id, CalendarIntegration.provider == provider)
        .first()
    )
    if not integration:
        integration = CalendarIntegration(user_id=current_user.id, provider=provider)
        db.add(integration)
    integration.access_token = encrypt_token(tokens["access_token"])
    if tokens["refresh_token"]:
        integration.refresh_token = encrypt_token(tokens["refresh_token"])
    integration.token_expires_at = tokens["expires_at"]
    integration.account_email = await fetch_account_email(provider, tokens["access_token"])
    integration.sync_enabled = True
    db.commit()
    db.refresh(integration)
    logger.info(f"✅ {provider} calendar connected for user {current_user.id}")

    sync_result = None
    try:
        sync_result = await sync_integration(db, integration)
    except CalendarOAuthError as e:
        db.rollback()
        logger.warning(f"⚠️ Initial calendar sync failed: {e}")

    return {
        "success": True,
        "provider": provider,
        "account_email": integration.account_email,
        "redirect_url": payload.get("redirect_url"),
        "sync": sync_result,
    }


@router.post("/{provider}/connect")
async def connect_calendar(
    provider: str,
    data: ConnectRequest,
    current_user: User = Depends(require_staff),
):
    """Authorization URL for the provider's consent screen"""
    _check_provider(provider)
    state = create_state(provider, current_user.id, data.redirect_url)
    try:
        url = build_authorize_url(provider, state)
    except CalendarOAuthError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    return {"authorization_url": url, "state": state}


@router.post("/{provider}/sync")
async def sync_calendar(
    provider: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    integration = _get_integration(db, current_user, _check_provider(provider))
    try:
        return await sync_integration(db, integration)
    except CalendarOAuthError as e:
        db.rollback()
        raise HTTPException(status_code=502, detail=str(e)) from e


@router.delete("/{provider}")
async def disconnect_calendar(
    provider: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    integration = _get_integration(db, current_user, _check_provider(provider))
    try:
        await revoke_token(provider, decrypt_token(integration.access_token))
    except ValueError as e:
        logger.warning(f"⚠️ Skipping token revoke: {e}")

    removed = (
        db.query(CalendarBlock)
        .filter(CalendarBlock.staff_id == current_user.id, CalendarBlock.source == provider)
        .delete()
    )
    db.delete(integration)
    db.commit()
    logger.info(f"✅ {provider} calendar disconnected for user {current_user.id} ({removed} blocks removed)")
    return {"success": True, "blocks_removed": removed}
