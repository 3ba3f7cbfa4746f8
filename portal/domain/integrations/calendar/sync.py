"""
Calendar busy-time sync
Pulls the next two weeks of busy events and mirrors them as calendar blocks
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ....models_staff import CalendarBlock, CalendarIntegration
from ....security_utils import decrypt_token, encrypt_token
from .oauth import CalendarOAuthError, refresh_access_token

logger = logging.getLogger(__name__)

SYNC_DAYS_AHEAD = 14
REFRESH_MARGIN = timedelta(minutes=5)
REQUEST_TIMEOUT_SECONDS = 30
MAX_PAGES = 20


def parse_provider_datetime(value: str) -> datetime:
    """ISO timestamp from a provider as naive UTC; offset-less values are taken as UTC"""
    value = value.replace("Z", "+00:00")
    if "." in value:
        head, _, tail = value.partition(".")
        digits = "".join(ch for ch in tail if ch.isdigit())
        offset = tail[len(digits):]
        value = f"{head}.{digits[:6]}{offset}"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def normalize_google_event(event: dict) -> Optional[dict]:
    if event.get("status") == "cancelled" or event.get("transparency") == "transparent":
        return None
    start, end = event.get("start") or {}, event.get("end") or {}
    if start.get("date"):
        return {
            "external_id": event["id"],
            "title": event.get("summary") or "Busy",
            "start_time": datetime.combine(date.fromisoformat(start["date"]), datetime.min.time()),
            "end_time": datetime.combine(date.fromisoformat(end["date"]), datetime.min.time()),
            "is_all_day": True,
        }
    if not start.get("dateTime") or not end.get("dateTime"):
        return None
    return {
        "external_id": event["id"],
        "title": event.get("summary") or "Busy",
        "start_time": parse_provider_datetime(start["dateTime"]),
        "end_time": parse_provider_datetime(end["dateTime"]),
        "is_all_day": False,
    }


def normalize_microsoft_event(event: dict) -> Optional[dict]:
    if event.get("isCancelled") or event.get("showAs") == "free":
        return None
    start, end = event.get("start") or {}, event.get("end") or {}
    if not start.get("dateTime") or not end.get("dateTime"):
        return None
    return {
        "external_id": event["id"],
        "title": event.get("subject") or "Busy",
        "start_time": parse_provider_datetime(start["dateTime"]),
        "end_time": parse_provider_datetime(end["dateTime"]),
        "is_all_day": bool(event.get("isAllDay")),
    }


async def fetch_google_events(access_token: str, time_min: datetime, time_max: datetime) -> list[dict]:
    params = {
        "timeMin": time_min.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "timeMax": time_max.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "singleEvents": "true",
        "orderBy": "startTime",
        "maxResults": "250",
    }
    events = []
    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as client:
        for _ in range(MAX_PAGES):
            response = await client.get(
                "https://www.googleapis.com/calendar/v3/calendars/primary/events",
                headers={"Authorization": f"Bearer {access_token}"},
                params=params,
            )
            response.raise_for_status()
            data = response.json()
            events.extend(filter(None, (normalize_google_event(e) for e in data.get("items", []))))
            if not data.get("nextPageToken"):
                break
            params["pageToken"] = data["nextPageToken"]
    return events


async def fetch_microsoft_events(access_token: str, time_min: datetime, time_max: datetime) -> list[dict]:
    url = "https://graph.microsoft.com/v1.0/me/calendarView"
    params = {
        "startDateTime": time_min.strftime("%Y-%m-%dT%H:%M:%S"),
        "endDateTime": time_max.strftime("%Y-%m-%dT%H:%M:%S"),
        "$select": "id,subject,start,end,isAllDay,showAs,isCancelled",
        "$top": "250",
    }
    headers = {"Authorization": f"Bearer {access_token}", "Prefer": 'outlook.timezone="UTC"'}
    events = []
    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as client:
        for _ in range(MAX_PAGES):
            response = await client.get(url, headers=headers, params=params)
            response.raise_for_status()
            data = response.json()
            events.extend(filter(None, (normalize_microsoft_event(e) for e in data.get("value", []))))
            url, params = data.get("@odata.nextLink"), None
            if not url:
                break
    return events


async def get_access_token(db: Session, integration: CalendarIntegration) -> str:
    expires_at = integration.token_expires_at
    if expires_at and expires_at <= datetime.utcnow() + REFRESH_MARGIN:
        if not integration.refresh_token:
            raise CalendarOAuthError("Access token expired and no refresh token is stored")
        logger.info(f"🔄 Refreshing {integration.provider} calendar token for user {integration.user_id}")
        tokens = await refresh_access_token(integration.provider, decrypt_token(integration.refresh_token))
        integration.access_token = encrypt_token(tokens["access_token"])
        integration.refresh_token = encrypt_token(tokens["refresh_token"])
        integration.token_expires_at = tokens["expires_at"]
        db.commit()
        return tokens["access_token"]
    return decrypt_token(integration.access_token)


def upsert_blocks(
    db: Session, integration: CalendarIntegration, events: list[dict], window_start: datetime, window_end: datetime
) -> dict:
    """Mirror provider events as blocks keyed by external_id; stale blocks in the window are removed"""
    existing = {
        block.external_id: block
        for block in db.query(CalendarBlock).filter(
            CalendarBlock.staff_id == integration.user_id,
            CalendarBlock.source == integration.provider,
        )
    }
    created = updated = 0
    seen = set()
    for event in events:
        seen.add(event["external_id"])
        block = existing.get(event["external_id"])
        if block is None:
            block = CalendarBlock(
                staff_id=integration.user_id, source=integration.provider, external_id=event["external_id"]
            )
            db.add(block)
            existing[event["external_id"]] = block
            created += 1
        else:
            updated += 1
        block.title = event["title"]
        block.start_time = event["start_time"]
        block.end_time = event["end_time"]
        block.is_all_day = event["is_all_day"]

    removed = 0
    for external_id, block in existing.items():
        if external_id not in seen and block.end_time >= window_start and block.start_time <= window_end:
            db.delete(block)
            removed += 1
    return {"created": created, "updated": updated, "removed": removed}


async def sync_integration(db: Session, integration: CalendarIntegration, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    window_end = now + timedelta(days=SYNC_DAYS_AHEAD)
    access_token = await get_access_token(db, integration)

    try:
        if integration.provider == "google":
            events = await fetch_google_events(access_token, now, window_end)
        else:
            events = await fetch_microsoft_events(access_token, now, window_end)
    except httpx.HTTPError as e:
        raise CalendarOAuthError(f"Failed to fetch {integration.provider} events: {e}") from e

    result = upsert_blocks(db, integration, events, now, window_end)
    integration.last_synced_at = now
    db.commit()
    logger.info(
        f"✅ Synced {integration.provider} calendar for user {integration.user_id}: "
        f"{result['created']} new, {result['updated']} updated, {result['removed']} removed"
    )
    return {"fetched": len(events), **result}


async def run_calendar_sync(db: Session) -> dict:
    """Sync every enabled calendar integration; one failure does not stop the rest"""
    integrations = db.query(CalendarIntegration).filter(CalendarIntegration.sync_enabled.is_(True)).all()
    synced = failed = 0
    for integration in integrations:
        try:
            await sync_integration(db, integration)
            synced += 1
        except (CalendarOAuthError, ValueError) as e:
            db.rollback()
            failed += 1
            logger.error(f"❌ Calendar sync failed for integration {integration.id}: {e}")
    return {"synced": synced, "failed": failed}
