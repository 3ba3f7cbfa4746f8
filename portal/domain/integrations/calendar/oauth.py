"""
Calendar OAuth
Authorization URLs, signed state and token exchange for Google and Microsoft
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

import httpx

from ....config import (
    CALENDAR_REDIRECT_URI,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    MICROSOFT_CLIENT_ID,
    MICROSOFT_CLIENT_SECRET,
    MICROSOFT_TENANT,
)
from ....security_utils import generate_timed_token, verify_timed_token

logger = logging.getLogger(__name__)

STATE_SALT = "calendar-oauth"
STATE_MAX_AGE = 600  # 10 minutes
REQUEST_TIMEOUT_SECONDS = 20

PROVIDERS = {
    "google": {
        "auth_url": "https://accounts.google.com/o/oauth2/v2/auth",
        "token_url": "https://oauth2.googleapis.com/token",
        "userinfo_url": "https://www.googleapis.com/oauth2/v2/userinfo",
        "scopes": [
            "https://www.googleapis.com/auth/calendar.readonly",
            "https://www.googleapis.com/auth/calendar.events.readonly",
            "https://www.googleapis.com/auth/userinfo.email",
        ],
    },
    "microsoft": {
        "auth_url": f"https://login.microsoftonline.com/{MICROSOFT_TENANT}/oauth2/v2.0/authorize",
        "token_url": f"https://login.microsoftonline.com/{MICROSOFT_TENANT}/oauth2/v2.0/token",
        "userinfo_url": "https://graph.microsoft.com/v1.0/me",
        "scopes": ["offline_access", "Calendars.Read", "User.Read"],
    },
}


class CalendarOAuthError(Exception):
    """Raised when a calendar provider rejects an OAuth request"""

    pass


def get_credentials(provider: str) -> tuple[str, str]:
    if provider == "google":
        client_id, client_secret = GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
    elif provider == "microsoft":
        client_id, client_secret = MICROSOFT_CLIENT_ID, MICROSOFT_CLIENT_SECRET
    else:
        raise CalendarOAuthError(f"Unsupported calendar provider: {provider}")
    if not client_id or not client_secret:
        raise CalendarOAuthError(f"{provider.title()} calendar is not configured")
    return client_id, client_secret


def create_state(provider: str, user_id: int, redirect_url: Optional[str] = None) -> str:
    return generate_timed_token(
        {
            "provider": provider,
            "user_id": user_id,
            "redirect_url": redirect_url or CALENDAR_REDIRECT_URI,
            "nonce": secrets.token_hex(16),
        },
        salt=STATE_SALT,
    )


def verify_state(state: str) -> dict:
    payload = verify_timed_token(state, max_age=STATE_MAX_AGE, salt=STATE_SALT)
    if not payload or payload.get("provider") not in PROVIDERS:
        raise CalendarOAuthError("Invalid or expired OAuth state")
    return payload


def build_authorize_url(provider: str, state: str) -> str:
    client_id, _ = get_credentials(provider)
    config = PROVIDERS[provider]
    params = {
        "client_id": client_id,
        "redirect_uri": CALENDAR_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(config["scopes"]),
        "state": state,
        "access_type": "offline",
        "prompt": "consent",
    }
    if provider == "microsoft":
        params["response_mode"] = "query"
    return f"{config['auth_url']}?{urlencode(params)}"


async def _token_request(provider: str, data: dict) -> dict:
    client_id, client_secret = get_credentials(provider)
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as client:
            response = await client.post(
                PROVIDERS[provider]["token_url"],
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={"client_id": client_id, "client_secret": client_secret, **data},
            )
    except httpx.HTTPError as e:
        raise CalendarOAuthError(f"Token request failed: {e}") from e

    if response.status_code != 200:
        logger.error(f"❌ {provider} token request failed: {response.text}")
        raise CalendarOAuthError(f"Token request rejected ({response.status_code})")

    data = response.json()
    if not data.get("access_token"):
        raise CalendarOAuthError("Token response missing access_token")
    return {
        "access_token": data["access_token"],
        "refresh_token": data.get("refresh_token"),
        "expires_at": datetime.utcnow() + timedelta(seconds=data.get("expires_in") or 3600),
    }


async def exchange_code(provider: str, code: str) -> dict:
    return await _token_request(
        provider,
        {"code": code, "redirect_uri": CALENDAR_REDIRECT_URI, "grant_type": "authorization_code"},
    )


async def refresh_access_token(provider: str, refresh_token: str) -> dict:
    tokens = await _token_request(provider, {"refresh_token": refresh_token, "grant_type": "refresh_token"})
    if not tokens["refresh_token"]:
        tokens["refresh_token"] = refresh_token
    return tokens


async def fetch_account_email(provider: str, access_token: str) -> Optional[str]:
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as client:
            response = await client.get(
                PROVIDERS[provider]["userinfo_url"], headers={"Authorization": f"Bearer {access_token}"}
            )
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"⚠️ Could not fetch {provider} account info: {e}")
        return None
    data = response.json()
    return data.get("email") or data.get("mail") or data.get("userPrincipalName")


async def revoke_token(provider: str, access_token: str) -> None:
    # Microsoft has no simple revoke endpoint; its tokens lapse on their own
    if provider != "google":
        return
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as client:
            await client.post("https://oauth2.googleapis.com/revoke", params={"token": access_token})
    except httpx.HTTPError as e:
        logger.warning(f"⚠️ Google token revoke failed: {e}")
