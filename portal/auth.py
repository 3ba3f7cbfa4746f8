import logging
import secrets
from datetime import datetime

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import func
from sqlalchemy.orm import Session

from .config import AUTH_JWT_ALGORITHM, AUTH_JWT_AUDIENCE, AUTH_JWT_SECRET, CRON_SECRET
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def verify_access_token(token: str) -> dict:
    """
    Verify an access token issued by the auth provider.
    Tokens are HS256-signed with the project's JWT secret and carry the
    "authenticated" audience.
    """
    if not AUTH_JWT_SECRET:
        logger.error("❌ AUTH_JWT_SECRET not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    try:
        return jwt.decode(
            token,
            AUTH_JWT_SECRET,
            algorithms=[AUTH_JWT_ALGORITHM],
            audience=AUTH_JWT_AUDIENCE,
        )
    except ExpiredSignatureError as e:
        logger.warning("⚠️ Expired token presented")
        raise HTTPException(status_code=401, detail="Token has expired") from e
    except JWTError as e:
        logger.warning(f"⚠️ Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid token") from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the auth provider's token"""

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, token length: {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    claims = verify_access_token(token)

    auth_uid = claims.get("sub")
    email = claims.get("email")
    metadata = claims.get("user_metadata") or {}
    name = metadata.get("full_name") or metadata.get("name") or ""

    if not auth_uid:
        logger.error(f"❌ Token missing subject claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = db.query(User).filter(User.auth_uid == auth_uid).first()

    if not user and email:
        # Invited users exist before their first sign-in; link them by email
        user = db.query(User).filter(func.lower(User.email) == email.lower()).first()
        if user and user.auth_uid:
            logger.warning(f"⚠️ Sign-in for {email} with a new identity; account is linked to another")
            raise HTTPException(
                status_code=409,
                detail="This email is already registered. Please sign in with your existing account.",
            )
        if user:
            logger.info(f"🔄 Linking user {email} to auth identity {auth_uid}")
            user.auth_uid = auth_uid
            if name and not user.full_name:
                user.full_name = name

    if not user:
        if not email:
            raise HTTPException(status_code=401, detail="Invalid token claims")
        logger.info(f"🆕 Creating new user: {email}")
        user = User(auth_uid=auth_uid, email=email.lower(), full_name=name, role="client")
        db.add(user)

    user.last_login_at = datetime.utcnow()
    try:
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        if "unique" in str(e).lower() or "duplicate key" in str(e).lower():
            raise HTTPException(
                status_code=409,
                detail="This email is already registered. Please sign in with your existing account.",
            ) from e
        raise

    if not user.is_active:
        logger.warning(f"⚠️ Inactive user {user.email} attempted to authenticate")
        raise HTTPException(status_code=403, detail="Account is deactivated")

    return user


def require_roles(*roles: str):
    """Dependency factory restricting an endpoint to the given roles"""

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return current_user

    return dependency


async def require_cron_secret(request: Request) -> None:
    """Authorize scheduled job triggers with the shared CRON_SECRET"""
    if not CRON_SECRET:
        logger.error("❌ CRON_SECRET not configured - rejecting cron request")
        raise HTTPException(status_code=503, detail="Cron not configured")

    header = request.headers.get("Authorization", "")
    if not secrets.compare_digest(header, f"Bearer {CRON_SECRET}"):
        logger.warning(f"⚠️ Unauthorized cron request to {request.url.path}")
        raise HTTPException(status_code=401, detail="Unauthorized")
