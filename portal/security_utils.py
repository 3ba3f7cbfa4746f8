"""
Security Utilities
Token encryption, signed time-limited tokens, and HTML/filename sanitization
"""

import base64
import hashlib
import logging
import os
import re
import secrets
from typing import Any, Optional

import bleach
from cryptography.fernet import Fernet, InvalidToken
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .config import SECRET_KEY

logger = logging.getLogger(__name__)


# ============================================================================
# TOKEN ENCRYPTION (stored OAuth credentials)
# ============================================================================


def _derive_fernet_key(secret: str) -> bytes:
    """Fernet needs a 32-byte urlsafe base64 key; derive one from SECRET_KEY"""
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


cipher = Fernet(_derive_fernet_key(SECRET_KEY))


def encrypt_token(token: str) -> str:
    """Encrypt OAuth token for storage"""
    return cipher.encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt stored OAuth token"""
    try:
        return cipher.decrypt(encrypted_token.encode()).decode()
    except InvalidToken as e:
        logger.error("❌ Failed to decrypt stored token - SECRET_KEY may have changed")
        raise ValueError("Stored token could not be decrypted") from e


# ============================================================================
# TOKEN GENERATION & VALIDATION
# ============================================================================


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token"""
    return secrets.token_urlsafe(length)


def generate_timed_token(data: dict[str, Any], salt: str = "security-token") -> str:
    """
    Generate a signed token using itsdangerous.
    Expiry is enforced when the token is verified, via max_age.
    """
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    return serializer.dumps(data, salt=salt)


def verify_timed_token(
    token: str, max_age: int = 3600, salt: str = "security-token"
) -> Optional[dict[str, Any]]:
    """
    Verify and decode a timed token

    Returns:
        Decoded data if valid, None if invalid or expired
    """
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    try:
        return serializer.loads(token, salt=salt, max_age=max_age)
    except SignatureExpired:
        logger.warning("Token expired")
        return None
    except BadSignature:
        logger.warning("Invalid token signature")
        return None


# ============================================================================
# INPUT SANITIZATION
# ============================================================================

DOCUMENT_TAGS = [
    "p",
    "br",
    "hr",
    "strong",
    "b",
    "em",
    "i",
    "u",
    "a",
    "ul",
    "ol",
    "li",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "blockquote",
    "code",
    "pre",
    "span",
    "div",
    "table",
    "thead",
    "tbody",
    "tr",
    "th",
    "td",
]


def sanitize_html(html_content: str, allowed_tags: Optional[list] = None) -> str:
    """
    Sanitize HTML content to prevent XSS attacks

    Args:
        html_content: Raw HTML content
        allowed_tags: List of allowed HTML tags (default: document-safe subset)

    Returns:
        Sanitized HTML
    """
    if allowed_tags is None:
        allowed_tags = DOCUMENT_TAGS

    allowed_attributes = {"a": ["href", "title", "target"], "*": ["class"], "td": ["colspan", "rowspan"]}

    return bleach.clean(
        html_content,
        tags=allowed_tags,
        attributes=allowed_attributes,
        protocols=["http", "https", "mailto"],
        strip=True,
    )


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent directory traversal and other attacks
    """
    filename = os.path.basename(filename.replace("\\", "/"))
    filename = re.sub(r"[^\w\s\-\.]", "", filename)
    filename = re.sub(r"\s+", "-", filename).strip(". ")

    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[: 255 - len(ext)] + ext

    if not filename:
        filename = f"file_{generate_secure_token(8)}"

    return filename
