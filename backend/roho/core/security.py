"""
Security utilities for Roho
Admin secret verification, Twilio webhook signatures, log redaction
"""
import base64
import hashlib
import hmac
import logging
import re
from typing import Mapping, Optional

from fastapi import Header, HTTPException, Request, status

from roho.core.config import settings

logger = logging.getLogger(__name__)


# ==================== Admin Secret Verification ====================

async def verify_admin_secret(
    x_admin_secret: Optional[str] = Header(None, alias="X-Admin-Secret")
) -> None:
    """
    Verify X-Admin-Secret header matches the ADMIN_SECRET environment variable.

    Raises:
        HTTPException: If secret is missing or invalid
    """
    if not settings.ADMIN_SECRET:
        # If ADMIN_SECRET is not configured, log warning but allow access in dev
        if settings.ENVIRONMENT == "production":
            logger.error("ADMIN_SECRET not configured in production")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Server configuration error"
            )
        logger.warning("ADMIN_SECRET not configured - allowing access in development")
        return

    if not x_admin_secret:
        logger.warning("Missing X-Admin-Secret header for admin endpoint")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header"
        )

    if not hmac.compare_digest(x_admin_secret, settings.ADMIN_SECRET):
        logger.warning("Invalid X-Admin-Secret header for admin endpoint")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization"
        )


# ==================== Twilio Webhook Signature ====================

def compute_twilio_signature(auth_token: str, url: str, params: Mapping[str, str]) -> str:
    """
    Compute X-Twilio-Signature for a form-encoded webhook request.
    The signed payload is the full URL followed by every POST parameter
    name and value, sorted by name.
    """
    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode("utf-8"), payload.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


async def verify_twilio_signature(
    request: Request,
    x_twilio_signature: Optional[str] = Header(None, alias="X-Twilio-Signature"),
) -> None:
    """
    Reject webhook calls that were not signed by Twilio.
    Disabled unless VERIFY_TWILIO_SIGNATURE is set.
    """
    if not settings.VERIFY_TWILIO_SIGNATURE:
        return

    if not settings.TWILIO_AUTH_TOKEN:
        logger.error("VERIFY_TWILIO_SIGNATURE is on but TWILIO_AUTH_TOKEN is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error"
        )

    form = await request.form()
    params = {key: str(value) for key, value in form.items()}
    url = f"{settings.PUBLIC_BASE_URL.rstrip('/')}{request.url.path}"
    expected = compute_twilio_signature(settings.TWILIO_AUTH_TOKEN, url, params)

    if not x_twilio_signature or not hmac.compare_digest(expected, x_twilio_signature):
        logger.warning("Invalid Twilio signature on webhook request")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized"
        )


# ==================== Log Redaction ====================

_PHONE_PATTERN = re.compile(r'(?:whatsapp:)?\+?\d[\d\s()\-]{8,14}\d')


def mask_phone(phone: Optional[str]) -> str:
    """Keep only the last three digits of a phone-like identifier"""
    if not phone:
        return "unknown"
    digits = re.sub(r"\D", "", phone)
    if len(digits) <= 3:
        return "***"
    return f"***{digits[-3:]}"


def redact_sensitive_data(text: str) -> str:
    """
    Redact sensitive information from logs
    Removes: emails, tokens, phone numbers
    """
    if not text:
        return text

    # Redact email addresses
    text = re.sub(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b', '[EMAIL_REDACTED]', text)

    # Redact Twilio account SIDs
    text = re.sub(r'\bAC[0-9a-fA-F]{32}\b', '[SID_REDACTED]', text)

    # Redact phone numbers, including the whatsapp: prefix
    text = _PHONE_PATTERN.sub(lambda m: f"[PHONE_{mask_phone(m.group())}]", text)

    return text


def safe_log_error(message: str, error: Exception):
    """Log errors with sensitive data redaction"""
    safe_message = redact_sensitive_data(message)
    safe_error = redact_sensitive_data(str(error))
    logger.error(f"{safe_message}: {safe_error}")
