"""
Password hashing and optional HMAC-SHA256 validation of inbound webhooks.
"""
import hashlib
import hmac
from typing import Optional

from fastapi import HTTPException, Request
from passlib.context import CryptContext

from chathub.core.config import get_settings
from chathub.core.logging import get_logger

logger = get_logger(__name__)

PASSWORD_CONTEXT = CryptContext(
    schemes=["pbkdf2_sha256"],
    default="pbkdf2_sha256",
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return PASSWORD_CONTEXT.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return PASSWORD_CONTEXT.verify(password, password_hash)
    except ValueError:
        # Unrecognised hash format
        return False


def compute_signature(secret: str, body: bytes) -> str:
    """
    Compute HMAC-SHA256 signature for the given body.

    Args:
        secret: The webhook secret key
        body: Raw request body bytes

    Returns:
        Hex-encoded HMAC-SHA256 signature
    """
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=body,
        digestmod=hashlib.sha256
    ).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str) -> bool:
    """Verify a signature using constant-time comparison."""
    return hmac.compare_digest(compute_signature(secret, body), signature)


async def get_webhook_body(request: Request) -> bytes:
    """
    Read the raw webhook body, enforcing the X-Signature header when a
    webhook secret is configured.

    The provider does not sign its calls by default, so without a secret
    every body is accepted. Raises 401 on a missing or wrong signature.
    """
    settings = request.app.state.settings if hasattr(request.app.state, "settings") else get_settings()
    body = await request.body()

    if not settings.is_webhook_secret_configured:
        return body

    signature: Optional[str] = request.headers.get("X-Signature")
    if not signature:
        logger.warning("Webhook request missing X-Signature header")
        raise HTTPException(status_code=401, detail="invalid signature")

    if not verify_signature(settings.webhook_secret, body, signature):
        logger.warning(
            "Webhook signature verification failed",
            extra={"extra_data": {"received_signature": signature[:16] + "..."}},
        )
        raise HTTPException(status_code=401, detail="invalid signature")

    return body
