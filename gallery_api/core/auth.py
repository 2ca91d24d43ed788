"""Shared admin token check for destructive routes (replaces the old hardcoded page password)."""
import hmac
import logging

from fastapi import Header, HTTPException

from gallery_api.core.config import settings

logger = logging.getLogger(__name__)


def token_matches(presented: str, expected: str) -> bool:
    if not presented or not expected:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def require_admin(authorization: str | None = Header(default=None)) -> None:
    """FastAPI dependency: Authorization: Bearer <ADMIN_TOKEN>."""
    expected = (settings.admin_token or "").strip()
    if not expected:
        logger.warning("auth: admin request refused, ADMIN_TOKEN not configured")
        raise HTTPException(status_code=403, detail="Admin access is disabled")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token_matches(token.strip(), expected):
        raise HTTPException(status_code=401, detail="Invalid admin token")
