from fastapi import HTTPException, Header
from typing import Optional
import hmac
import logging

from .. import config

logger = logging.getLogger(__name__)


async def get_current_admin(x_admin_token: Optional[str] = Header(None)) -> str:
    """Check the admin token header"""
    if not config.ADMIN_TOKEN:
        logger.error("ADMIN_TOKEN is not configured, admin API disabled")
        raise HTTPException(status_code=503, detail="Admin access is not configured")

    if not x_admin_token or not hmac.compare_digest(x_admin_token.encode("utf-8"), config.ADMIN_TOKEN.encode("utf-8")):
        raise HTTPException(status_code=403, detail="Admin access required")

    return "admin"
