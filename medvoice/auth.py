"""
Bearer-key authentication for the CRUD and metrics endpoints.

When API_KEY is unset every request passes, so local development and
the in-memory demo need no credentials.
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header

from medvoice.dependencies import get_services
from medvoice.errors import AuthenticationError
from medvoice.webhook.setup import WebhookServices

logger = logging.getLogger("medvoice.auth")

BEARER_PREFIX = "Bearer "


def is_authorized(authorization: Optional[str], api_key: Optional[str]) -> bool:
    if not api_key:
        return True
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return False
    token = authorization[len(BEARER_PREFIX):].strip()
    return hmac.compare_digest(token.encode("utf-8"), api_key.encode("utf-8"))


async def require_api_key(
    authorization: Optional[str] = Header(default=None),
    services: WebhookServices = Depends(get_services),
) -> None:
    """FastAPI dependency: raise AuthenticationError unless the bearer key matches."""
    if not is_authorized(authorization, services.settings.api_key):
        logger.warning("Rejected request with missing or invalid API key")
        raise AuthenticationError()
