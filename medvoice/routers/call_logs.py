import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from medvoice.auth import require_api_key
from medvoice.dependencies import get_services
from medvoice.errors import PersistenceError
from medvoice.infrastructure.store import StoreError
from medvoice.webhook.setup import WebhookServices

router = APIRouter(prefix="/api/call-logs", tags=["call-logs"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger("medvoice.call_logs")

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


@router.get("")
async def list_call_logs(
    bot_id: Optional[str] = None,
    limit: int = Query(default=DEFAULT_LIMIT),
    services: WebhookServices = Depends(get_services),
):
    """Recent call logs, newest first, with bot and patient names joined in."""
    limit = max(1, min(limit, MAX_LIMIT))
    async with services.monitoring.track("call-logs"):
        try:
            return await services.store.list_call_logs(bot_id=bot_id, limit=limit)
        except StoreError as e:
            logger.error(f"Error fetching call logs: {e}")
            raise PersistenceError("Failed to fetch call logs")
