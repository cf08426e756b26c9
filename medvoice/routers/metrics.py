from fastapi import APIRouter, Depends

from medvoice.auth import require_api_key
from medvoice.dependencies import get_services
from medvoice.webhook.setup import WebhookServices

router = APIRouter(tags=["metrics"], dependencies=[Depends(require_api_key)])


@router.get("/api/metrics")
async def get_metrics(services: WebhookServices = Depends(get_services)):
    """Per-endpoint error counts since startup."""
    return {"metrics": services.monitoring.get_metrics()}
