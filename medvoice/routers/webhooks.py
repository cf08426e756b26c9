"""
Webhook API — endpoints the voice platform calls around each phone call.

Endpoints:
  POST /api/webhooks/pre-call     Caller lookup, returns context for the agent
  POST /api/webhooks/post-call    Records the finished call

Every request passes the same gates in order: rate limit, signature over
the raw body, JSON decode, payload validation.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from medvoice.dependencies import get_services
from medvoice.errors import (
    AuthenticationError,
    PayloadValidationError,
    RateLimitExceeded,
    ServiceError,
)
from medvoice.webhook.payload import CallPayload
from medvoice.webhook.pipeline import parse_payload
from medvoice.webhook.rate_limit import client_identity
from medvoice.webhook.setup import WebhookServices
from medvoice.webhook.signature import SIGNATURE_HEADER

logger = logging.getLogger("webhook.api")

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

PRE_CALL_FAILURE = {
    "error": "Internal server error",
    "context": (
        "System error occurred. Please proceed with the call and gather "
        "patient information manually."
    ),
}


async def _admit(request: Request, services: WebhookServices) -> CallPayload:
    """Run the inbound gates and return the sanitized payload."""
    decision = services.rate_limiter.check(client_identity(request.headers))
    if not decision.allowed:
        raise RateLimitExceeded(decision)

    body = await request.body()
    if not services.verifier.verify(body, request.headers.get(SIGNATURE_HEADER)):
        raise AuthenticationError("Invalid webhook signature")

    try:
        data = json.loads(body)
    except ValueError:
        logger.warning("Webhook body is not valid JSON")
        raise PayloadValidationError([], message="Invalid JSON payload")

    return parse_payload(data)


@router.post("/pre-call")
async def pre_call(request: Request, services: WebhookServices = Depends(get_services)):
    """
    Look up the caller before the agent picks up.

    Never fails the call on a lookup problem: server-side errors return a
    500 whose ``context`` tells the agent to gather details manually.
    """
    try:
        async with services.monitoring.track("pre-call", request):
            payload = await _admit(request, services)
            return await services.pipeline.handle_pre_call(payload)
    except Exception as exc:
        if isinstance(exc, ServiceError) and exc.status_code < 500:
            raise
        logger.error("Pre-call webhook error: %s", exc)
        return JSONResponse(status_code=500, content=PRE_CALL_FAILURE)


@router.post("/post-call")
async def post_call(request: Request, services: WebhookServices = Depends(get_services)):
    """Resolve the bot and patient for a finished call and log it."""
    async with services.monitoring.track("post-call", request):
        payload = await _admit(request, services)
        call_log = await services.pipeline.handle_post_call(payload)

    return {
        "success": True,
        "message": "Call logged successfully",
        "call_log_id": call_log.id,
    }
