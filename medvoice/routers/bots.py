"""
Bots API — CRUD over the agents configured on the voice platform.

All routes require the bearer API key when API_KEY is set.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from medvoice.auth import require_api_key
from medvoice.dependencies import get_services
from medvoice.errors import PersistenceError
from medvoice.infrastructure.store import StoreError
from medvoice.schemas.bot import BotCreateRequest, BotUpdateRequest
from medvoice.webhook.setup import WebhookServices

router = APIRouter(prefix="/api/bots", tags=["bots"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger("medvoice.bots")

DEFAULT_DOMAIN = "medical"


def _not_found():
    return JSONResponse(status_code=404, content={"error": "Bot not found"})


@router.get("")
async def list_bots(services: WebhookServices = Depends(get_services)):
    async with services.monitoring.track("bots.list"):
        try:
            bots = await services.store.list_bots()
        except StoreError as e:
            logger.error(f"Error fetching bots: {e}")
            raise PersistenceError("Failed to fetch bots")
    return [b.model_dump(mode="json") for b in bots]


@router.post("", status_code=201)
async def create_bot(request: BotCreateRequest, services: WebhookServices = Depends(get_services)):
    if not request.uid or not request.name or not request.prompt:
        return JSONResponse(status_code=400, content={"error": "UID, name, and prompt are required"})

    async with services.monitoring.track("bots.create"):
        try:
            bot = await services.store.create_bot({
                "uid": request.uid,
                "name": request.name,
                "prompt": request.prompt,
                "domain": request.domain or DEFAULT_DOMAIN,
            })
        except StoreError as e:
            logger.error(f"Error creating bot: {e}")
            raise PersistenceError("Failed to create bot")

    logger.info(f"Created bot {bot.uid} ({bot.name})")
    return bot.model_dump(mode="json")


@router.get("/{bot_id}")
async def get_bot(bot_id: str, services: WebhookServices = Depends(get_services)):
    async with services.monitoring.track("bots.get"):
        try:
            bot = await services.store.get_bot(bot_id)
        except StoreError as e:
            logger.error(f"Error fetching bot {bot_id}: {e}")
            raise PersistenceError("Failed to fetch bot")
    if bot is None:
        return _not_found()
    return bot.model_dump(mode="json")


@router.put("/{bot_id}")
async def update_bot(
    bot_id: str,
    request: BotUpdateRequest,
    services: WebhookServices = Depends(get_services),
):
    fields = request.model_dump(exclude_unset=True)
    async with services.monitoring.track("bots.update"):
        try:
            bot = await services.store.update_bot(bot_id, fields)
        except StoreError as e:
            logger.error(f"Error updating bot {bot_id}: {e}")
            raise PersistenceError("Failed to update bot")
    if bot is None:
        return _not_found()
    return bot.model_dump(mode="json")


@router.delete("/{bot_id}")
async def delete_bot(bot_id: str, services: WebhookServices = Depends(get_services)):
    async with services.monitoring.track("bots.delete"):
        try:
            deleted = await services.store.delete_bot(bot_id)
        except StoreError as e:
            logger.error(f"Error deleting bot {bot_id}: {e}")
            raise PersistenceError("Failed to delete bot")
    if not deleted:
        return _not_found()
    return {"message": "Bot deleted successfully"}
