"""
Call Event Recorder — persists one call log per resolved post-call webhook.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from medvoice.errors import PersistenceError
from medvoice.infrastructure.store import DataStore, StoreError
from medvoice.schemas.call_log import CallLog
from medvoice.schemas.patient import Patient
from medvoice.webhook.bot_resolver import BotReference, UnknownBot
from medvoice.webhook.payload import CallPayload

logger = logging.getLogger("webhook.recorder")

DEFAULT_STATUS = "completed"


class CallEventRecorder:
    """Builds and inserts call-log rows. A failed insert is not retried."""

    def __init__(
        self,
        store: DataStore,
        default_duration_seconds: Optional[float] = 30,
    ) -> None:
        self._store = store
        self._default_duration = default_duration_seconds

    def resolve_duration(self, payload: CallPayload) -> Optional[float]:
        """Explicit duration, else end - start, else the configured default."""
        if payload.duration is not None:
            return payload.duration
        elapsed = payload.elapsed_seconds()
        if elapsed is not None:
            return elapsed
        return self._default_duration

    def build_record(
        self,
        bot: Optional[BotReference],
        patient: Optional[Patient],
        payload: CallPayload,
    ) -> dict[str, Any]:
        metadata: dict[str, Any] = dict(payload.metadata or {})
        if payload.structured_data:
            metadata["structured_data"] = payload.structured_data
        if payload.analysis:
            metadata["analysis"] = payload.analysis
        if isinstance(bot, UnknownBot):
            metadata["unresolved_bot"] = {"name": bot.name, "identifier": bot.identifier}

        return {
            "bot_id": bot.bot_id if bot else None,
            "patient_id": patient.id if patient else None,
            "call_sid": payload.call_id,
            "transcript": payload.transcript,
            "summary": payload.summary,
            "duration": self.resolve_duration(payload),
            "status": payload.status or DEFAULT_STATUS,
            "metadata": metadata or None,
            "function_calls": payload.function_calls,
        }

    async def record(
        self,
        bot: Optional[BotReference],
        patient: Optional[Patient],
        payload: CallPayload,
    ) -> CallLog:
        record = self.build_record(bot, patient, payload)
        try:
            call_log = await self._store.insert_call_log(record)
        except StoreError as exc:
            logger.error("Error logging call %s: %s", payload.call_id, exc)
            raise PersistenceError("Failed to log call") from exc

        logger.info(
            "Call %s logged (bot=%s, patient=%s)",
            payload.call_id, record["bot_id"], record["patient_id"],
        )
        return call_log
