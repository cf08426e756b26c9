"""
Webhook Pipeline — the pre-call and post-call flows.

    raw JSON ──► validate/sanitize ──► CallPayload
                                         │
         pre-call:  PatientResolver.lookup_for_pre_call ──► context response
         post-call: BotResolver + PatientResolver ──► CallEventRecorder

Signature checks and rate limiting happen in the HTTP layer before the
body reaches this module.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from medvoice.errors import PayloadValidationError, PersistenceError, ResolutionFailure
from medvoice.infrastructure.store import StoreError
from medvoice.schemas.call_log import CallLog
from medvoice.schemas.patient import Patient
from medvoice.webhook.bot_resolver import BotResolver
from medvoice.webhook.patient_resolver import PatientContext, PatientResolver
from medvoice.webhook.payload import CallPayload
from medvoice.webhook.recorder import CallEventRecorder
from medvoice.webhook.validators import validate_webhook_payload

logger = logging.getLogger("webhook.pipeline")


def parse_payload(body: Any) -> CallPayload:
    """Validate and sanitize a decoded JSON body, or raise PayloadValidationError."""
    result = validate_webhook_payload(body)
    if not result.is_valid:
        logger.warning("Webhook payload rejected: %s", result.errors)
        raise PayloadValidationError(result.errors)
    return CallPayload.from_sanitized(result.sanitized)


def _dynamic_variables(payload: CallPayload, found: PatientContext) -> dict[str, str]:
    patient: Optional[Patient] = found.patient
    return {
        "patient_name": (patient.name if patient else None) or payload.customer_name or "",
        "medical_id": (patient.medical_id if patient else None) or "",
        "patient_context": found.context,
        "allergies": (patient.allergies if patient else None) or "None reported",
        "current_medications": (patient.current_medications if patient else None) or "None",
        "medical_history": (patient.medical_history if patient else None) or "No significant history",
        "last_call_summary": (patient.last_call_summary if patient else None) or "No previous calls",
        "customer_name": payload.customer_name or "",
        "bot_name": payload.bot_name or "",
        "attempt": str(payload.attempt) if payload.attempt is not None else "",
    }


class WebhookPipeline:
    """Runs a sanitized webhook through resolution and recording."""

    def __init__(
        self,
        bot_resolver: BotResolver,
        patient_resolver: PatientResolver,
        recorder: CallEventRecorder,
    ) -> None:
        self._bots = bot_resolver
        self._patients = patient_resolver
        self._recorder = recorder

    async def handle_pre_call(self, payload: CallPayload) -> dict[str, Any]:
        """
        Look up the caller and build the context injected into the call.

        Response shape follows the caller: platforms that send a ``call``
        wrapper expect ``{"call": {"dynamic_variables": {...}}}``; everything
        else gets the flat ``{patient_data, context, call_details}`` object.
        """
        found = await self._patients.lookup_for_pre_call(
            from_phone=payload.from_phone,
            medical_id=payload.medical_id,
        )
        logger.info(
            "Pre-call %s: patient=%s source=%s",
            payload.call_id,
            found.patient.medical_id if found.patient else None,
            found.source,
        )

        if payload.has_call_wrapper:
            return {"call": {"dynamic_variables": _dynamic_variables(payload, found)}}

        return {
            "patient_data": found.patient.model_dump(mode="json") if found.patient else None,
            "context": found.context,
            "call_details": {
                "from": payload.from_phone,
                "to": payload.to_phone,
                "call_id": payload.call_id,
                "bot_id": payload.bot_identifier,
            },
        }

    async def handle_post_call(self, payload: CallPayload) -> CallLog:
        """
        Resolve bot and patient, then record the call.

        Raises ResolutionFailure when neither a bot nor a patient can be
        identified, and PersistenceError when the store fails.
        """
        try:
            bot = await self._bots.resolve(
                identifier=payload.bot_identifier,
                name_hint=payload.bot_name,
                summary=payload.summary,
            )
            if bot is None:
                raise ResolutionFailure("Bot identification missing")

            resolution = await self._patients.resolve_for_post_call(payload)
        except StoreError as exc:
            logger.error("Store failure while resolving call %s: %s", payload.call_id, exc)
            raise PersistenceError("Failed to log call") from exc

        return await self._recorder.record(bot, resolution.patient, payload)
