"""
Call Payload — the canonical view of a sanitized webhook body.

Voice platforms disagree on where things live: the call id may be
``call_id``, ``session_id`` or ``call.call_id``; the caller's number may be
``from`` or ``call.from_number``; the patient's name may be in
``customer_name``, the ``call`` wrapper, or the post-call analysis. This
model flattens all of that so the resolvers never inspect raw JSON.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from medvoice.webhook.validators import sanitize_string

_NAME_KEYS = ("patient_name", "customer_name", "caller_name", "name")


def _first(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 strings (``Z`` accepted) or epoch seconds/milliseconds."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return None


class CallPayload(BaseModel):
    """Flattened, already-sanitized webhook fields."""

    call_id: Optional[str] = None
    bot_identifier: Optional[str] = None
    bot_name: Optional[str] = None
    customer_name: Optional[str] = None
    from_phone: Optional[str] = None
    to_phone: Optional[str] = None
    medical_id: Optional[str] = None
    transcript: Optional[str] = None
    summary: Optional[str] = None
    duration: Optional[float] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    status: Optional[str] = None
    attempt: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None
    function_calls: Optional[Any] = None
    structured_data: Optional[dict[str, Any]] = None
    analysis: Optional[dict[str, Any]] = None
    has_call_wrapper: bool = False
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_sanitized(cls, fields: dict[str, Any]) -> CallPayload:
        call = fields.get("call") if isinstance(fields.get("call"), dict) else {}
        structured = fields.get("structured_data")
        analysis = fields.get("analysis")
        metadata = fields.get("metadata")

        attempt = call.get("attempt")
        return cls(
            call_id=_first(fields.get("call_id"), fields.get("session_id"), call.get("call_id")),
            bot_identifier=_first(fields.get("bot_id"), call.get("bot_id")),
            bot_name=_first(fields.get("bot_name"), call.get("bot_name")),
            customer_name=_first(fields.get("customer_name"), call.get("customer_name")),
            from_phone=_first(fields.get("from"), call.get("from_number")),
            to_phone=_first(fields.get("to"), call.get("to_number")),
            medical_id=_first(fields.get("medical_id"), fields.get("patient_id")),
            transcript=fields.get("transcript") or None,
            summary=fields.get("summary") or None,
            duration=fields.get("duration"),
            started_at=_parse_timestamp(fields.get("start_time")),
            ended_at=_parse_timestamp(fields.get("end_time")),
            status=fields.get("status") or None,
            attempt=attempt if isinstance(attempt, int) and not isinstance(attempt, bool) else None,
            metadata=metadata if isinstance(metadata, dict) else None,
            function_calls=fields.get("function_calls"),
            structured_data=structured if isinstance(structured, dict) else None,
            analysis=analysis if isinstance(analysis, dict) else None,
            has_call_wrapper=isinstance(fields.get("call"), dict),
            raw=fields,
        )

    def structured_name_hint(self) -> Optional[str]:
        """Patient name from explicit fields or the post-call analysis objects."""
        candidates: list[Any] = [self.customer_name]
        for source in (self.structured_data, self.analysis):
            if source:
                candidates.extend(source.get(k) for k in _NAME_KEYS)
        # analysis objects are passed through unsanitized
        return sanitize_string(_first(*candidates) or "") or None

    def elapsed_seconds(self) -> Optional[float]:
        if self.started_at and self.ended_at and self.ended_at >= self.started_at:
            return (self.ended_at - self.started_at).total_seconds()
        return None
