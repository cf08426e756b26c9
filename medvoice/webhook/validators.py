"""
Payload validators and sanitizers for voice-platform webhooks.

Medical ID format, phone format, HTML/script stripping, and the
field-by-field pass that turns a raw JSON body into a sanitized mapping
plus a list of human-readable errors.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any

MEDICAL_ID_PATTERN = re.compile(r"MED[0-9]{3}", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"\+?[0-9\s\-\(\)]{10,}")

_SCRIPT_BLOCK = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_TAG = re.compile(r"</?[a-zA-Z][^<>]*>")

# Sanitized as plain strings
STRING_FIELDS = (
    "call_id",
    "session_id",
    "bot_id",
    "bot_name",
    "customer_name",
    "to",
    "summary",
    "status",
    "start_time",
    "end_time",
)

# Passed through as-is (structured objects)
PASSTHROUGH_FIELDS = ("metadata", "function_calls", "structured_data", "analysis")

CALL_WRAPPER_STRING_FIELDS = (
    "call_id",
    "customer_name",
    "bot_name",
    "bot_id",
    "to_number",
)


def sanitize_string(value: Any) -> str:
    """
    Trim and strip markup from a string.

    Removes <script>/<style> blocks with their content, HTML comments and
    any remaining tags, repeating until nothing changes so that
    sanitize_string(sanitize_string(s)) == sanitize_string(s).
    Non-strings become "".
    """
    if not isinstance(value, str):
        return ""

    cleaned = value.strip()
    while True:
        stripped = _SCRIPT_BLOCK.sub("", cleaned)
        stripped = _COMMENT.sub("", stripped)
        stripped = _TAG.sub("", stripped).strip()
        if stripped == cleaned:
            return cleaned
        cleaned = stripped


def is_valid_phone(phone: str) -> bool:
    """Loose phone check: optional +, then digits/spaces/dashes/parens, 10+ chars."""
    return bool(PHONE_PATTERN.fullmatch(phone))


def is_valid_medical_id(medical_id: str) -> bool:
    """MED followed by exactly three digits, case-insensitive."""
    if not isinstance(medical_id, str):
        return False
    return bool(MEDICAL_ID_PATTERN.fullmatch(medical_id))


def normalize_medical_id(medical_id: str) -> str:
    return medical_id.strip().upper()


def parse_duration(value: Any) -> float | None:
    """Return a finite non-negative number, or None when ``value`` is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def flatten_transcript(transcript: Any) -> str | None:
    """
    Turn a transcript into plain text.

    Accepts a string, or a sequence of [speaker, message] pairs /
    {"role": ..., "message"|"content": ...} objects, rendered one
    "speaker: message" line per turn. Returns None for anything else.
    """
    if isinstance(transcript, str):
        return transcript
    if not isinstance(transcript, (list, tuple)):
        return None

    lines = []
    for turn in transcript:
        if isinstance(turn, (list, tuple)) and len(turn) >= 2:
            speaker, message = turn[0], turn[1]
        elif isinstance(turn, dict):
            speaker = turn.get("role") or turn.get("speaker") or ""
            message = turn.get("message") or turn.get("content") or turn.get("text") or ""
        elif isinstance(turn, str):
            speaker, message = "", turn
        else:
            return None
        line = f"{speaker}: {message}" if speaker else str(message)
        lines.append(line)
    return "\n".join(lines)


def _as_text(value: Any) -> str | None:
    """Strings pass, numbers are stringified, everything else is rejected."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


@dataclass
class ValidationResult:
    is_valid: bool
    sanitized: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _validate_call_wrapper(call: Any, errors: list[str]) -> dict[str, Any] | None:
    if not isinstance(call, dict):
        errors.append("Invalid call object")
        return None

    cleaned: dict[str, Any] = dict(call)
    for name in CALL_WRAPPER_STRING_FIELDS:
        if not _present(call.get(name)):
            continue
        text = _as_text(call[name])
        if text is None:
            errors.append(f"Invalid call.{name}: expected a string")
            continue
        cleaned[name] = sanitize_string(text)

    if _present(call.get("from_number")):
        text = _as_text(call["from_number"])
        phone = sanitize_string(text) if text is not None else ""
        cleaned["from_number"] = phone
        if not is_valid_phone(phone):
            errors.append("Invalid phone number format")

    attempt = call.get("attempt")
    if attempt is not None and (
        isinstance(attempt, bool) or not isinstance(attempt, (int, float))
    ):
        errors.append("Invalid call.attempt")

    return cleaned


def validate_webhook_payload(body: Any) -> ValidationResult:
    """
    Sanitize and validate a parsed webhook body.

    Recognised fields are cleaned and checked; unrecognised fields are
    passed through untouched. The caller must reject the request when
    ``is_valid`` is False.
    """
    if not isinstance(body, dict):
        return ValidationResult(is_valid=False, errors=["Payload must be a JSON object"])

    errors: list[str] = []
    sanitized: dict[str, Any] = {}

    recognised = set(STRING_FIELDS) | set(PASSTHROUGH_FIELDS) | {
        "from", "transcript", "duration", "patient_id", "medical_id", "call",
    }
    for key, value in body.items():
        if key not in recognised:
            sanitized[key] = value

    for name in STRING_FIELDS:
        if not _present(body.get(name)):
            continue
        text = _as_text(body[name])
        if text is None:
            errors.append(f"Invalid {name}: expected a string")
            continue
        sanitized[name] = sanitize_string(text)

    # Caller phone (pre-call)
    if _present(body.get("from")):
        text = _as_text(body["from"])
        phone = sanitize_string(text) if text is not None else ""
        sanitized["from"] = phone
        if not is_valid_phone(phone):
            errors.append("Invalid phone number format")

    # Transcript: string or ordered [speaker, message] turns
    if _present(body.get("transcript")):
        text = flatten_transcript(body["transcript"])
        if text is None:
            errors.append("Invalid transcript format")
        else:
            sanitized["transcript"] = sanitize_string(text)

    if body.get("duration") is not None:
        duration = parse_duration(body["duration"])
        if duration is None:
            errors.append("Invalid duration")
        else:
            sanitized["duration"] = duration

    for name in PASSTHROUGH_FIELDS:
        if body.get(name) is not None:
            sanitized[name] = body[name]

    for name in ("patient_id", "medical_id"):
        if not _present(body.get(name)):
            continue
        text = _as_text(body[name])
        value = sanitize_string(text) if text is not None else ""
        if not is_valid_medical_id(value):
            errors.append("Invalid medical ID format")
            continue
        sanitized[name] = normalize_medical_id(value)

    if body.get("call") is not None:
        call = _validate_call_wrapper(body["call"], errors)
        if call is not None:
            sanitized["call"] = call

    return ValidationResult(is_valid=not errors, sanitized=sanitized, errors=errors)
