"""
Patient Resolution — maps caller details to a stored patient record.

Resolution order:
  1. Medical ID supplied in the payload (MED### format)
  2. Caller phone number
  3. Medical ID passed to a ``fetch_patient`` function call
  4. Medical ID mentioned anywhere in the transcript
  5. Pre-call only: demo fallback (most recent patient, flagged as demo)
  6. Post-call only: create a patient from a name hint with a fresh ID
  7. Post-call only: nothing at all to go on → ResolutionFailure

A post-call match (not a creation) writes ``last_call_summary`` and
``last_call_date`` back to the patient.
"""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from medvoice.errors import PersistenceError, ResolutionFailure
from medvoice.infrastructure.store import DataStore
from medvoice.schemas.patient import Patient
from medvoice.webhook.extractors import extract_patient_name
from medvoice.webhook.payload import CallPayload
from medvoice.webhook.validators import (
    is_valid_medical_id,
    normalize_medical_id,
    sanitize_string,
)

logger = logging.getLogger("webhook.patients")

FETCH_PATIENT_FUNCTION = "fetch_patient"
TRANSCRIPT_MEDICAL_ID = re.compile(r"MED[0-9]{3}(?![0-9])", re.IGNORECASE)
SUMMARY_FROM_TRANSCRIPT_CHARS = 500

DEFAULT_CONTEXT = (
    "No patient data available. Please have the caller provide their "
    "medical ID during the conversation."
)


def build_patient_context(patient: Patient) -> str:
    """Describe a patient for injection into the live call."""
    return (
        f"Patient Information: Name: {patient.name}, "
        f"Medical ID: {patient.medical_id}, "
        f"Allergies: {patient.allergies or 'None reported'}, "
        f"Current Medications: {patient.current_medications or 'None'}, "
        f"Medical History: {patient.medical_history or 'No significant history'}, "
        f"Last Call Summary: {patient.last_call_summary or 'No previous calls'}"
    )


def build_demo_context(patient: Patient) -> str:
    return (
        f"Example Patient Data (for demo): Name: {patient.name}, "
        f"Medical ID: {patient.medical_id}. "
        "In a real scenario, verify patient identity during the call."
    )


# ── Medical ID extraction ──


def _call_name_and_arguments(call: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """Handle both flat records and OpenAI-style {"function": {...}} records."""
    function = call.get("function")
    name = call.get("name") or ""
    arguments: Any = call.get("arguments")

    if isinstance(function, str):
        name = name or function
    elif isinstance(function, dict):
        name = name or function.get("name") or ""
        if arguments is None:
            arguments = function.get("arguments")

    if arguments is None:
        arguments = call.get("parameters")
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except ValueError:
            arguments = None
    return str(name), arguments if isinstance(arguments, dict) else {}


def extract_medical_id_from_function_calls(function_calls: Any) -> Optional[str]:
    """
    Find the medical ID the agent looked up during the call.

    Takes the first call to ``fetch_patient`` or the first call whose
    arguments carry ``medical_id``, then reads ``medical_id`` (else ``id``).
    """
    if isinstance(function_calls, dict):
        function_calls = [function_calls]
    if not isinstance(function_calls, list):
        return None

    for call in function_calls:
        if not isinstance(call, dict):
            continue
        name, arguments = _call_name_and_arguments(call)
        if name != FETCH_PATIENT_FUNCTION and not arguments.get("medical_id"):
            continue

        raw = arguments.get("medical_id") or arguments.get("id")
        if raw is None:
            return None
        candidate = sanitize_string(str(raw)).upper()
        return candidate if is_valid_medical_id(candidate) else None
    return None


def extract_medical_id_from_transcript(transcript: Optional[str]) -> Optional[str]:
    if not transcript:
        return None
    found = TRANSCRIPT_MEDICAL_ID.search(transcript)
    return found.group(0).upper() if found else None


# ── Medical ID synthesis ──


class MedicalIdGenerator:
    """
    Time-derived MED### allocation.

    Seeds from the current second modulo 1000 and probes forward until an
    unused ID is found, so every generated ID is unique in the store.
    """

    ID_SPACE = 1000

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    async def generate(self, store: DataStore) -> str:
        seed = int(self._clock()) % self.ID_SPACE
        for offset in range(self.ID_SPACE):
            candidate = f"MED{(seed + offset) % self.ID_SPACE:03d}"
            if await store.find_patient_by_medical_id(candidate) is None:
                return candidate
        raise PersistenceError("No medical IDs left to allocate")


# ── Results ──


@dataclass
class PatientContext:
    """Pre-call lookup outcome."""
    patient: Optional[Patient]
    context: str
    source: str = "none"        # "medical_id", "phone", "demo", "none"
    is_demo: bool = False


@dataclass
class PatientResolution:
    """Post-call resolution outcome."""
    patient: Optional[Patient]
    source: str = "none"        # "medical_id", "phone", "function_call", "transcript", "created", "none"
    created: bool = False
    tried: list[str] = field(default_factory=list)

    @property
    def patient_id(self) -> Optional[str]:
        return self.patient.id if self.patient else None


class PatientResolver:
    """Resolves patients for pre-call context and post-call logging."""

    def __init__(
        self,
        store: DataStore,
        id_generator: Optional[MedicalIdGenerator] = None,
        demo_fallback: bool = True,
    ) -> None:
        self._store = store
        self._id_generator = id_generator if id_generator is not None else MedicalIdGenerator()
        self._demo_fallback = demo_fallback

    # ── Lookups shared by both flows ──

    async def find_by_medical_id(self, medical_id: Optional[str]) -> Optional[Patient]:
        if not medical_id or not is_valid_medical_id(medical_id):
            return None
        return await self._store.find_patient_by_medical_id(normalize_medical_id(medical_id))

    async def find_by_phone(self, phone: Optional[str]) -> Optional[Patient]:
        phone = sanitize_string(phone) if phone else ""
        if not phone:
            return None
        return await self._store.find_patient_by_phone(phone)

    # ── Pre-call ──

    async def lookup_for_pre_call(
        self,
        from_phone: Optional[str] = None,
        medical_id: Optional[str] = None,
    ) -> PatientContext:
        """Find the caller's record and build the context string. Never raises on a miss."""
        patient = await self.find_by_medical_id(medical_id)
        if patient:
            return PatientContext(patient, build_patient_context(patient), source="medical_id")

        patient = await self.find_by_phone(from_phone)
        if patient:
            return PatientContext(patient, build_patient_context(patient), source="phone")

        if self._demo_fallback:
            patient = await self._store.find_latest_patient()
            if patient:
                logger.info("No caller match — returning demo patient %s", patient.medical_id)
                return PatientContext(
                    patient, build_demo_context(patient), source="demo", is_demo=True
                )

        return PatientContext(None, DEFAULT_CONTEXT)

    # ── Post-call ──

    async def resolve_for_post_call(self, payload: CallPayload) -> PatientResolution:
        """
        Resolve (or create) the patient a finished call belongs to.

        Raises ResolutionFailure when the payload carries no identification
        and no name to create a patient from.
        """
        tried: list[str] = []

        if payload.medical_id:
            tried.append("medical_id")
            patient = await self.find_by_medical_id(payload.medical_id)
            if patient:
                return await self._matched(patient, "medical_id", payload, tried)

        if payload.from_phone:
            tried.append("phone")
            patient = await self.find_by_phone(payload.from_phone)
            if patient:
                return await self._matched(patient, "phone", payload, tried)

        from_function = extract_medical_id_from_function_calls(payload.function_calls)
        if from_function:
            tried.append("function_call")
            patient = await self.find_by_medical_id(from_function)
            if patient:
                return await self._matched(patient, "function_call", payload, tried)

        from_transcript = extract_medical_id_from_transcript(payload.transcript)
        if from_transcript and from_transcript != from_function:
            tried.append("transcript")
            patient = await self.find_by_medical_id(from_transcript)
            if patient:
                return await self._matched(patient, "transcript", payload, tried)

        name = payload.structured_name_hint() or extract_patient_name(payload.summary)
        if name:
            patient = await self._create_patient(name, payload)
            return PatientResolution(patient, source="created", created=True, tried=tried)

        if not tried:
            raise ResolutionFailure("Patient identification missing")

        logger.warning("Patient not found (tried %s) — logging call without patient", tried)
        return PatientResolution(None, tried=tried)

    async def _matched(
        self,
        patient: Patient,
        source: str,
        payload: CallPayload,
        tried: list[str],
    ) -> PatientResolution:
        logger.info("Resolved patient %s via %s", patient.medical_id, source)
        summary = payload.summary or (
            payload.transcript[:SUMMARY_FROM_TRANSCRIPT_CHARS] if payload.transcript else None
        )
        fields: dict[str, Any] = {"last_call_date": datetime.now(timezone.utc)}
        # keep the stored summary when the call carried nothing new
        if summary:
            fields["last_call_summary"] = summary
        updated = await self._store.update_patient(patient.id, fields)
        return PatientResolution(updated or patient, source=source, tried=tried)

    async def _create_patient(self, name: str, payload: CallPayload) -> Patient:
        medical_id = await self._id_generator.generate(self._store)
        record: dict[str, Any] = {"medical_id": medical_id, "name": name}
        if payload.from_phone:
            record["phone"] = payload.from_phone
        patient = await self._store.create_patient(record)
        logger.info("Created patient %s (%s) from call data", medical_id, name)
        return patient
