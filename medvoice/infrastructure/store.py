"""
Data Store — the data-access collaborator used by the webhook pipeline
and the CRUD routers.

Every lookup returns None (or an empty list) on "not found"; only
transport or database failures raise StoreError. Two implementations:

  InMemoryStore   dict-backed, used by tests and local development
  SupabaseStore   PostgREST over HTTP (see infrastructure/supabase.py)
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from medvoice.schemas.bot import Bot
from medvoice.schemas.call_log import CallLog
from medvoice.schemas.patient import Patient

logger = logging.getLogger("store")


class StoreError(Exception):
    """Raised when the backing store cannot complete a call."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class DataStore(ABC):
    """Async data-access interface over bots, patients and call logs."""

    # ── Bots ──

    @abstractmethod
    async def find_bot_by_uid(self, uid: str) -> Optional[Bot]:
        ...

    @abstractmethod
    async def find_bots_by_name_like(self, pattern: str) -> list[Bot]:
        """Case-insensitive substring match on bot name, natural order."""

    @abstractmethod
    async def list_bots(self) -> list[Bot]:
        ...

    @abstractmethod
    async def get_bot(self, bot_id: str) -> Optional[Bot]:
        ...

    @abstractmethod
    async def create_bot(self, record: dict[str, Any]) -> Bot:
        ...

    @abstractmethod
    async def update_bot(self, bot_id: str, fields: dict[str, Any]) -> Optional[Bot]:
        ...

    @abstractmethod
    async def delete_bot(self, bot_id: str) -> bool:
        ...

    # ── Patients ──

    @abstractmethod
    async def find_patient_by_medical_id(self, medical_id: str) -> Optional[Patient]:
        ...

    @abstractmethod
    async def find_patient_by_phone(self, phone: str) -> Optional[Patient]:
        ...

    @abstractmethod
    async def find_latest_patient(self) -> Optional[Patient]:
        """Most recently created patient, or None when the table is empty."""

    @abstractmethod
    async def create_patient(self, record: dict[str, Any]) -> Patient:
        ...

    @abstractmethod
    async def update_patient(self, patient_id: str, fields: dict[str, Any]) -> Optional[Patient]:
        ...

    # ── Call logs ──

    @abstractmethod
    async def insert_call_log(self, record: dict[str, Any]) -> CallLog:
        ...

    @abstractmethod
    async def list_call_logs(
        self, bot_id: Optional[str] = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        """Newest first, joined with bot (name, uid) and patient (name, medical_id)."""

    async def close(self) -> None:
        """Release any held resources. No-op by default."""


class InMemoryStore(DataStore):
    """
    Dict-backed store. Natural order is newest first, matching the
    ``order=created_at.desc`` the Supabase store uses.
    """

    def __init__(self) -> None:
        self._bots: dict[str, Bot] = {}
        self._patients: dict[str, Patient] = {}
        self._call_logs: dict[str, CallLog] = {}

    # ── Seeding (tests / local dev) ──

    def add_bot(self, **fields: Any) -> Bot:
        fields.setdefault("id", _new_id())
        fields.setdefault("created_at", _now())
        fields.setdefault("updated_at", fields["created_at"])
        bot = Bot(**fields)
        self._bots[bot.id] = bot
        return bot

    def add_patient(self, **fields: Any) -> Patient:
        fields.setdefault("id", _new_id())
        fields.setdefault("created_at", _now())
        patient = Patient(**fields)
        self._patients[patient.id] = patient
        return patient

    @property
    def call_logs(self) -> list[CallLog]:
        return list(self._call_logs.values())

    @property
    def patients(self) -> list[Patient]:
        return list(self._patients.values())

    # ── Bots ──

    def _bots_newest_first(self) -> list[Bot]:
        # Stable sort keeps insertion order for equal timestamps
        return sorted(
            self._bots.values(),
            key=lambda b: b.created_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )

    async def find_bot_by_uid(self, uid: str) -> Optional[Bot]:
        for bot in self._bots.values():
            if bot.uid == uid:
                return bot
        return None

    async def find_bots_by_name_like(self, pattern: str) -> list[Bot]:
        needle = pattern.lower()
        return [b for b in self._bots_newest_first() if needle in b.name.lower()]

    async def list_bots(self) -> list[Bot]:
        return self._bots_newest_first()

    async def get_bot(self, bot_id: str) -> Optional[Bot]:
        return self._bots.get(bot_id)

    async def create_bot(self, record: dict[str, Any]) -> Bot:
        return self.add_bot(**record)

    async def update_bot(self, bot_id: str, fields: dict[str, Any]) -> Optional[Bot]:
        bot = self._bots.get(bot_id)
        if bot is None:
            return None
        updated = bot.model_copy(update={**fields, "updated_at": _now()})
        self._bots[bot_id] = updated
        return updated

    async def delete_bot(self, bot_id: str) -> bool:
        return self._bots.pop(bot_id, None) is not None

    # ── Patients ──

    async def find_patient_by_medical_id(self, medical_id: str) -> Optional[Patient]:
        for patient in self._patients.values():
            if patient.medical_id == medical_id:
                return patient
        return None

    async def find_patient_by_phone(self, phone: str) -> Optional[Patient]:
        for patient in self._patients.values():
            if patient.phone == phone:
                return patient
        return None

    async def find_latest_patient(self) -> Optional[Patient]:
        if not self._patients:
            return None
        return max(
            self._patients.values(),
            key=lambda p: p.created_at or datetime.min.replace(tzinfo=timezone.utc),
        )

    async def create_patient(self, record: dict[str, Any]) -> Patient:
        return self.add_patient(**record)

    async def update_patient(self, patient_id: str, fields: dict[str, Any]) -> Optional[Patient]:
        patient = self._patients.get(patient_id)
        if patient is None:
            return None
        updated = patient.model_copy(update=fields)
        self._patients[patient_id] = updated
        return updated

    # ── Call logs ──

    async def insert_call_log(self, record: dict[str, Any]) -> CallLog:
        log = CallLog(id=_new_id(), created_at=_now(), **record)
        self._call_logs[log.id] = log
        return log

    async def list_call_logs(
        self, bot_id: Optional[str] = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        logs = sorted(self._call_logs.values(), key=lambda c: c.created_at, reverse=True)
        if bot_id:
            logs = [c for c in logs if c.bot_id == bot_id]

        rows = []
        for log in logs[:limit]:
            row = log.model_dump(mode="json")
            bot = self._bots.get(log.bot_id) if log.bot_id else None
            patient = self._patients.get(log.patient_id) if log.patient_id else None
            row["bots"] = {"name": bot.name, "uid": bot.uid} if bot else None
            row["patients"] = (
                {"name": patient.name, "medical_id": patient.medical_id} if patient else None
            )
            rows.append(row)
        return rows
