"""
Tests for the call event recorder.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from medvoice.errors import PersistenceError
from medvoice.infrastructure.store import InMemoryStore, StoreError
from medvoice.schemas.bot import Bot
from medvoice.schemas.patient import Patient
from medvoice.webhook.bot_resolver import ResolvedBot, UnknownBot
from medvoice.webhook.payload import CallPayload
from medvoice.webhook.recorder import CallEventRecorder

BOT = ResolvedBot(bot=Bot(id="b-1", uid="bot_abc123", name="Sarah"), strategy="uid")
PATIENT = Patient(id="p-1", medical_id="MED001", name="John Doe")


class TestBuildRecord:

    def test_fields(self):
        payload = CallPayload(
            call_id="call_1",
            transcript="hello",
            summary="short call",
            duration=42.0,
            function_calls=[{"name": "fetch_patient"}],
        )
        record = CallEventRecorder(InMemoryStore()).build_record(BOT, PATIENT, payload)
        assert record == {
            "bot_id": "b-1",
            "patient_id": "p-1",
            "call_sid": "call_1",
            "transcript": "hello",
            "summary": "short call",
            "duration": 42.0,
            "status": "completed",
            "metadata": None,
            "function_calls": [{"name": "fetch_patient"}],
        }

    def test_duration_from_timestamps(self):
        payload = CallPayload(
            started_at=datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc),
            ended_at=datetime(2024, 1, 1, 10, 2, 30, tzinfo=timezone.utc),
        )
        recorder = CallEventRecorder(InMemoryStore())
        assert recorder.resolve_duration(payload) == 150.0

    def test_duration_default_and_disabled(self):
        assert CallEventRecorder(InMemoryStore()).resolve_duration(CallPayload()) == 30
        assert CallEventRecorder(InMemoryStore(), None).resolve_duration(CallPayload()) is None

    def test_metadata_merges_analysis_and_unknown_bot(self):
        payload = CallPayload(
            metadata={"campaign": "flu"},
            structured_data={"outcome": "booked"},
            analysis={"sentiment": "positive"},
            status="voicemail",
        )
        record = CallEventRecorder(InMemoryStore()).build_record(
            UnknownBot(name="Nova", identifier="bot_x"), None, payload
        )
        assert record["bot_id"] is None
        assert record["patient_id"] is None
        assert record["status"] == "voicemail"
        assert record["metadata"] == {
            "campaign": "flu",
            "structured_data": {"outcome": "booked"},
            "analysis": {"sentiment": "positive"},
            "unresolved_bot": {"name": "Nova", "identifier": "bot_x"},
        }


class TestRecord:

    @pytest.mark.asyncio
    async def test_inserts_one_row(self):
        store = InMemoryStore()
        log = await CallEventRecorder(store).record(BOT, PATIENT, CallPayload(call_id="c1"))
        assert store.call_logs == [log]
        assert log.call_sid == "c1"
        assert log.id

    @pytest.mark.asyncio
    async def test_store_failure_is_persistence_error(self):
        store = InMemoryStore()
        store.insert_call_log = AsyncMock(side_effect=StoreError("timeout"))
        with pytest.raises(PersistenceError, match="Failed to log call"):
            await CallEventRecorder(store).record(BOT, PATIENT, CallPayload())
        store.insert_call_log.assert_awaited_once()
