"""
Tests for the in-memory DataStore.
"""

from datetime import datetime, timedelta, timezone

import pytest

from medvoice.infrastructure.store import InMemoryStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestInMemoryBots:

    @pytest.mark.asyncio
    async def test_name_like_is_case_insensitive_newest_first(self):
        store = InMemoryStore()
        older = store.add_bot(uid="a", name="Clinic Helper", created_at=T0)
        newer = store.add_bot(uid="b", name="clinic line", created_at=T0 + timedelta(hours=1))
        store.add_bot(uid="c", name="Other", created_at=T0 + timedelta(hours=2))

        matches = await store.find_bots_by_name_like("CLINIC")
        assert [b.id for b in matches] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_crud(self):
        store = InMemoryStore()
        bot = await store.create_bot({"uid": "u1", "name": "Bot", "prompt": "p"})
        assert (await store.get_bot(bot.id)).uid == "u1"
        assert (await store.find_bot_by_uid("u1")).id == bot.id

        updated = await store.update_bot(bot.id, {"name": "Renamed"})
        assert updated.name == "Renamed"
        assert updated.updated_at >= bot.updated_at

        assert await store.delete_bot(bot.id) is True
        assert await store.delete_bot(bot.id) is False
        assert await store.update_bot(bot.id, {"name": "x"}) is None


class TestInMemoryPatients:

    @pytest.mark.asyncio
    async def test_lookups_return_none_when_missing(self):
        store = InMemoryStore()
        assert await store.find_patient_by_medical_id("MED001") is None
        assert await store.find_patient_by_phone("+15551234567") is None
        assert await store.find_latest_patient() is None
        assert await store.update_patient("nope", {"name": "x"}) is None

    @pytest.mark.asyncio
    async def test_latest_patient(self):
        store = InMemoryStore()
        store.add_patient(medical_id="MED001", name="A", created_at=T0 + timedelta(days=2))
        store.add_patient(medical_id="MED002", name="B", created_at=T0)
        assert (await store.find_latest_patient()).medical_id == "MED001"


class TestInMemoryCallLogs:

    @pytest.mark.asyncio
    async def test_join_filter_and_limit(self):
        store = InMemoryStore()
        bot = store.add_bot(uid="bot_1", name="Sarah")
        patient = store.add_patient(medical_id="MED001", name="John")
        for i in range(3):
            await store.insert_call_log({"bot_id": bot.id, "patient_id": patient.id, "call_sid": f"c{i}"})
        await store.insert_call_log({"bot_id": None, "patient_id": None, "call_sid": "orphan"})

        rows = await store.list_call_logs(limit=10)
        assert len(rows) == 4
        orphan = next(r for r in rows if r["call_sid"] == "orphan")
        assert orphan["bots"] is None
        assert orphan["patients"] is None

        filtered = await store.list_call_logs(bot_id=bot.id, limit=2)
        assert len(filtered) == 2
        assert filtered[0]["bots"] == {"name": "Sarah", "uid": "bot_1"}
        assert filtered[0]["patients"] == {"name": "John", "medical_id": "MED001"}
