"""
Tests for the Supabase DataStore, using httpx.MockTransport in place of the
PostgREST API.
"""

import json
from datetime import datetime, timezone

import httpx
import pytest

from medvoice.infrastructure.store import StoreError
from medvoice.infrastructure.supabase import SupabaseStore

URL = "https://project.supabase.co"
KEY = "service-key"

BOT_ROW = {
    "id": "b-1",
    "uid": "bot_abc123",
    "name": "Sarah Medical Assistant",
    "prompt": "hi",
    "domain": "medical",
    "is_active": True,
    "created_at": "2024-01-01T00:00:00+00:00",
    "updated_at": "2024-01-01T00:00:00+00:00",
}
PATIENT_ROW = {"id": "p-1", "medical_id": "MED001", "name": "John Doe", "phone": "+15551234567"}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _store(handler):
    """SupabaseStore plus the list of requests it sent."""
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    return SupabaseStore(URL, KEY, transport=httpx.MockTransport(record)), seen


class TestSupabaseReads:

    @pytest.mark.asyncio
    async def test_find_bot_by_uid(self):
        store, seen = _store(lambda r: httpx.Response(200, json=[BOT_ROW]))
        bot = await store.find_bot_by_uid("bot_abc123")
        await store.close()

        assert bot.id == "b-1"
        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/bots"
        assert request.url.params["uid"] == "eq.bot_abc123"
        assert request.url.params["limit"] == "1"
        assert request.headers["apikey"] == KEY
        assert request.headers["authorization"] == f"Bearer {KEY}"

    @pytest.mark.asyncio
    async def test_not_found_is_none(self):
        store, _ = _store(lambda r: httpx.Response(200, json=[]))
        assert await store.find_patient_by_medical_id("MED404") is None
        assert await store.find_latest_patient() is None
        await store.close()

    @pytest.mark.asyncio
    async def test_name_like_filter(self):
        store, seen = _store(lambda r: httpx.Response(200, json=[BOT_ROW]))
        bots = await store.find_bots_by_name_like("sarah")
        await store.close()

        assert [b.uid for b in bots] == ["bot_abc123"]
        assert seen[0].url.params["name"] == "ilike.*sarah*"
        assert seen[0].url.params["order"] == "created_at.desc"

    @pytest.mark.asyncio
    async def test_list_call_logs_joins_and_filters(self):
        row = {"id": "c-1", "bots": {"name": "Sarah", "uid": "bot_abc123"}, "patients": None}
        store, seen = _store(lambda r: httpx.Response(200, json=[row]))
        rows = await store.list_call_logs(bot_id="b-1", limit=20)
        await store.close()

        assert rows == [row]
        params = seen[0].url.params
        assert params["select"] == "*,bots(name,uid),patients(name,medical_id)"
        assert params["bot_id"] == "eq.b-1"
        assert params["limit"] == "20"


class TestSupabaseWrites:

    @pytest.mark.asyncio
    async def test_insert_call_log(self):
        def handler(request):
            body = json.loads(request.content)
            return httpx.Response(201, json=[{"id": "c-1", **body}])

        store, seen = _store(handler)
        log = await store.insert_call_log({"bot_id": "b-1", "patient_id": None, "call_sid": "call_1"})
        await store.close()

        assert log.id == "c-1"
        assert log.call_sid == "call_1"
        assert seen[0].method == "POST"
        assert seen[0].headers["prefer"] == "return=representation"

    @pytest.mark.asyncio
    async def test_update_patient_serialises_datetimes(self):
        def handler(request):
            body = json.loads(request.content)
            return httpx.Response(200, json=[{**PATIENT_ROW, **body}])

        store, seen = _store(handler)
        when = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        patient = await store.update_patient("p-1", {"last_call_date": when})
        await store.close()

        assert seen[0].method == "PATCH"
        assert seen[0].url.params["id"] == "eq.p-1"
        assert json.loads(seen[0].content)["last_call_date"] == "2024-05-01T12:00:00+00:00"
        assert patient.last_call_date == when


class TestSupabaseErrors:

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        store, _ = _store(lambda r: httpx.Response(500, json={"message": "boom"}))
        with pytest.raises(StoreError):
            await store.list_bots()
        await store.close()

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        store, _ = _store(handler)
        with pytest.raises(StoreError):
            await store.find_patient_by_phone("+15551234567")
        await store.close()
