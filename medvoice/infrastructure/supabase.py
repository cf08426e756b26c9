"""
Supabase-backed DataStore — talks to the PostgREST API that fronts the
project's Postgres tables (bots, patients, call_logs).

Configuration (environment variables):
  SUPABASE_URL   — project URL, e.g. https://xyz.supabase.co
  SUPABASE_KEY   — anon or service-role key
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from medvoice.infrastructure.store import DataStore, StoreError
from medvoice.schemas.bot import Bot
from medvoice.schemas.call_log import CallLog
from medvoice.schemas.patient import Patient

logger = logging.getLogger("store.supabase")


def _encode(record: dict[str, Any]) -> dict[str, Any]:
    """Make a record JSON-serialisable (datetimes become ISO strings)."""
    return {
        k: (v.isoformat() if isinstance(v, datetime) else v)
        for k, v in record.items()
    }


def _ilike_pattern(text: str) -> str:
    # PostgREST uses * as the wildcard inside ilike filters
    cleaned = text.replace("*", "").replace(",", " ")
    return f"ilike.*{cleaned}*"


class SupabaseStore(DataStore):
    """DataStore over Supabase's REST interface using httpx."""

    # HTTP timeout for individual REST calls (seconds)
    HTTP_TIMEOUT = 10.0

    def __init__(
        self,
        url: str,
        key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = url.rstrip("/") + "/rest/v1"
        self._key = key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy-initialize the shared HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "apikey": self._key,
                    "Authorization": f"Bearer {self._key}",
                    "Content-Type": "application/json",
                },
                timeout=self.HTTP_TIMEOUT,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        returning: bool = False,
    ) -> list[dict[str, Any]]:
        headers = {"Prefer": "return=representation"} if returning else {}
        try:
            response = await self._get_client().request(
                method, f"/{table}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.error("Supabase %s %s failed: %s", method, table, exc)
            raise StoreError(f"{method} {table} failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "Supabase %s %s returned %d: %s",
                method, table, response.status_code, response.text[:200],
            )
            raise StoreError(f"{method} {table} returned {response.status_code}")

        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    async def _select_one(self, table: str, params: dict[str, str]) -> Optional[dict[str, Any]]:
        rows = await self._request("GET", table, params={"select": "*", "limit": "1", **params})
        return rows[0] if rows else None

    # ── Bots ──

    async def find_bot_by_uid(self, uid: str) -> Optional[Bot]:
        row = await self._select_one("bots", {"uid": f"eq.{uid}"})
        return Bot.model_validate(row) if row else None

    async def find_bots_by_name_like(self, pattern: str) -> list[Bot]:
        rows = await self._request(
            "GET", "bots",
            params={
                "select": "*",
                "name": _ilike_pattern(pattern),
                "order": "created_at.desc",
            },
        )
        return [Bot.model_validate(r) for r in rows]

    async def list_bots(self) -> list[Bot]:
        rows = await self._request(
            "GET", "bots", params={"select": "*", "order": "created_at.desc"}
        )
        return [Bot.model_validate(r) for r in rows]

    async def get_bot(self, bot_id: str) -> Optional[Bot]:
        row = await self._select_one("bots", {"id": f"eq.{bot_id}"})
        return Bot.model_validate(row) if row else None

    async def create_bot(self, record: dict[str, Any]) -> Bot:
        rows = await self._request("POST", "bots", json=_encode(record), returning=True)
        if not rows:
            raise StoreError("Bot insert returned no row")
        return Bot.model_validate(rows[0])

    async def update_bot(self, bot_id: str, fields: dict[str, Any]) -> Optional[Bot]:
        payload = _encode({**fields, "updated_at": datetime.now(timezone.utc)})
        rows = await self._request(
            "PATCH", "bots", params={"id": f"eq.{bot_id}"}, json=payload, returning=True
        )
        return Bot.model_validate(rows[0]) if rows else None

    async def delete_bot(self, bot_id: str) -> bool:
        rows = await self._request(
            "DELETE", "bots", params={"id": f"eq.{bot_id}"}, returning=True
        )
        return bool(rows)

    # ── Patients ──

    async def find_patient_by_medical_id(self, medical_id: str) -> Optional[Patient]:
        row = await self._select_one("patients", {"medical_id": f"eq.{medical_id}"})
        return Patient.model_validate(row) if row else None

    async def find_patient_by_phone(self, phone: str) -> Optional[Patient]:
        row = await self._select_one("patients", {"phone": f"eq.{phone}"})
        return Patient.model_validate(row) if row else None

    async def find_latest_patient(self) -> Optional[Patient]:
        row = await self._select_one("patients", {"order": "created_at.desc"})
        return Patient.model_validate(row) if row else None

    async def create_patient(self, record: dict[str, Any]) -> Patient:
        rows = await self._request("POST", "patients", json=_encode(record), returning=True)
        if not rows:
            raise StoreError("Patient insert returned no row")
        return Patient.model_validate(rows[0])

    async def update_patient(self, patient_id: str, fields: dict[str, Any]) -> Optional[Patient]:
        payload = _encode(fields)
        rows = await self._request(
            "PATCH", "patients",
            params={"id": f"eq.{patient_id}"}, json=payload, returning=True,
        )
        return Patient.model_validate(rows[0]) if rows else None

    # ── Call logs ──

    async def insert_call_log(self, record: dict[str, Any]) -> CallLog:
        rows = await self._request("POST", "call_logs", json=_encode(record), returning=True)
        if not rows:
            raise StoreError("Call log insert returned no row")
        return CallLog.model_validate(rows[0])

    async def list_call_logs(
        self, bot_id: Optional[str] = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        params = {
            "select": "*,bots(name,uid),patients(name,medical_id)",
            "order": "created_at.desc",
            "limit": str(limit),
        }
        if bot_id:
            params["bot_id"] = f"eq.{bot_id}"
        return await self._request("GET", "call_logs", params=params)
