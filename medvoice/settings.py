"""
Centralized configuration for the voice-assistant backend.

Values come from the environment (a local .env is loaded first). The
Settings model is built once at startup and handed to build_services();
nothing else reads os.environ directly.
"""

import os
from enum import Enum
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

# --- Server ---
PORT = int(os.getenv("PORT", "8080"))


class MissingSignaturePolicy(str, Enum):
    """What to do when a secret is configured but the signature header is absent."""

    REJECT = "reject"
    WARN = "warn"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_optional_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None:
        return default
    if raw.strip() == "":
        return None
    return int(raw)


class Settings(BaseModel):
    """Runtime configuration. Optional secrets switch features on when set."""

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    missing_signature_policy: MissingSignaturePolicy = MissingSignaturePolicy.REJECT
    api_key: Optional[str] = None
    alert_webhook_url: Optional[str] = None
    rate_limit: int = 100
    rate_limit_window_seconds: int = 15 * 60
    default_call_duration_seconds: Optional[int] = 30
    pre_call_demo_fallback: bool = True

    @property
    def store_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_key=os.getenv("SUPABASE_KEY") or None,
            webhook_secret=os.getenv("WEBHOOK_SECRET") or None,
            missing_signature_policy=MissingSignaturePolicy(
                os.getenv("WEBHOOK_MISSING_SIGNATURE_POLICY", "reject").strip().lower()
            ),
            api_key=os.getenv("API_KEY") or None,
            alert_webhook_url=os.getenv("ALERT_WEBHOOK_URL") or None,
            rate_limit=int(os.getenv("RATE_LIMIT", "100")),
            rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900")),
            default_call_duration_seconds=_env_optional_int("DEFAULT_CALL_DURATION_SECONDS", 30),
            pre_call_demo_fallback=_env_bool("PRE_CALL_DEMO_FALLBACK", True),
        )
