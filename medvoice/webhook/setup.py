"""
Webhook Setup — wires the data store, resolvers, recorder, rate limiter
and monitoring into one WebhookServices container.

Built once by create_app() and attached to ``app.state.services``; routers
reach it through medvoice.dependencies.get_services. Nothing here is a
module-level singleton, so tests can build as many isolated instances as
they need.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from medvoice.infrastructure.store import DataStore, InMemoryStore
from medvoice.infrastructure.supabase import SupabaseStore
from medvoice.settings import Settings
from medvoice.webhook.bot_resolver import BotResolver
from medvoice.webhook.monitoring import MonitoringService
from medvoice.webhook.patient_resolver import MedicalIdGenerator, PatientResolver
from medvoice.webhook.pipeline import WebhookPipeline
from medvoice.webhook.rate_limit import CounterStore, RateLimiter
from medvoice.webhook.recorder import CallEventRecorder
from medvoice.webhook.signature import SignatureVerifier

logger = logging.getLogger("webhook.setup")


@dataclass
class WebhookServices:
    settings: Settings
    store: DataStore
    verifier: SignatureVerifier
    rate_limiter: RateLimiter
    monitoring: MonitoringService
    pipeline: WebhookPipeline

    async def close(self) -> None:
        await self.monitoring.drain()
        await self.store.close()


def _build_store(settings: Settings) -> DataStore:
    if settings.store_configured:
        logger.info("Using Supabase store at %s", settings.supabase_url)
        return SupabaseStore(settings.supabase_url, settings.supabase_key)
    logger.warning("SUPABASE_URL / SUPABASE_KEY not set — using in-memory store")
    return InMemoryStore()


def build_services(
    settings: Optional[Settings] = None,
    store: Optional[DataStore] = None,
    counters: Optional[CounterStore] = None,
    id_generator: Optional[MedicalIdGenerator] = None,
) -> WebhookServices:
    """Construct every webhook component from settings."""
    settings = settings if settings is not None else Settings.from_env()
    store = store if store is not None else _build_store(settings)

    # 1. Inbound gates
    verifier = SignatureVerifier(
        secret=settings.webhook_secret,
        missing_policy=settings.missing_signature_policy,
    )
    rate_limiter = RateLimiter(
        limit=settings.rate_limit,
        window_seconds=settings.rate_limit_window_seconds,
        counters=counters,
    )

    # 2. Resolution + recording
    pipeline = WebhookPipeline(
        bot_resolver=BotResolver(store),
        patient_resolver=PatientResolver(
            store,
            id_generator=id_generator,
            demo_fallback=settings.pre_call_demo_fallback,
        ),
        recorder=CallEventRecorder(
            store,
            default_duration_seconds=settings.default_call_duration_seconds,
        ),
    )

    # 3. Monitoring
    monitoring = MonitoringService(settings.alert_webhook_url)

    logger.info(
        "Webhook services ready (signature=%s, auth=%s, alerts=%s)",
        "on" if verifier.enabled else "off",
        "on" if settings.api_key else "off",
        "on" if settings.alert_webhook_url else "off",
    )
    return WebhookServices(
        settings=settings,
        store=store,
        verifier=verifier,
        rate_limiter=rate_limiter,
        monitoring=monitoring,
        pipeline=pipeline,
    )
