"""
Monitoring — per-endpoint error metrics with optional webhook alerting.

Handlers run inside ``monitoring.track(endpoint, request)``: an exception
is counted, logged with the request context and re-raised; a clean exit
resets the endpoint's error count. When ALERT_WEBHOOK_URL is configured,
each error is also POSTed there in the background.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

import aiohttp

from medvoice.errors import ServiceError

logger = logging.getLogger("webhook.monitoring")

REDACTED_HEADERS = {"authorization", "x-webhook-signature", "cookie", "apikey"}


@dataclass
class EndpointMetric:
    count: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
        }


def request_context(request) -> dict[str, Any]:
    """Method, URL and headers of a Starlette request, secrets redacted."""
    headers = {
        k: ("[redacted]" if k.lower() in REDACTED_HEADERS else v)
        for k, v in request.headers.items()
    }
    return {"method": request.method, "url": str(request.url), "headers": headers}


class MonitoringService:
    """Aggregates endpoint errors and fans them out to an alert webhook."""

    # Alert POST timeout (seconds)
    ALERT_TIMEOUT = 10

    def __init__(self, alert_webhook_url: Optional[str] = None) -> None:
        self._alert_url = alert_webhook_url or None
        self._metrics: dict[str, EndpointMetric] = {}
        # Strong references to alert tasks so they are not GC'd mid-flight
        self._background_tasks: set[asyncio.Task] = set()

    def log_error(
        self,
        endpoint: str,
        error: BaseException,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        logger.error("[%s] Error: %s", endpoint, error, exc_info=error)

        metric = self._metrics.setdefault(endpoint, EndpointMetric())
        metric.count += 1
        metric.last_error = str(error) or type(error).__name__
        metric.last_error_time = datetime.now(timezone.utc)

        if self._alert_url:
            self._schedule_alert(endpoint, metric.last_error, context)

    def log_success(self, endpoint: str) -> None:
        metric = self._metrics.get(endpoint)
        if metric:
            metric.count = 0

    def get_metrics(self) -> dict[str, dict[str, Any]]:
        return {name: m.to_dict() for name, m in self._metrics.items()}

    @asynccontextmanager
    async def track(self, endpoint: str, request=None) -> AsyncIterator[None]:
        """
        Record the outcome of one handler invocation.

        Client errors (ServiceError below 500) are re-raised without being
        counted; they are logged where they are raised.
        """
        try:
            yield
        except ServiceError as exc:
            if exc.status_code >= 500:
                self.log_error(endpoint, exc, self._context(request))
            raise
        except Exception as exc:
            self.log_error(endpoint, exc, self._context(request))
            raise
        else:
            self.log_success(endpoint)

    @staticmethod
    def _context(request) -> Optional[dict[str, Any]]:
        return request_context(request) if request is not None else None

    async def drain(self) -> None:
        """Wait for in-flight alerts (used on shutdown and in tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # ── Alerts ──

    def _schedule_alert(
        self, endpoint: str, error: str, context: Optional[dict[str, Any]]
    ) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop — alert for %s not sent", endpoint)
            return
        task = loop.create_task(self.send_alert(endpoint, error, context))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def send_alert(
        self, endpoint: str, error: str, context: Optional[dict[str, Any]] = None
    ) -> bool:
        payload = {
            "alert": "API Error",
            "endpoint": endpoint,
            "error": error,
            "context": context,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "metrics": self.get_metrics(),
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self._alert_url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.ALERT_TIMEOUT),
                ) as response:
                    if response.status >= 400:
                        logger.error("Alert webhook returned %d", response.status)
                        return False
                    return True
        except Exception as exc:
            logger.error("Failed to send alert: %s", exc)
            return False
