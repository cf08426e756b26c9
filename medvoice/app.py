"""
MedVoice Webhook Server — Application Factory
"""

import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from medvoice.errors import ServiceError
from medvoice.settings import PORT
from medvoice.webhook.setup import WebhookServices, build_services

# ── 1. Configure logging ──
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("medvoice-server")


def create_app(services: Optional[WebhookServices] = None) -> FastAPI:
    """
    Build the FastAPI app around a WebhookServices container.

    Tests pass their own container (in-memory store, fixed settings);
    production builds one from the environment.
    """
    startup_time = time.time()

    # ── 2. Create FastAPI app ──
    app = FastAPI(title="MedVoice Webhook Server")
    app.state.services = services if services is not None else build_services()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── 3. Error handlers ──
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_body(),
            headers=exc.headers() or None,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # ── 4. Register routers ──
    from medvoice.routers import bots, call_logs, functions, health, metrics, webhooks

    app.include_router(health.router)
    app.include_router(webhooks.router)
    app.include_router(functions.router)
    app.include_router(bots.router)
    app.include_router(call_logs.router)
    app.include_router(metrics.router)

    # ── 5. Lifecycle ──
    @app.on_event("startup")
    async def startup_event():
        logger.info("=" * 60)
        logger.info("MedVoice Webhook Server Starting")
        logger.info(f"Listening on port: {PORT}")
        logger.info(f"Total init time: {time.time() - startup_time:.2f}s")
        logger.info("=" * 60)

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.services.close()
        logger.info("MedVoice Webhook Server stopped")

    return app


app = create_app()
