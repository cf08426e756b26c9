import os
from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    return {
        "status": "MedVoice Webhook Server is Running",
        "endpoints": {
            "pre_call": "/api/webhooks/pre-call",
            "post_call": "/api/webhooks/post-call",
            "fetch_patient": "/api/functions/fetch-patient",
            "bots": "/api/bots",
            "call_logs": "/api/call-logs",
            "metrics": "/api/metrics",
        },
    }


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "medvoice-webhooks",
        "port": os.environ.get("PORT", 8080),
    }
