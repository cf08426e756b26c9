"""
Function-call endpoints the voice agent invokes mid-conversation.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from medvoice.dependencies import get_services
from medvoice.errors import PersistenceError
from medvoice.infrastructure.store import StoreError
from medvoice.schemas.patient import FetchPatientRequest
from medvoice.webhook.setup import WebhookServices
from medvoice.webhook.validators import normalize_medical_id, sanitize_string

router = APIRouter(prefix="/api/functions", tags=["functions"])
logger = logging.getLogger("medvoice.functions")


@router.post("/fetch-patient")
async def fetch_patient(
    request: FetchPatientRequest,
    services: WebhookServices = Depends(get_services),
):
    """Return a patient's record, with readable defaults for empty fields."""
    medical_id = sanitize_string(request.medical_id or "")
    if not medical_id:
        return JSONResponse(status_code=400, content={"error": "Medical ID is required"})

    medical_id = normalize_medical_id(medical_id)
    async with services.monitoring.track("fetch-patient"):
        try:
            patient = await services.store.find_patient_by_medical_id(medical_id)
        except StoreError as e:
            logger.error(f"Error fetching patient {medical_id}: {e}")
            raise PersistenceError("Failed to fetch patient")

    if patient is None:
        logger.info(f"fetch_patient: no patient with medical ID {medical_id}")
        return JSONResponse(
            status_code=404,
            content={"error": "Patient not found", "medical_id": medical_id},
        )

    return {
        "patient_found": True,
        "patient_info": {
            "name": patient.name,
            "medical_id": patient.medical_id,
            "date_of_birth": patient.date_of_birth,
            "allergies": patient.allergies or "None reported",
            "current_medications": patient.current_medications or "None",
            "medical_history": patient.medical_history or "No significant history",
            "last_call_summary": patient.last_call_summary or "No previous calls",
        },
    }
