from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class Patient(BaseModel):
    id: str
    medical_id: str
    name: str
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    allergies: Optional[str] = None
    current_medications: Optional[str] = None
    medical_history: Optional[str] = None
    last_call_summary: Optional[str] = None
    last_call_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


class FetchPatientRequest(BaseModel):
    medical_id: Optional[str] = None
