from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class CallLog(BaseModel):
    """One recorded call event. Immutable once inserted."""

    id: str
    bot_id: Optional[str] = None
    patient_id: Optional[str] = None
    call_sid: Optional[str] = None
    transcript: Optional[str] = None
    summary: Optional[str] = None
    duration: Optional[float] = None
    status: str = "completed"
    metadata: Optional[dict[str, Any]] = None
    function_calls: Optional[Any] = None
    created_at: Optional[datetime] = None
