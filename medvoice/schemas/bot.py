from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class Bot(BaseModel):
    id: str
    uid: str
    name: str
    prompt: str = ""
    domain: str = "medical"
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BotCreateRequest(BaseModel):
    uid: Optional[str] = None
    name: Optional[str] = None
    prompt: Optional[str] = None
    domain: Optional[str] = None


class BotUpdateRequest(BaseModel):
    uid: Optional[str] = None
    name: Optional[str] = None
    prompt: Optional[str] = None
    domain: Optional[str] = None
    is_active: Optional[bool] = None
