from pydantic import BaseModel
from typing import Dict


class DemoSessionResponse(BaseModel):
    session_id: str
    created_at: str
    expires_at: str
    is_active: bool


class DemoSessionStats(BaseModel):
    session_id: str
    counts: Dict[str, int]
    remaining_seconds: int
