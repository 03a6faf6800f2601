"""Check log schemas."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class CheckLogResponse(BaseModel):
    """Individual check result record."""
    id: int
    monitor_id: int
    status: str  # up, down, blocked
    status_code: int
    response_time_ms: int
    error: Optional[str] = None
    checked_at: datetime

    class Config:
        from_attributes = True


class CheckLogList(BaseModel):
    """Most recent checks, newest first."""
    logs: List[CheckLogResponse]
