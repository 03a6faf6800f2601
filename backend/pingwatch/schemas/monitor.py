"""Monitor schemas for API."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

# Targets must be absolute http(s) URLs without whitespace
URL_PATTERN = r"^https?://[^\s/$.?#][^\s]*$"


class MonitorCreate(BaseModel):
    """Schema for creating a new monitor."""
    url: str = Field(..., pattern=URL_PATTERN, max_length=2048)
    name: Optional[str] = Field(None, max_length=255)
    check_interval: int = Field(default=5, ge=1, le=1440)  # minutes
    is_active: bool = True


class MonitorUpdate(BaseModel):
    """Schema for updating a monitor."""
    url: Optional[str] = Field(None, pattern=URL_PATTERN, max_length=2048)
    name: Optional[str] = Field(None, max_length=255)
    check_interval: Optional[int] = Field(None, ge=1, le=1440)
    is_active: Optional[bool] = None


class MonitorResponse(BaseModel):
    """Schema for monitor in API responses."""
    id: int
    user_id: int
    url: str
    name: Optional[str] = None
    check_interval: int
    is_active: bool
    last_checked: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MonitorWithStats(MonitorResponse):
    """Monitor with uptime over its most recent checks."""
    uptime_percentage: float
    last_status: str  # up, down, blocked, unknown
    last_response_time: Optional[int] = None
