"""Website monitor CRUD API endpoints."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..models import Monitor, User
from ..schemas.monitor import (
    MonitorCreate,
    MonitorUpdate,
    MonitorResponse,
    MonitorWithStats,
)
from ..schemas.status import CheckLogResponse, CheckLogList
from ..services.auth import get_current_user
from ..services.uptime import UPTIME_WINDOW, UptimeService, uptime_service
from ..stores import (
    CheckLogStore,
    DuplicateMonitorError,
    MonitorStore,
    check_log_store,
    monitor_store,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/websites", tags=["websites"])


def get_monitor_store() -> MonitorStore:
    return monitor_store


def get_check_log_store() -> CheckLogStore:
    return check_log_store


def get_uptime_service() -> UptimeService:
    return uptime_service


async def _get_owned_monitor(monitor_id: int, user: User, monitors: MonitorStore) -> Monitor:
    """Fetch a monitor the caller owns; anything else is a 404."""
    monitor = await monitors.get(monitor_id, user_id=user.id)
    if not monitor:
        raise HTTPException(status_code=404, detail="Monitor not found or unauthorized")
    return monitor


@router.post("", response_model=MonitorResponse, status_code=201)
async def add_website(
    data: MonitorCreate,
    user: User = Depends(get_current_user),
    monitors: MonitorStore = Depends(get_monitor_store),
):
    """Start monitoring a website."""
    try:
        monitor = await monitors.create(
            user_id=user.id,
            url=data.url,
            name=data.name,
            check_interval=data.check_interval,
            is_active=data.is_active,
        )
    except DuplicateMonitorError:
        raise HTTPException(status_code=400, detail="Website already added")
    return MonitorResponse.model_validate(monitor)


@router.get("", response_model=List[MonitorWithStats])
async def list_websites(
    user: User = Depends(get_current_user),
    monitors: MonitorStore = Depends(get_monitor_store),
    uptime: UptimeService = Depends(get_uptime_service),
):
    """List the caller's websites with uptime over their recent checks."""
    response = []
    for monitor in await monitors.list_for_owner(user.id):
        summary = await uptime.summary_for(monitor.id)
        response.append(MonitorWithStats(
            **MonitorResponse.model_validate(monitor).model_dump(),
            uptime_percentage=summary.uptime_percentage,
            last_status=summary.last_status,
            last_response_time=summary.last_response_time,
        ))
    return response


@router.get("/{monitor_id}", response_model=MonitorResponse)
async def get_website(
    monitor_id: int,
    user: User = Depends(get_current_user),
    monitors: MonitorStore = Depends(get_monitor_store),
):
    """Get a single website by ID."""
    monitor = await _get_owned_monitor(monitor_id, user, monitors)
    return MonitorResponse.model_validate(monitor)


@router.put("/{monitor_id}", response_model=MonitorResponse)
async def update_website(
    monitor_id: int,
    update: MonitorUpdate,
    user: User = Depends(get_current_user),
    monitors: MonitorStore = Depends(get_monitor_store),
):
    """Edit url, name, interval or active flag."""
    try:
        monitor = await monitors.update(monitor_id, user.id, update.model_dump(exclude_none=True))
    except DuplicateMonitorError:
        raise HTTPException(status_code=400, detail="Website already added")

    if not monitor:
        raise HTTPException(status_code=404, detail="Monitor not found or unauthorized")
    return MonitorResponse.model_validate(monitor)


@router.delete("/{monitor_id}", status_code=204)
async def delete_website(
    monitor_id: int,
    user: User = Depends(get_current_user),
    monitors: MonitorStore = Depends(get_monitor_store),
):
    """Delete a website and its check history."""
    if not await monitors.delete(monitor_id, user.id):
        raise HTTPException(status_code=404, detail="Monitor not found or unauthorized")


@router.get("/{monitor_id}/logs", response_model=CheckLogList)
async def get_website_logs(
    monitor_id: int,
    user: User = Depends(get_current_user),
    monitors: MonitorStore = Depends(get_monitor_store),
    logs: CheckLogStore = Depends(get_check_log_store),
):
    """Most recent checks for a website, newest first."""
    await _get_owned_monitor(monitor_id, user, monitors)
    entries = await logs.recent_logs(monitor_id, limit=UPTIME_WINDOW)
    return CheckLogList(logs=[CheckLogResponse.model_validate(e) for e in entries])
