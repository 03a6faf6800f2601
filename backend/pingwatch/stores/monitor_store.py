"""Monitor store - keyed collection of monitor configurations."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from ..models import CheckLog, Monitor
from ..utils.db_utils import retry_on_lock
from .base import BaseStore, DuplicateMonitorError

logger = logging.getLogger(__name__)

# Columns a user may edit after creation
EDITABLE_FIELDS = ("url", "name", "check_interval", "is_active")


class MonitorStore(BaseStore):
    """CRUD over monitors plus the two operations the scheduler needs."""

    async def list_active_monitors(self) -> List[Monitor]:
        async with self.session() as session:
            result = await session.execute(
                select(Monitor)
                .where(Monitor.is_active.is_(True))
                .order_by(Monitor.id)
            )
            return list(result.scalars().all())

    async def update_last_checked(self, monitor_id: int, checked_at: datetime) -> None:
        async with self.session() as session:
            await session.execute(
                update(Monitor)
                .where(Monitor.id == monitor_id)
                .values(last_checked=checked_at)
            )
            await retry_on_lock(session.commit)

    async def create(
        self,
        user_id: int,
        url: str,
        name: Optional[str] = None,
        check_interval: int = 5,
        is_active: bool = True,
    ) -> Monitor:
        """Create a monitor, raising DuplicateMonitorError if the owner has the URL."""
        async with self.session() as session:
            monitor = Monitor(
                user_id=user_id,
                url=url,
                name=name,
                check_interval=check_interval,
                is_active=is_active,
            )
            session.add(monitor)
            try:
                await retry_on_lock(session.commit)
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateMonitorError(url) from e
            await session.refresh(monitor)
            logger.info(f"Monitor {monitor.id} created for user {user_id}: {url}")
            return monitor

    async def get(self, monitor_id: int, user_id: Optional[int] = None) -> Optional[Monitor]:
        """Fetch a monitor; when user_id is given, only if that user owns it."""
        async with self.session() as session:
            query = select(Monitor).where(Monitor.id == monitor_id)
            if user_id is not None:
                query = query.where(Monitor.user_id == user_id)
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def list_for_owner(self, user_id: int) -> List[Monitor]:
        async with self.session() as session:
            result = await session.execute(
                select(Monitor)
                .where(Monitor.user_id == user_id)
                .order_by(Monitor.created_at, Monitor.id)
            )
            return list(result.scalars().all())

    async def update(self, monitor_id: int, user_id: int, changes: dict) -> Optional[Monitor]:
        """Apply non-None editable fields. Returns None if the monitor is not the user's."""
        async with self.session() as session:
            result = await session.execute(
                select(Monitor).where(Monitor.id == monitor_id, Monitor.user_id == user_id)
            )
            monitor = result.scalar_one_or_none()
            if not monitor:
                return None

            for field in EDITABLE_FIELDS:
                value = changes.get(field)
                if value is not None:
                    setattr(monitor, field, value)

            try:
                await retry_on_lock(session.commit)
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateMonitorError(changes.get("url") or monitor.url) from e
            await session.refresh(monitor)
            return monitor

    async def delete(self, monitor_id: int, user_id: int) -> bool:
        """Delete a user's monitor together with its check logs."""
        async with self.session() as session:
            result = await session.execute(
                select(Monitor).where(Monitor.id == monitor_id, Monitor.user_id == user_id)
            )
            monitor = result.scalar_one_or_none()
            if not monitor:
                return False

            await session.execute(delete(CheckLog).where(CheckLog.monitor_id == monitor_id))
            await session.delete(monitor)
            await retry_on_lock(session.commit)
            logger.info(f"Monitor {monitor_id} deleted by user {user_id}")
            return True


monitor_store = MonitorStore()
