"""Check log store - append-only probe history."""
import logging
from typing import List

from sqlalchemy import delete, select

from ..models import CheckLog
from ..utils.db_utils import retry_on_lock
from .base import BaseStore

logger = logging.getLogger(__name__)


class CheckLogStore(BaseStore):
    """Appends probe outcomes and reads them back newest first."""

    async def append_log(self, entry: CheckLog) -> CheckLog:
        async with self.session() as session:
            session.add(entry)
            await retry_on_lock(session.commit)
            return entry

    async def recent_logs(self, monitor_id: int, limit: int = 100) -> List[CheckLog]:
        """Most recent first. Ties on checked_at fall back to insertion order."""
        async with self.session() as session:
            result = await session.execute(
                select(CheckLog)
                .where(CheckLog.monitor_id == monitor_id)
                .order_by(CheckLog.checked_at.desc(), CheckLog.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def prune(self, keep: int) -> int:
        """Delete everything but the newest `keep` entries of each monitor.

        Returns the number of rows removed.
        """
        removed = 0
        async with self.session() as session:
            result = await session.execute(select(CheckLog.monitor_id).distinct())
            monitor_ids = [row[0] for row in result.fetchall()]

            for monitor_id in monitor_ids:
                # Id of the newest entry that falls outside the kept window
                boundary_result = await session.execute(
                    select(CheckLog.id)
                    .where(CheckLog.monitor_id == monitor_id)
                    .order_by(CheckLog.id.desc())
                    .offset(keep)
                    .limit(1)
                )
                boundary = boundary_result.scalar_one_or_none()
                if boundary is None:
                    continue

                deleted = await session.execute(
                    delete(CheckLog).where(
                        CheckLog.monitor_id == monitor_id,
                        CheckLog.id <= boundary,
                    )
                )
                removed += deleted.rowcount or 0

            await retry_on_lock(session.commit)
        return removed


check_log_store = CheckLogStore()
