"""CheckLog model - append-only probe history for monitors."""
from sqlalchemy import Column, Index, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.db_utils import utcnow


class CheckLog(Base):
    """Outcome of one probe. Written once by the scheduler, never updated."""

    __tablename__ = "check_logs"
    __table_args__ = (
        Index("ix_check_logs_monitor_recent", "monitor_id", "checked_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    monitor_id = Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False)  # up, down, blocked
    status_code = Column(Integer, nullable=False, default=0)  # 0 when no response arrived
    response_time_ms = Column(Integer, nullable=False, default=0)
    error = Column(String, nullable=True)  # Diagnostic for down/blocked
    checked_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    monitor = relationship("Monitor", back_populates="logs")
