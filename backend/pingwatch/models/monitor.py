"""Monitor model - websites being monitored."""
from sqlalchemy import Boolean, Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.db_utils import utcnow


class Monitor(Base):
    """A user's website, probed over HTTP every check_interval minutes."""

    __tablename__ = "monitors"
    __table_args__ = (
        # Prevent duplicate URLs per user
        UniqueConstraint("user_id", "url", name="uq_monitors_user_url"),
        # Ids of deleted monitors are never handed out again
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String, nullable=False)
    name = Column(String, nullable=True)
    check_interval = Column(Integer, default=5)  # minutes
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    last_checked = Column(DateTime, nullable=True)  # NULL until the first probe
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    owner = relationship("User", back_populates="monitors")
    logs = relationship(
        "CheckLog",
        back_populates="monitor",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
