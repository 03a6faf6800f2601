"""User model - owners of monitors."""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.db_utils import utcnow


class User(Base):
    """A registered account. Each monitor belongs to exactly one user."""

    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, unique=True, nullable=False, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)  # pbkdf2_sha256$iterations$salt$digest
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    monitors = relationship("Monitor", back_populates="owner", cascade="all, delete-orphan")
