"""Shared plumbing for the SQLAlchemy-backed stores."""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import async_session


class StoreUnavailable(Exception):
    """The backing database could not be read or written."""


class DuplicateMonitorError(Exception):
    """The owner already monitors this URL."""

    def __init__(self, url: str):
        super().__init__(f"Website already added: {url}")
        self.url = url


class DuplicateUserError(Exception):
    """Email or username already belongs to another account."""

    def __init__(self, field: str):
        super().__init__(f"{field} already in use")
        self.field = field


class BaseStore:
    """Opens one short-lived session per operation."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or async_session

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session, surfacing database failures as StoreUnavailable.

        IntegrityError is left alone so callers can map constraint
        violations to their own duplicate errors.
        """
        try:
            async with self.session_factory() as session:
                yield session
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e
        except OSError as e:
            # Driver-level failures (missing SQLite directory, refused socket)
            raise StoreUnavailable(str(e)) from e
