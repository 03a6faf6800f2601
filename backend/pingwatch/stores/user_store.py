"""User store - accounts and credentials."""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..models import User
from ..utils.db_utils import retry_on_lock
from .base import BaseStore, DuplicateUserError

logger = logging.getLogger(__name__)


class UserStore(BaseStore):
    """Lookup and mutation of user accounts."""

    async def create(self, email: str, username: str, password_hash: str, name: Optional[str] = None) -> User:
        async with self.session() as session:
            if await self._exists(session, User.email, email):
                raise DuplicateUserError("email")
            if await self._exists(session, User.username, username):
                raise DuplicateUserError("username")

            user = User(email=email, username=username, password_hash=password_hash, name=name)
            session.add(user)
            try:
                await retry_on_lock(session.commit)
            except IntegrityError as e:
                # Lost a race with a concurrent registration
                await session.rollback()
                field = "email" if await self._exists(session, User.email, email) else "username"
                raise DuplicateUserError(field) from e
            await session.refresh(user)
            logger.info(f"User {user.id} registered as {username}")
            return user

    async def get(self, user_id: int) -> Optional[User]:
        async with self.session() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        async with self.session() as session:
            result = await session.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()

    async def username_exists(self, username: str) -> bool:
        async with self.session() as session:
            return await self._exists(session, User.username, username)

    async def update_password(self, user_id: int, password_hash: str) -> None:
        async with self.session() as session:
            user = await session.get(User, user_id)
            if user is None:
                return
            user.password_hash = password_hash
            await retry_on_lock(session.commit)

    async def update_username(self, user_id: int, username: str) -> Optional[User]:
        async with self.session() as session:
            if await self._exists(session, User.username, username):
                raise DuplicateUserError("username")
            user = await session.get(User, user_id)
            if user is None:
                return None
            user.username = username
            try:
                await retry_on_lock(session.commit)
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateUserError("username") from e
            await session.refresh(user)
            return user

    @staticmethod
    async def _exists(session, column, value) -> bool:
        result = await session.execute(select(column).where(column == value).limit(1))
        return result.first() is not None


user_store = UserStore()
