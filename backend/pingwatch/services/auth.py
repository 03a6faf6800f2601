"""Auth service - password hashing, bearer tokens and the current-user dependency."""
import hashlib
import hmac
import logging
import os
import random
from datetime import timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import settings
from ..models import User
from ..stores import UserStore, user_store
from ..utils.db_utils import utcnow

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 260000
JWT_ALGORITHM = "HS256"


class AuthenticationError(Exception):
    """Token missing, malformed, expired, or pointing at no user."""


def hash_password(password: str, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Salted PBKDF2-SHA256, encoded as algorithm$iterations$salt$digest."""
    salt = os.urandom(16).hex()
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations).hex()
    return f"pbkdf2_sha256${iterations}${salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, expected = password_hash.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations)).hex()
    return hmac.compare_digest(digest, expected)


def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    expires_minutes = expires_minutes or settings.jwt_expires_minutes
    now = utcnow()
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """Return the user id carried by a token, or raise AuthenticationError."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
        return int(payload["sub"])
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise AuthenticationError("Token invalid") from e


async def generate_username(store: UserStore) -> str:
    """Pick an unused user_NNNN name for accounts registered without one."""
    while True:
        candidate = f"user_{random.randint(1000, 9999)}"
        if not await store.username_exists(candidate):
            return candidate


def get_user_store() -> UserStore:
    """Dependency returning the user store."""
    return user_store


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: UserStore = Depends(get_user_store),
) -> User:
    """Resolve the bearer token to a user, or answer 401."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authorized, token missing")

    try:
        user_id = decode_access_token(credentials.credentials)
    except AuthenticationError as e:
        logger.debug(f"Rejected bearer token: {e}")
        raise HTTPException(status_code=401, detail="Not authorized, token invalid")

    user = await store.get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user
