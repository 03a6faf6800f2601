"""Pydantic schemas for API request/response models."""
from .monitor import (
    MonitorCreate,
    MonitorUpdate,
    MonitorResponse,
    MonitorWithStats,
)
from .status import (
    CheckLogResponse,
    CheckLogList,
)
from .user import (
    UserRegister,
    UserLogin,
    PasswordChange,
    UsernameChange,
    UserResponse,
    TokenResponse,
    RegisterResponse,
)

__all__ = [
    "MonitorCreate",
    "MonitorUpdate",
    "MonitorResponse",
    "MonitorWithStats",
    "CheckLogResponse",
    "CheckLogList",
    "UserRegister",
    "UserLogin",
    "PasswordChange",
    "UsernameChange",
    "UserResponse",
    "TokenResponse",
    "RegisterResponse",
]
