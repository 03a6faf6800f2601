"""User and auth schemas for API."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


class UserRegister(BaseModel):
    """Schema for registering an account."""
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)
    password: str = Field(..., min_length=6, max_length=128)
    name: Optional[str] = Field(None, max_length=255)
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=USERNAME_PATTERN)


class UserLogin(BaseModel):
    email: str
    password: str


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6, max_length=128)


class UsernameChange(BaseModel):
    new_username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)


class UserResponse(BaseModel):
    """Public view of an account. Never includes the password hash."""
    id: int
    email: str
    username: str
    name: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    token: str


class RegisterResponse(BaseModel):
    user: UserResponse
    token: str
