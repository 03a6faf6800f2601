"""User registration, login and profile endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..models import User
from ..schemas.user import (
    UserRegister,
    UserLogin,
    PasswordChange,
    UsernameChange,
    UserResponse,
    TokenResponse,
    RegisterResponse,
)
from ..services.auth import (
    create_access_token,
    generate_username,
    get_current_user,
    get_user_store,
    hash_password,
    verify_password,
)
from ..stores import DuplicateUserError, UserStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register_user(data: UserRegister, store: UserStore = Depends(get_user_store)):
    """Create an account and return it with a bearer token."""
    email = data.email.strip().lower()
    username = data.username or await generate_username(store)

    try:
        user = await store.create(
            email=email,
            username=username,
            password_hash=hash_password(data.password),
            name=data.name,
        )
    except DuplicateUserError as e:
        if e.field == "username":
            raise HTTPException(status_code=400, detail="Username already taken")
        raise HTTPException(status_code=400, detail="User already exists")

    return RegisterResponse(
        user=UserResponse.model_validate(user),
        token=create_access_token(user.id),
    )


@router.post("/login", response_model=TokenResponse)
async def login_user(data: UserLogin, store: UserStore = Depends(get_user_store)):
    """Exchange email and password for a bearer token."""
    user = await store.get_by_email(data.email.strip().lower())
    if not user or not verify_password(data.password, user.password_hash):
        logger.info("Failed login attempt")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return TokenResponse(token=create_access_token(user.id))


@router.get("/profile", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)):
    return UserResponse.model_validate(user)


@router.put("/change-password")
async def change_password(
    data: PasswordChange,
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_user_store),
):
    if not verify_password(data.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    await store.update_password(user.id, hash_password(data.new_password))
    return {"message": "Password changed successfully"}


@router.put("/change-username", response_model=UserResponse)
async def change_username(
    data: UsernameChange,
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_user_store),
):
    try:
        updated = await store.update_username(user.id, data.new_username)
    except DuplicateUserError:
        raise HTTPException(status_code=400, detail="Username already taken")

    if not updated:
        raise HTTPException(status_code=404, detail="User not found")
    return UserResponse.model_validate(updated)
