"""API routers."""
from .websites import router as websites_router
from .users import router as users_router

__all__ = ["websites_router", "users_router"]
