"""API routes for the User Service."""

from services.user_service.app.api.auth import router as auth_router
from services.user_service.app.api.health import router as health_router
from services.user_service.app.api.users import router as users_router

__all__ = [
    "auth_router",
    "health_router",
    "users_router",
]
