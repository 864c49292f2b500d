"""Authentication and authorization module.

Route guards live in ``guards`` and are imported from there directly.
"""

from services.user_service.app.auth.models import Base, Role, UserModel
from services.user_service.app.auth.jwt import (
    AccessToken,
    TokenData,
    create_access_token,
    verify_token,
)
from services.user_service.app.auth.password import hash_password, verify_password

__all__ = [
    "AccessToken",
    "Base",
    "Role",
    "TokenData",
    "UserModel",
    "create_access_token",
    "hash_password",
    "verify_password",
    "verify_token",
]
