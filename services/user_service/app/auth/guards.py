"""Authentication and role guards, expressed as FastAPI dependencies."""

from typing import Annotated, Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select

from services.user_service.app.auth.jwt import verify_token
from services.user_service.app.auth.models import Role, UserModel
from services.user_service.app.dependencies import DBSession
from shared.utils.logging import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    db: DBSession,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> UserModel:
    """Resolve the authenticated user from a Bearer token.

    Raises:
        HTTPException: 401 if not authenticated, 403 if the account is disabled
    """
    if hasattr(request.state, "user"):
        return request.state.user

    user = None
    if credentials:
        token_data = verify_token(credentials.credentials)
        if token_data and token_data.sub.isdigit():
            result = await db.execute(
                select(UserModel).where(UserModel.id == int(token_data.sub))
            )
            user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    request.state.user = user
    logger.debug("user_authenticated", user_id=user.id)
    return user


def require_roles(*roles: Role) -> Callable:
    """Dependency factory allowing only users holding one of ``roles``."""
    allowed = {role.value for role in roles}

    async def check_roles(
        user: Annotated[UserModel, Depends(get_current_user)],
    ) -> UserModel:
        if user.role not in allowed:
            logger.warning("role_check_failed", user_id=user.id, role=user.role)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return user

    return check_roles


CurrentUser = Annotated[UserModel, Depends(get_current_user)]
