"""Authentication API routes."""

from fastapi import APIRouter, HTTPException, status

from services.user_service.app.auth.jwt import AccessToken, create_access_token
from services.user_service.app.dependencies import AppSettings, DBSession
from services.user_service.app.users.schemas import LoginRequest
from services.user_service.app.users.service import UsersService
from shared.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=AccessToken)
async def login(
    request: LoginRequest,
    db: DBSession,
    settings: AppSettings,
) -> AccessToken:
    """Login with email and password."""
    user = await UsersService(db).authenticate(request.email, request.password)

    if not user:
        logger.info("login_failed", email=request.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = create_access_token(user.id, email=user.email, role=user.role)
    logger.info("login_succeeded", user_id=user.id)
    return AccessToken(
        access_token=token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )
