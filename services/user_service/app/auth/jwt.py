"""JWT access token handling."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from pydantic import BaseModel

from services.user_service.app.config import get_settings


class TokenData(BaseModel):
    """Access token payload."""

    sub: str  # user id
    email: str | None = None
    role: str | None = None
    exp: datetime | None = None
    iat: datetime | None = None


class AccessToken(BaseModel):
    """Issued access token."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


def create_access_token(
    user_id: int,
    email: str | None = None,
    role: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT access token.

    Args:
        user_id: User primary key
        email: User email
        role: User role name
        expires_delta: Custom expiration time

    Returns:
        Encoded JWT token
    """
    settings = get_settings()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "token_type": "access",
        "exp": now + expires_delta,
        "iat": now,
    }

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> TokenData | None:
    """Verify and decode an access token.

    Returns:
        TokenData if valid, None if invalid or expired
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    if payload.get("token_type") != "access" or "sub" not in payload:
        return None

    return TokenData(
        sub=payload["sub"],
        email=payload.get("email"),
        role=payload.get("role"),
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc) if "exp" in payload else None,
        iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc) if "iat" in payload else None,
    )
