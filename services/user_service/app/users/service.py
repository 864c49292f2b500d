"""User management operations."""

import re
import uuid
from dataclasses import dataclass, field
from typing import Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.user_service.app.auth.models import UserModel
from services.user_service.app.auth.password import hash_password_async, verify_password
from services.user_service.app.users.schemas import UserCreate, UserSearch, UserUpdate
from shared.utils.logging import get_logger
from shared.utils.storage import StorageClient

logger = get_logger(__name__)

# asyncpg accepts at most 32767 bind parameters per statement
EMAIL_LOOKUP_CHUNK_SIZE = 5000

AVATAR_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
}


class UserServiceError(Exception):
    """Base class for user operation failures."""


class UserAlreadyExistsError(UserServiceError):
    """Raised when an email is already registered."""


class UserNotFoundError(UserServiceError):
    """Raised when a user id does not exist."""


class InvalidAvatarError(UserServiceError):
    """Raised when an avatar upload has a disallowed type."""


@dataclass(frozen=True)
class AvatarUpload:
    """Image attached to a profile update."""

    filename: str
    content_type: str | None
    content: bytes = field(repr=False)


class UsersService:
    """Service for user records and avatars."""

    def __init__(
        self,
        session: AsyncSession,
        storage_client: StorageClient | None = None,
        avatar_type_pattern: str = r"(jpg|jpeg|png|gif)$",
    ):
        """Initialize users service.

        Args:
            session: Database session
            storage_client: Storage for avatars (required for avatar operations)
            avatar_type_pattern: Regex the avatar content type must match
        """
        self.session = session
        self.storage_client = storage_client
        self.avatar_type_pattern = re.compile(avatar_type_pattern)

    async def get_by_email(self, email: str) -> UserModel | None:
        query = select(UserModel).where(UserModel.email == email.lower())
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: int) -> UserModel | None:
        query = select(UserModel).where(UserModel.id == user_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def existing_emails(self, emails: Sequence[str]) -> set[str]:
        """Return which of the given (lowercase) emails are already registered.

        Looks emails up in chunks of EMAIL_LOOKUP_CHUNK_SIZE so a large import
        stays under the driver's bind parameter limit.
        """
        found: set[str] = set()
        unique = list(dict.fromkeys(emails))
        for start in range(0, len(unique), EMAIL_LOOKUP_CHUNK_SIZE):
            chunk = unique[start : start + EMAIL_LOOKUP_CHUNK_SIZE]
            query = select(UserModel.email).where(UserModel.email.in_(chunk))
            result = await self.session.execute(query)
            found.update(result.scalars().all())
        return found

    def build_user(
        self,
        data: UserCreate,
        hashed_password: str,
        locale: str | None = None,
    ) -> UserModel:
        return UserModel(
            email=data.email.lower(),
            hashed_password=hashed_password,
            full_name=data.full_name,
            role=data.role.value,
            locale=locale,
        )

    async def create(self, locale: str, data: UserCreate) -> UserModel:
        """Register a new user with the caller's locale.

        Raises:
            UserAlreadyExistsError: If the email is taken
        """
        if await self.get_by_email(data.email):
            raise UserAlreadyExistsError(data.email)

        hashed = await hash_password_async(data.password)
        user = self.build_user(data, hashed, locale=locale)
        self.session.add(user)
        await self.session.flush()

        logger.info("user_created", user_id=user.id, role=user.role, locale=locale)
        return user

    async def find_all(self, search: UserSearch) -> tuple[list[UserModel], int]:
        """List users matching the search, newest first.

        Returns:
            Tuple of (page of users, total matching count)
        """
        conditions = []
        if search.keyword:
            pattern = f"%{search.keyword.strip().lower()}%"
            conditions.append(
                or_(
                    func.lower(UserModel.email).like(pattern),
                    func.lower(UserModel.full_name).like(pattern),
                )
            )
        if search.role:
            conditions.append(UserModel.role == search.role.value)

        count_query = select(func.count()).select_from(UserModel).where(*conditions)
        total = (await self.session.execute(count_query)).scalar_one()

        query = (
            select(UserModel)
            .where(*conditions)
            .order_by(UserModel.created_at.desc(), UserModel.id.desc())
            .limit(search.page_size)
            .offset((search.page - 1) * search.page_size)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    def validate_avatar(self, avatar: AvatarUpload) -> None:
        if not avatar.content_type or not self.avatar_type_pattern.search(avatar.content_type):
            raise InvalidAvatarError(
                f"Avatar type {avatar.content_type!r} is not an accepted image type"
            )

    async def update(
        self,
        user_id: int,
        data: UserUpdate,
        avatar: AvatarUpload | None = None,
    ) -> UserModel:
        """Apply a partial update and optionally replace the avatar.

        Raises:
            InvalidAvatarError: If the avatar type is not an accepted image type
            UserNotFoundError: If the user does not exist
        """
        if avatar is not None:
            self.validate_avatar(avatar)

        user = await self.find_by_id(user_id)
        if not user:
            raise UserNotFoundError(str(user_id))

        if data.full_name is not None:
            user.full_name = data.full_name
        if data.password is not None:
            user.hashed_password = await hash_password_async(data.password)
        if data.role is not None:
            user.role = data.role.value

        if avatar is not None:
            if self.storage_client is None:
                raise RuntimeError("Avatar storage is not configured")
            previous_key = user.avatar_key
            extension = AVATAR_EXTENSIONS.get(avatar.content_type or "", "img")
            key = f"avatars/{user.id}/{uuid.uuid4().hex}.{extension}"
            await self.storage_client.put_object(
                key=key,
                data=avatar.content,
                content_type=avatar.content_type or "application/octet-stream",
                metadata={"user_id": str(user.id)},
            )
            user.avatar_key = key
            if previous_key:
                await self.storage_client.delete_object(previous_key)

        await self.session.flush()

        logger.info(
            "user_updated",
            user_id=user.id,
            fields=sorted(data.model_dump(exclude_none=True)),
            avatar_replaced=avatar is not None,
        )
        return user

    async def avatar_url(self, user: UserModel, expires_in: int = 3600) -> str | None:
        """Download URL for the user's avatar, if one is stored."""
        if not user.avatar_key or self.storage_client is None:
            return None
        return await self.storage_client.generate_download_url(user.avatar_key, expires_in=expires_in)

    async def authenticate(self, email: str, password: str) -> UserModel | None:
        """Return the active user matching the credentials, or None."""
        user = await self.get_by_email(email)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user
