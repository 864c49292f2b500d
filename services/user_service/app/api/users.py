"""User management API routes."""

from typing import Annotated

from fastapi import File, Form, HTTPException, Query, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from services.user_service.app.api.routing import RouteSpec, build_router
from services.user_service.app.auth.guards import CurrentUser, get_current_user, require_roles
from services.user_service.app.auth.models import Role
from services.user_service.app.dependencies import (
    AppSettings,
    DBSession,
    ImportDispatcher,
    Locale,
    Storage,
)
from services.user_service.app.imports.artifact import EnqueueReceipt, ImportOutcome, UploadArtifact
from services.user_service.app.imports.errors import DispatchError, InvalidMediaType
from services.user_service.app.users.schemas import (
    UserCreate,
    UserDetailResponse,
    UserResponse,
    UserSearch,
    UserUpdate,
)
from services.user_service.app.users.service import (
    AvatarUpload,
    InvalidAvatarError,
    UserAlreadyExistsError,
    UserNotFoundError,
    UsersService,
)
from shared.schemas.api_responses import PaginatedResponse
from shared.utils.logging import get_logger

logger = get_logger(__name__)


async def register(data: UserCreate, db: DBSession, locale: Locale) -> UserResponse:
    """Register a new user account."""
    service = UsersService(db)
    try:
        user = await service.create(locale, data)
    except UserAlreadyExistsError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )
    await db.commit()
    return UserResponse.model_validate(user)


async def list_users(
    db: DBSession,
    search: Annotated[UserSearch, Query()],
) -> PaginatedResponse[UserResponse]:
    """List users, optionally filtered by keyword and role."""
    users, total = await UsersService(db).find_all(search)
    return PaginatedResponse[UserResponse].build(
        [UserResponse.model_validate(user) for user in users],
        total=total,
        page=search.page,
        page_size=search.page_size,
    )


async def update_user(
    user_id: int,
    db: DBSession,
    storage: Storage,
    settings: AppSettings,
    full_name: Annotated[str | None, Form()] = None,
    password: Annotated[str | None, Form()] = None,
    role: Annotated[Role | None, Form()] = None,
    avatar: Annotated[UploadFile | None, File(description="Avatar image (jpg, jpeg, png, gif)")] = None,
) -> UserResponse:
    """Update a user's profile fields and optionally replace the avatar."""
    try:
        data = UserUpdate(full_name=full_name, password=password, role=role)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=jsonable_encoder(e.errors(include_url=False, include_context=False)),
        )

    upload = None
    if avatar is not None:
        upload = AvatarUpload(
            filename=avatar.filename or "avatar",
            content_type=avatar.content_type,
            content=await avatar.read(),
        )

    service = UsersService(
        db,
        storage_client=storage,
        avatar_type_pattern=settings.avatar_content_type_pattern,
    )
    try:
        user = await service.update(user_id, data, upload)
    except InvalidAvatarError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    await db.commit()
    return UserResponse.model_validate(user)


async def get_user_details(
    user_id: int,
    db: DBSession,
    storage: Storage,
    settings: AppSettings,
) -> UserDetailResponse:
    """Full user record including an avatar download URL (admins only)."""
    service = UsersService(db, storage_client=storage)
    user = await service.find_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    avatar_url = await service.avatar_url(user, expires_in=settings.avatar_url_expiry_seconds)
    return UserDetailResponse.model_validate(user).model_copy(update={"avatar_url": avatar_url})


async def get_profile(current_user: CurrentUser) -> UserResponse:
    """The authenticated user's own record."""
    return UserResponse.model_validate(current_user)


async def import_users_csv(
    user_csv: Annotated[UploadFile, File(alias="userCsv", description="CSV of users to create")],
    dispatcher: ImportDispatcher,
) -> JSONResponse:
    """Create users from a CSV file.

    Files above the size threshold are imported before responding (200 with
    the import summary); smaller files are queued (202 with a receipt).
    """
    content = await user_csv.read()
    artifact = UploadArtifact(
        filename=user_csv.filename or "users.csv",
        content_type=user_csv.content_type,
        size_bytes=user_csv.size if user_csv.size is not None else len(content),
        content=content,
    )

    try:
        result = await dispatcher.dispatch(artifact)
    except InvalidMediaType as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Validation failed (expected type is {e.accepted})",
        )
    except DispatchError:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Bad Gateway")
    finally:
        await user_csv.close()

    status_code = status.HTTP_200_OK if isinstance(result, ImportOutcome) else status.HTTP_202_ACCEPTED
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


ROUTES: tuple[RouteSpec, ...] = (
    RouteSpec(
        "POST",
        "/register",
        register,
        status_code=status.HTTP_201_CREATED,
        response_model=UserResponse,
    ),
    RouteSpec(
        "GET",
        "",
        list_users,
        response_model=PaginatedResponse[UserResponse],
    ),
    RouteSpec(
        "PATCH",
        "/{user_id}",
        update_user,
        response_model=UserResponse,
    ),
    RouteSpec(
        "GET",
        "/details/{user_id}",
        get_user_details,
        guards=(require_roles(Role.ADMIN),),
        response_model=UserDetailResponse,
    ),
    RouteSpec(
        "GET",
        "/profile",
        get_profile,
        response_model=UserResponse,
    ),
    RouteSpec(
        "POST",
        "",
        import_users_csv,
        responses={
            200: {"model": ImportOutcome, "description": "Imported inline"},
            202: {"model": EnqueueReceipt, "description": "Queued for import"},
            400: {"description": "Not a CSV upload"},
            502: {"description": "Import could not be completed"},
        },
    ),
)

ROUTER_GUARDS = (get_current_user,)

router = build_router(ROUTES, prefix="/users", tags=["Users"], guards=ROUTER_GUARDS)
