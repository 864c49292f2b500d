"""FastAPI dependencies.

Long-lived collaborators (storage client, import dispatcher) are built once
in the application lifespan and kept on ``app.state``; these functions only
hand them to route handlers.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from services.user_service.app.config import Settings, get_settings
from services.user_service.app.imports.dispatcher import BulkImportDispatcher
from shared.utils.db import get_db_session
from shared.utils.storage import StorageClient


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with get_db_session() as session:
        yield session


def get_storage_client(request: Request) -> StorageClient:
    """Storage client created at startup."""
    return request.app.state.storage_client


def get_import_dispatcher(request: Request) -> BulkImportDispatcher:
    """Bulk import dispatcher created at startup."""
    return request.app.state.import_dispatcher


def get_request_locale(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """Locale resolved for this request by the request context middleware."""
    return getattr(request.state, "locale", settings.default_locale)


DBSession = Annotated[AsyncSession, Depends(get_db)]
Storage = Annotated[StorageClient, Depends(get_storage_client)]
ImportDispatcher = Annotated[BulkImportDispatcher, Depends(get_import_dispatcher)]
Locale = Annotated[str, Depends(get_request_locale)]
AppSettings = Annotated[Settings, Depends(get_settings)]
