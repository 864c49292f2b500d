"""User Service - FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from services.user_service.app.api import auth_router, health_router, users_router
from services.user_service.app.auth.models import Base
from services.user_service.app.config import Settings, get_settings
from services.user_service.app.imports.dispatcher import BulkImportDispatcher
from services.user_service.app.imports.importer import UserCsvImporter
from services.user_service.app.imports.queue import SQSImportQueue
from services.user_service.app.middleware.request_context import RequestContextMiddleware
from shared.schemas.api_responses import ErrorResponse
from shared.utils.db import close_db, create_tables, init_db
from shared.utils.logging import configure_logging, get_correlation_id, get_logger
from shared.utils.metrics import MetricsMiddleware, metrics_endpoint
from shared.utils.sqs import SQSClient
from shared.utils.storage import get_storage_client

settings = get_settings()

configure_logging(
    service_name=settings.service_name,
    log_level=settings.log_level,
    json_format=settings.log_json,
)

logger = get_logger(__name__)


def build_import_dispatcher(
    settings: Settings,
    session_factory,
    storage_client,
) -> BulkImportDispatcher:
    """Wire the bulk import dispatcher and its collaborators."""
    sqs_client = SQSClient(
        queue_urls=settings.sqs_queue_urls,
        region=settings.sqs_region,
        endpoint_url=settings.sqs_endpoint_url,
    )
    return BulkImportDispatcher(
        bulk_create=UserCsvImporter(session_factory),
        queue=SQSImportQueue(sqs_client, storage_client),
        threshold_bytes=settings.csv_sync_threshold_bytes,
        accepted_media_type=settings.csv_media_type,
        queue_name=settings.import_queue_name,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("starting_service", service=settings.service_name)

    session_factory = init_db(
        database_url=settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )
    if settings.db_create_tables:
        await create_tables(Base.metadata)
    logger.info("database_initialized")

    storage_client = get_storage_client(
        storage_type=settings.storage_type,
        bucket=settings.storage_bucket,
        region=settings.s3_region,
        endpoint_url=settings.s3_endpoint_url,
        local_path=settings.local_storage_path,
        serve_url=settings.storage_serve_url,
    )
    app.state.storage_client = storage_client
    app.state.import_dispatcher = build_import_dispatcher(settings, session_factory, storage_client)
    logger.info(
        "import_dispatcher_initialized",
        queue=settings.import_queue_name,
        threshold_bytes=settings.csv_sync_threshold_bytes,
    )

    yield

    logger.info("shutting_down_service")
    await close_db()
    logger.info("service_shutdown_complete")


app = FastAPI(
    title="User Service",
    description="User accounts, profiles and bulk CSV import",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    RequestContextMiddleware,
    supported_locales=settings.supported_locales,
    default_locale=settings.default_locale,
)

app.add_middleware(MetricsMiddleware)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.exception("unhandled_exception", error=str(exc))
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="An internal error occurred",
            error_code="INTERNAL_ERROR",
            correlation_id=get_correlation_id() or None,
        ).model_dump(exclude_none=True),
    )


app.include_router(health_router)
app.include_router(auth_router)
app.include_router(users_router)

app.add_route("/metrics", metrics_endpoint)


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": settings.service_name,
        "version": "0.1.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.user_service.app.main:app",
        host="0.0.0.0",
        port=8080,
        reload=settings.debug,
    )
