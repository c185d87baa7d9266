"""coursetrack API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursetrack.catalog.events import CatalogEventBus
from coursetrack.catalog.repository import (
    CassandraCatalogRepository,
    CatalogRepository,
    InMemoryCatalogRepository,
)
from coursetrack.catalog.router import router_courses, router_lessons, router_modules
from coursetrack.catalog.service import CatalogService
from coursetrack.config import Settings, get_settings
from coursetrack.core.context import get_request_id
from coursetrack.core.database import init_async_cassandra, shutdown_async_cassandra
from coursetrack.core.logging import configure_structlog, get_logger
from coursetrack.core.middleware import RequestContextMiddleware
from coursetrack.health import router as health_router
from coursetrack.progress.aggregator import ProgressAggregator
from coursetrack.progress.maintainer import ConsistencyMaintainer
from coursetrack.progress.repository import (
    CassandraCompletionLedger,
    CassandraEnrollmentLedger,
    CompletionLedger,
    EnrollmentLedger,
    InMemoryCompletionLedger,
    InMemoryEnrollmentLedger,
)
from coursetrack.progress.router import courses_router as progress_courses_router
from coursetrack.progress.router import enrollments_router
from coursetrack.progress.router import router as progress_router
from coursetrack.progress.service import ProgressService


logger = get_logger(__name__)


def wire_services(
    app: FastAPI,
    settings: Settings,
    catalog: CatalogRepository,
    enrollments: EnrollmentLedger,
    completions: CompletionLedger,
) -> None:
    """Build services over the given storage and publish them on app.state.

    The consistency maintainer is subscribed to catalog changes here, so
    every structural edit re-evaluates enrollments before it returns.
    """
    events = CatalogEventBus()
    catalog_service = CatalogService(repository=catalog, events=events)

    aggregator = ProgressAggregator(
        catalog=catalog,
        enrollments=enrollments,
        completions=completions,
        completion_policy=settings.progress_completion_policy,
        strict_invariants=settings.strict_invariants,
    )
    maintainer = ConsistencyMaintainer(
        aggregator=aggregator,
        enrollments=enrollments,
        completions=completions,
    )
    events.subscribe(maintainer.handle)

    app.state.catalog_service = catalog_service
    app.state.progress_service = ProgressService(
        catalog=catalog_service,
        aggregator=aggregator,
        enrollments=enrollments,
        completions=completions,
    )
    logger.info(
        "services_initialized",
        completion_policy=settings.progress_completion_policy,
        strict_invariants=settings.strict_invariants,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        storage_backend=settings.storage_backend,
    )

    if settings.storage_backend == "memory":
        wire_services(
            app,
            settings,
            catalog=InMemoryCatalogRepository(),
            enrollments=InMemoryEnrollmentLedger(),
            completions=InMemoryCompletionLedger(),
        )
    else:
        try:
            session = await init_async_cassandra(settings)
            keyspace = settings.cassandra_keyspace
            retries = settings.storage_conflict_retries
            wire_services(
                app,
                settings,
                catalog=CassandraCatalogRepository(session, keyspace),
                enrollments=CassandraEnrollmentLedger(session, keyspace, retries),
                completions=CassandraCompletionLedger(session, keyspace, retries),
            )
        except Exception as e:
            logger.warning(
                "database_init_skipped",
                error=str(e),
                message="Running without database connection",
            )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    if settings.storage_backend == "cassandra":
        await shutdown_async_cassandra()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_structlog(settings, file_output=not settings.is_testing)

    # Always debug=False so Starlette never renders stack traces; the
    # handlers below log details and return safe messages
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Course catalog and learner progress API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )
    app.state.settings = settings

    # Request context middleware (outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": _get_request_id_safe(request),
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors (malformed ids and bodies never reach storage)."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": _get_request_id_safe(request),
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler: log everything, expose nothing."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": _get_request_id_safe(request),
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(progress_courses_router)
    app.include_router(router_courses)
    app.include_router(router_modules)
    app.include_router(router_lessons)
    app.include_router(progress_router)
    app.include_router(enrollments_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "coursetrack API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
