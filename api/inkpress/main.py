"""Inkpress API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from inkpress.admin.router import router as admin_router
from inkpress.admin.router import superadmin_router
from inkpress.admin.service import DashboardService
from inkpress.ai.service import TextGenerationService
from inkpress.auth.router import router as auth_router
from inkpress.auth.security import TokenService
from inkpress.auth.service import AuthService
from inkpress.comments.router import router as comments_router
from inkpress.comments.service import CommentService
from inkpress.config import Settings, get_settings
from inkpress.core.context import get_request_id
from inkpress.core.database import DocumentStore, InMemoryStore, ResilientStore
from inkpress.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InkpressError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from inkpress.core.logging import configure_structlog, get_logger
from inkpress.core.middleware import RequestContextMiddleware
from inkpress.counters.reconcile import ReconciliationService, ReconciliationWorker
from inkpress.counters.service import CounterEngine
from inkpress.health import router as health_router
from inkpress.posts.router import router as posts_router
from inkpress.posts.service import PostService
from inkpress.posts.slugs import SlugAllocator
from inkpress.storage.router import router as uploads_router
from inkpress.storage.service import LocalFileStorage
from inkpress.tags.router import router as tags_router
from inkpress.tags.service import TagService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings)

logger = get_logger(__name__)


# Error class -> HTTP status; first match wins, so subclasses come first.
STATUS_MAP: list[tuple[type[InkpressError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ServiceUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: InkpressError) -> int:
    for error_class, status_code in STATUS_MAP:
        if isinstance(exc, error_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def build_store(settings: Settings) -> DocumentStore:
    """Create the configured backend wrapped with timeouts and retries."""
    if settings.store_backend == "cassandra":
        # Lazy import so the in-memory backend runs without the driver loaded
        from inkpress.core.database.cassandra import (  # noqa: PLC0415
            AsyncCassandraConnection,
            CassandraStore,
            init_keyspace,
        )

        session = AsyncCassandraConnection.connect(settings)
        await init_keyspace(session, settings)
        backend: DocumentStore = CassandraStore(
            session, settings.cassandra_keyspace, cas_attempts=settings.store_cas_attempts
        )
    else:
        backend = InMemoryStore()

    logger.info("document_store_initialized", backend=settings.store_backend)
    return ResilientStore(
        backend,
        timeout_seconds=settings.store_timeout_seconds,
        max_retries=settings.store_max_retries,
        backoff_seconds=settings.store_retry_backoff_seconds,
    )


def init_services(app: FastAPI, store: DocumentStore, settings: Settings) -> None:
    """Wire every service onto ``app.state`` for request dependencies."""
    token_service = TokenService(
        settings.auth_secret_key,
        algorithm=settings.auth_algorithm,
        default_ttl=timedelta(minutes=settings.auth_access_token_expire_minutes),
    )
    slugs = SlugAllocator(store)
    counters = CounterEngine(store)
    tags = TagService(store, slugs)

    app.state.store = store
    app.state.token_service = token_service
    app.state.auth_service = AuthService(
        store, token_service, privileged_signup_key=settings.privileged_signup_key
    )
    app.state.counter_engine = counters
    app.state.tag_service = tags
    app.state.post_service = PostService(store, tags, counters, slugs)
    app.state.comment_service = CommentService(
        store, counters, auto_approve=settings.comments_auto_approve
    )
    app.state.reconciliation_service = ReconciliationService(store, tags, counters)
    app.state.dashboard_service = DashboardService(store)
    app.state.file_storage = LocalFileStorage.from_settings(settings)
    app.state.text_generation = TextGenerationService(
        settings.ai_api_url,
        api_key=settings.ai_api_key,
        model=settings.ai_model,
        timeout_seconds=settings.ai_timeout_seconds,
    )
    logger.info(
        "services_initialized",
        ai_enabled=settings.ai_configured,
        comments_auto_approve=settings.comments_auto_approve,
    )


def create_app(
    app_settings: Settings | None = None,
    store: DocumentStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use instead of the cached environment ones.
        store: Pre-built document store (tests); built from settings otherwise.
    """
    settings = app_settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        logger.info(
            "starting_application",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment,
        )

        app_store = store or await build_store(settings)
        init_services(app, app_store, settings)

        worker: ReconciliationWorker | None = None
        if settings.reconcile_interval_seconds > 0:
            worker = ReconciliationWorker(
                app.state.reconciliation_service,
                interval_seconds=settings.reconcile_interval_seconds,
            )
            await worker.start()

        yield

        # Shutdown
        logger.info("shutting_down_application")
        if worker is not None:
            await worker.stop()
        await app_store.close()

    # Never let Starlette render stack traces; handlers below log details.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Inkpress publishing API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
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
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(InkpressError)
    async def domain_exception_handler(
        request: Request, exc: InkpressError
    ) -> ORJSONResponse:
        """Map domain errors to status codes with their message and code."""
        status_code = status_for(exc)
        log = logger.error if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logger.info
        log(
            "domain_error",
            error_type=type(exc).__name__,
            code=exc.code,
            status_code=status_code,
            path=request.url.path,
            method=request.method,
        )

        content: dict = {
            "error": True,
            "message": exc.message,
            "code": exc.code,
            "status_code": status_code,
            "request_id": _get_request_id_safe(request),
        }
        if isinstance(exc, ValidationError):
            content["details"] = exc.details()

        headers = None
        if status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        elif status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
            headers = {"Retry-After": "1"}
        return ORJSONResponse(status_code=status_code, content=content, headers=headers)

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
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Request body / query validation failures are 400 with field pairs."""
        logger.info(
            "validation_error",
            errors=len(exc.errors()),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": True,
                "message": "Validation failed",
                "code": "validation_error",
                "status_code": status.HTTP_400_BAD_REQUEST,
                "request_id": _get_request_id_safe(request),
                "details": [
                    {
                        "field": ".".join(
                            str(loc) for loc in err.get("loc", []) if loc != "body"
                        )
                        or "body",
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
        """Catch-all handler for unhandled exceptions.

        Full details are logged; the caller only gets a generic message.
        """
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
    app.include_router(auth_router)
    app.include_router(posts_router)
    app.include_router(tags_router)
    app.include_router(comments_router)
    app.include_router(uploads_router)
    app.include_router(admin_router)
    app.include_router(superadmin_router)

    app.mount(
        "/uploads",
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Inkpress API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
