"""FastAPI application factory.

``create_app`` wires the whole service from injected collaborators:

- Application lifecycle (startup callbacks, teardown callbacks)
- Exception handlers before middleware
- Middleware, outermost first: transaction id, request metrics, payload limit
- ``GET /healthz`` and ``GET /metrics`` ahead of the business routes
- The typed controllers mounted under ``API_PREFIX``
- OpenTelemetry instrumentation

Without an explicit ``user_store`` the bundled SQLAlchemy store is used; its
startup callback verifies the connection and its teardown disposes the
engine.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse, Response
from loguru import logger
from opentelemetry.sdk.trace import TracerProvider
from prometheus_client import CollectorRegistry

from waypoint.api.constants import HEALTH_BODY, HEALTH_PATH
from waypoint.api.controllers import ProfileController, UserController
from waypoint.api.middleware.error_handler import (
    ErrorHandler,
    register_exception_handlers,
)
from waypoint.api.middleware.metrics import HttpMetrics, RequestMetricsMiddleware
from waypoint.api.middleware.payload_limit import PayloadLimitMiddleware
from waypoint.api.middleware.transaction import TransactionIdMiddleware
from waypoint.api.routing import TypedRouter
from waypoint.api.utils.responses import ORJSONResponse
from waypoint.core.audit import AuditLogFactory, LogSink
from waypoint.core.config import Settings, get_settings
from waypoint.core.logging import setup_logging
from waypoint.core.observability import instrument_app, setup_tracing
from waypoint.domain.users import UserService, UserStore
from waypoint.infrastructure.database import Database, SqlUserStore

type LifecycleHook = Callable[[], Awaitable[None]]


def build_lifespan(
    startup: Sequence[LifecycleHook], teardown: Sequence[LifecycleHook]
) -> Callable[[FastAPI], Any]:
    """Build the lifespan running ``startup`` then, on shutdown, ``teardown``."""

    @asynccontextmanager
    async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
        for hook in startup:
            await hook()

        logger.info(
            "Application startup complete - {} v{}",
            app_instance.title,
            app_instance.version,
        )

        yield

        logger.info("Application shutdown initiated")
        for hook in teardown:
            await hook()
        logger.info("Application shutdown complete")

    return lifespan


def database_hooks(database: Database) -> tuple[LifecycleHook, LifecycleHook]:
    """Startup and teardown callbacks of the bundled database.

    Raises:
        RuntimeError: From the startup callback, if the database is unreachable.
    """

    async def connect() -> None:
        is_healthy, error_msg = await database.check_connection()
        if not is_healthy:
            logger.error("Database connection failed during startup: {}", error_msg)
            msg = f"Database connection failed: {error_msg}"
            raise RuntimeError(msg)

        logger.info("Database connection successful")
        await database.create_schema()

    return connect, database.close


def create_app(
    settings: Settings | None = None,
    *,
    user_store: UserStore | None = None,
    log_sink: LogSink | None = None,
    metrics_registry: CollectorRegistry | None = None,
    startup: Sequence[LifecycleHook] = (),
    teardown: Sequence[LifecycleHook] = (),
    tracer_provider: TracerProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings instance. Defaults to ``get_settings()``.
        user_store: Persistence backend of the user resource. Defaults to
            the SQLAlchemy store.
        log_sink: Destination of audit records. Defaults to Loguru.
        metrics_registry: Prometheus registry. A fresh one is created if omitted.
        startup: Extra callbacks awaited before the first request.
        teardown: Extra callbacks awaited after the last request.
        tracer_provider: Provider of the server spans. When given, the global
            provider is left alone.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings)
    if tracer_provider is None:
        setup_tracing(settings)

    startup_hooks = list(startup)
    teardown_hooks = list(teardown)
    uses_database = user_store is None
    if user_store is None:
        database = Database(settings.database_config)
        user_store = SqlUserStore(database)
        connect, close = database_hooks(database)
        startup_hooks.insert(0, connect)
        teardown_hooks.append(close)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        default_response_class=ORJSONResponse,
        lifespan=build_lifespan(startup_hooks, teardown_hooks),
    )

    error_handler = ErrorHandler(settings)
    audit = AuditLogFactory.from_settings(settings, sink=log_sink)
    metrics = HttpMetrics(metrics_registry)
    application.state.audit = audit
    application.state.metrics = metrics

    # Register exception handlers BEFORE middleware
    register_exception_handlers(application, error_handler)

    # Middleware run in reverse order of registration
    application.add_middleware(
        PayloadLimitMiddleware,
        max_bytes=settings.server_config.max_payload_bytes,
        error_handler=error_handler,
    )
    application.add_middleware(
        RequestMetricsMiddleware, metrics=metrics, log_config=settings.log_config
    )
    application.add_middleware(
        TransactionIdMiddleware,
        header=settings.server_config.transaction_id_header,
    )

    @application.get(HEALTH_PATH, response_class=PlainTextResponse)
    async def healthz() -> PlainTextResponse:
        """Liveness probe; no validation, no audit records."""
        return PlainTextResponse(HEALTH_BODY)

    if settings.server_config.enable_metrics:

        @application.get(settings.server_config.metrics_path, include_in_schema=False)
        async def metrics_endpoint() -> Response:
            """Prometheus scrape endpoint."""
            return Response(metrics.render(), media_type=metrics.content_type)

    typed_router = TypedRouter(error_handler, prefix=settings.api_prefix)
    typed_router.register(ProfileController(audit).routes())
    typed_router.register(UserController(UserService(user_store), audit).routes())
    application.include_router(typed_router.router)

    instrument_app(
        application,
        settings,
        instrument_database=uses_database,
        tracer_provider=tracer_provider,
    )

    return application
