import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from ...config import Settings
from ...domain.exceptions import InvalidQueryError, NewsRelayError
from ...infrastructure.components import Components, ComponentsFactory
from ...logging import init_logging, info as log_info, LogRecord, LogEvent
from .errors import log_and_return_error_response
from .middleware import logging_middleware
from .routes.ai import router as ai_router
from .routes.bulletins import router as bulletins_router
from .routes.health import router as health_router
from .routes.monitoring import router as monitoring_router
from .routes.news import router as news_router


def create_app(settings: Settings, components: Optional[Components] = None) -> FastAPI:
    """Creates and configures the FastAPI application instance.

    Initializes logging, builds the storage, provider and service graph,
    sets up middleware and registers routes.

    Args:
        settings: Configuration settings object
        components: Prebuilt component graph; built from ``settings`` when omitted

    Returns:
        Fully configured FastAPI application instance
    """
    init_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        graph: Components = app.state.components
        logging.info(f"Starting {settings.app_name} with {graph.storage.backend} storage")
        await graph.startup()
        log_info(
            LogRecord(
                event=LogEvent.STORAGE_EVENT.value,
                message="Application started",
                data={
                    "storage": graph.storage.backend,
                    "providers": graph.providers.names,
                },
            )
        )
        try:
            yield
        finally:
            logging.info("Initiating application shutdown")
            try:
                await graph.aclose()
            except Exception as e:
                logging.error(f"Failed to close upstream clients: {str(e)}")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=None,
        redoc_url=None,
        description="Caches and quota-limits calls to news search and text generation providers.",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.settings = settings
    try:
        app.state.components = components or ComponentsFactory.create(settings)
    except Exception as e:
        logging.error(f"Failed to initialize components: {str(e)}")
        raise

    app.middleware("http")(logging_middleware)

    if settings.enable_cors:
        logging.info(
            f"CORS enabled for origins: {settings.cors_allow_origins}, methods: {settings.cors_allow_methods}, headers: {settings.cors_allow_headers}"
        )
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_methods=settings.cors_allow_methods,
            allow_headers=settings.cors_allow_headers,
            allow_credentials=False,
            max_age=600,
        )

    app.include_router(news_router, tags=["News"])
    app.include_router(bulletins_router, tags=["Bulletins"])
    app.include_router(ai_router, tags=["AI"])
    app.include_router(health_router, tags=["Health"])
    app.include_router(monitoring_router, tags=["Monitoring"])

    @app.exception_handler(NewsRelayError)
    async def newsrelay_error_handler(request: Request, exc: NewsRelayError):
        return await log_and_return_error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ):
        errors = exc.errors()
        location = errors[0].get("loc", ()) if errors else ()
        field = str(location[-1]) if location else None
        return await log_and_return_error_response(
            request,
            InvalidQueryError(
                f"Validation error: {errors[0].get('msg') if errors else 'invalid request'}",
                field=field,
                details={"errors": len(errors)},
            ),
            caught_exception=exc,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        return await log_and_return_error_response(
            request,
            NewsRelayError("An unexpected internal server error occurred."),
            caught_exception=exc,
        )

    return app
