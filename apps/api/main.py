import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apps.api.routes import directory, events, health
from apps.core.config import Settings, settings as default_settings
from apps.core.db import build_engine, build_session_factory, resolve_database_url
from apps.core.errors import StoreError, StoreTimeoutError, ValidationError
from apps.core.store import StoreHandle
from apps.events.services.directory import DirectoryService
from apps.events.services.search import SearchService
from apps.events.services.suggestions import SuggestionService

logger = logging.getLogger(__name__)

RETRY_AFTER_S = "5"


def attach_store(app: FastAPI, store: StoreHandle, settings: Settings) -> None:
    """Bind the store handle and the services built on it to the application."""
    app.state.store = store
    app.state.search_service = SearchService(store, settings=settings)
    app.state.suggestion_service = SuggestionService(store, settings=settings)
    app.state.directory_service = DirectoryService(store, settings=settings)


def create_app(settings: Optional[Settings] = None, store: Optional[StoreHandle] = None) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(
        title="Festival Event Search API",
        description="Search, filtering and autocomplete for dance festivals and events",
        version="1.0.0"
    )
    app.state.settings = settings
    app.state.engine = None
    app.state.store = None
    if store is not None:
        attach_store(app, store, settings)

    # CORS so the frontend can read X-Search-Cache
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Search-Cache", "Retry-After"],
    )

    app.include_router(health.router, prefix="/api")
    app.include_router(events.router, prefix="/api", tags=["events"])
    app.include_router(directory.router, prefix="/api", tags=["directory"])

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        # includes StoreTimeoutError; both are retryable
        logger.error("Store unavailable for %s: %s", request.url.path, exc)
        detail = "Search timed out" if isinstance(exc, StoreTimeoutError) else "Search temporarily unavailable"
        return JSONResponse(
            status_code=503,
            content={"detail": detail},
            headers={"Retry-After": RETRY_AFTER_S},
        )

    @app.on_event("startup")
    async def open_store():
        if app.state.store is not None:
            return
        engine = build_engine(resolve_database_url(settings))
        app.state.engine = engine
        attach_store(
            app,
            StoreHandle(
                build_session_factory(engine),
                default_timeout_s=settings.store_timeout_s,
                max_workers=settings.store_max_workers,
            ),
            settings,
        )
        logger.info("startup complete", extra={"env": settings.environment})

    @app.on_event("shutdown")
    async def close_store():
        if app.state.engine is None:
            # injected stores are owned by the caller
            return
        app.state.store.close()
        app.state.engine.dispose()

    @app.get("/")
    async def root():
        return {"message": "Festival Event Search API", "version": "1.0.0"}

    return app


app = create_app()
