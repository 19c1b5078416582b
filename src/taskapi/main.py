import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import StorageError
from .logging_setup import setup_logging
from .middleware import AccessLogMiddleware
from .repositories import TaskStore, build_store
from .routers import tasks as tasks_router
from .settings import Settings, get_settings

logger = logging.getLogger("taskapi.system")

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "CRUD operations for study tasks with merge-patch updates and progress statistics.",
    },
]

_GENERIC_ERROR = "Internal Server Error"


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None, store: Optional[TaskStore] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The task store is constructed once here (unless one is injected) and
    shared by every request through `app.state.store`; it is closed when the
    application shuts down.

    Raises:
        ConfigurationError: the configured backend cannot be built, e.g. the
            mongo backend without MONGODB_URI.
    """
    settings = settings or get_settings()
    if store is None:
        store = build_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "system.start",
            extra={"category": "system", "event": "system.start", "backend": settings.persistence_backend},
        )
        try:
            yield
        finally:
            app.state.store.close()
            logger.info("system.stop", extra={"category": "system", "event": "system.stop"})

    app = FastAPI(
        title="Study Task Backend",
        description="Backend API service for managing study tasks backed by a document store.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.settings = settings

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AccessLogMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent 400 JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": [{"loc": [...], "msg": "...", "type": "..."}, ...]
            }
        """
        detail = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": detail,
            },
        )

    @app.exception_handler(StorageError)
    async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(
            "store.error",
            exc_info=exc,
            extra={
                "category": "store",
                "event": "store.error",
                "operation": exc.operation,
                "request_id": getattr(request.state, "request_id", None),
            },
        )
        return JSONResponse(status_code=500, content={"error": "StorageError", "message": _GENERIC_ERROR})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "request.unhandled",
            exc_info=exc,
            extra={
                "category": "http",
                "event": "request.unhandled",
                "request_id": getattr(request.state, "request_id", None),
            },
        )
        return JSONResponse(status_code=500, content={"error": "InternalError", "message": _GENERIC_ERROR})

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(tasks_router.router)
    return app


_settings = get_settings()
setup_logging(_settings.log_level, _settings.log_dir)
app = create_app(_settings)
