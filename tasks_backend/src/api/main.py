import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import AuthService
from .errors import AppError, app_error_handler
from .repositories import build_repositories
from .routers import auth as auth_router
from .routers import tasks as tasks_router
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "auth", "description": "User registration and token issuance."},
    {
        "name": "tasks",
        "description": "CRUD operations on the caller's own tasks. Requires a session token.",
    },
]


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": [... pydantic/fastapi error details ...]
        }
    """
    return JSONResponse(
        status_code=400,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic error contexts may hold exception instances
    return jsonable_encoder(exc.errors(), custom_encoder={Exception: str})


def _log_startup_failure(future: "asyncio.Future[bool]") -> None:
    # prepare_database logs pymongo errors itself; anything else lands here
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("MongoDB startup check failed", exc_info=exc)


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None, mongo_client: Any = None) -> FastAPI:
    """
    Build the FastAPI application.

    Settings, stores and the AuthService are created here and attached to
    ``app.state``; handlers reach them through dependencies only.

    Args:
        settings: Configuration to use. Defaults to the process environment.
        mongo_client: Optional pre-built MongoClient for the 'mongo' backend.
            When omitted one is created on first use and closed on shutdown.
    """
    settings = settings or get_settings()

    if settings.uses_default_secret:
        logger.warning("JWT_SECRET is not set; using an insecure default signing secret")

    connection = None
    if settings.persistence_backend == "mongo":
        from .db import MongoConnection

        # no network access here: a bad URI must not keep the app from starting
        connection = MongoConnection(settings, mongo_client)

    users, tasks = build_repositories(settings, connection)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        pending: Optional[asyncio.Future] = None
        if connection is not None:
            from .db import prepare_database

            # Connect in the background; the API serves while MongoDB comes up.
            loop = asyncio.get_running_loop()
            pending = loop.run_in_executor(None, prepare_database, connection)
            pending.add_done_callback(_log_startup_failure)
        yield
        if pending is not None:
            # let a still-running startup check finish before its client goes away
            await asyncio.wait([pending])
        if connection is not None:
            connection.close()

    app = FastAPI(
        title="Task Manager Backend",
        description="Backend API for a personal to-do list with username/password authentication.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.users = users
    app.state.tasks = tasks
    app.state.auth_service = AuthService.from_settings(settings)

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    # Include routers
    app.include_router(auth_router.router)
    app.include_router(tasks_router.router)

    return app


app = create_app()
