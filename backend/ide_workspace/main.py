"""
IDE Workspace — FastAPI Application Factory
============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       the lifespan prepares the schema on startup and flushes autosaves,
       closes the GitHub client and disposes the engine on shutdown.
Who:   uvicorn (`uvicorn ide_workspace.main:app`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware:  Request ID → Logging → GZip → CORS         │
    │                                                          │
    │  Routes:                                                 │
    │  ┌────────────────┐ ┌──────────────┐ ┌───────┐ ┌──────┐  │
    │  │ /api/projects  │ │ push / pull  │ │  run  │ │health│  │
    │  │ (tree, files)  │ │ / clone      │ │       │ │      │  │
    │  └────────────────┘ └──────────────┘ └───────┘ └──────┘  │
    │                                                          │
    │  Exception Handlers:                                     │
    │  Validation→400 │ NotFound→404 │ Tree/Sync→409           │
    │  RemoteAuth→401 │ Remote→502   │ Execution→503 │ DB→500  │
    └──────────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from ide_workspace import __version__
from ide_workspace.config import settings
from ide_workspace.database import dispose_engine, init_models
from ide_workspace.exceptions import (
    CyclicMoveError,
    DatabaseError,
    ExecutionServiceError,
    LastFileProtectedError,
    NameConflictError,
    NotFoundError,
    RemoteAuthError,
    RemoteError,
    RemoteNotFoundError,
    RemotePartialFailureError,
    SyncInProgressError,
    TranslationError,
    TreeError,
    ValidationError,
    WorkspaceError,
)
from ide_workspace.middleware.logging import RequestLoggingMiddleware
from ide_workspace.middleware.request_id import RequestIDMiddleware, request_id_var
from ide_workspace.routes import health, projects, run, sync
from ide_workspace.services.github_client import github_client
from ide_workspace.services.workspace_service import workspace_service

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries log every request/statement at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
        1. Configure logging
        2. Create the projects table when auto_create_schema is on

    Shutdown:
        1. Write any pending autosaves
        2. Close the shared GitHub HTTP client
        3. Dispose the database engine
    """
    setup_logging()
    logger.info("=" * 60)
    logger.info("IDE Workspace backend starting up...")

    if settings.auto_create_schema:
        await init_models()

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("IDE Workspace backend shutting down...")
    try:
        await workspace_service.autosave.flush()
    except WorkspaceError as e:
        logger.error("Pending autosaves could not be written: %s", e.message)
    await github_client.aclose()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

_TREE_ERROR_CODES = {
    NameConflictError: "name_conflict",
    CyclicMoveError: "cyclic_move",
    LastFileProtectedError: "last_file_protected",
}


def _error_body(code: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": code, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy onto HTTP responses.

    FastAPI picks the handler registered for the closest class in the
    exception's MRO, so subclasses (RemoteAuthError) are matched before
    their base (RemoteError).

    Handler hierarchy:
        ValidationError            → 400
        NotFoundError              → 404
        TreeError                  → 409
        SyncInProgressError        → 409
        RemoteAuthError            → 401
        RemoteNotFoundError        → 404
        RemotePartialFailureError  → 502 (details carry the per-file breakdown)
        TranslationError           → 502
        RemoteError                → 502
        ExecutionServiceError      → 503
        DatabaseError              → 500 (generic message)
        WorkspaceError / Exception → 500
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=_error_body("not_found", exc.message))

    @app.exception_handler(TreeError)
    async def handle_tree_error(request: Request, exc: TreeError):
        code = _TREE_ERROR_CODES.get(type(exc), "tree_error")
        return JSONResponse(status_code=409, content=_error_body(code, exc.message, exc.context))

    @app.exception_handler(SyncInProgressError)
    async def handle_sync_in_progress(request: Request, exc: SyncInProgressError):
        return JSONResponse(
            status_code=409,
            content=_error_body("sync_in_progress", exc.message, exc.context),
        )

    @app.exception_handler(RemoteAuthError)
    async def handle_remote_auth(request: Request, exc: RemoteAuthError):
        logger.warning("[%s] Remote auth error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=401, content=_error_body("remote_auth_error", exc.message))

    @app.exception_handler(RemoteNotFoundError)
    async def handle_remote_not_found(request: Request, exc: RemoteNotFoundError):
        return JSONResponse(status_code=404, content=_error_body("remote_not_found", exc.message))

    @app.exception_handler(RemotePartialFailureError)
    async def handle_partial_push(request: Request, exc: RemotePartialFailureError):
        logger.error("[%s] Partial push failure at %s: %s", request_id_var.get(""), exc.stage, exc.message)
        details = {"stage": exc.stage}
        if exc.result is not None:
            details["result"] = exc.result.model_dump(mode="json", exclude={"project"})
        return JSONResponse(
            status_code=502,
            content=_error_body("remote_partial_failure", exc.message, details),
        )

    @app.exception_handler(TranslationError)
    async def handle_translation_error(request: Request, exc: TranslationError):
        logger.error("[%s] Remote tree rejected: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=502, content=_error_body("translation_error", exc.message))

    @app.exception_handler(RemoteError)
    async def handle_remote_error(request: Request, exc: RemoteError):
        logger.error("[%s] Remote error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(status_code=502, content=_error_body("remote_error", exc.message))

    @app.exception_handler(ExecutionServiceError)
    async def handle_execution_error(request: Request, exc: ExecutionServiceError):
        logger.error("[%s] Execution failed: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=503,
            content=_error_body("execution_unavailable", exc.message, {"errors": exc.errors}),
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(WorkspaceError)
    async def handle_workspace_error(request: Request, exc: WorkspaceError):
        logger.error("[%s] Unhandled workspace error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=500, content=_error_body("server_error", exc.message))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="IDE Workspace API",
        description=(
            "Project file trees for the Python, Java and C++ editors: local "
            "snapshots, tree editing, GitHub push/pull/clone and code execution."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(projects.router)
    app.include_router(sync.router)
    app.include_router(run.router)
    app.include_router(health.router)

    return app


app = create_app()
