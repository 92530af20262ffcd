"""FastAPI application entry point for Aqd."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from core.errors import (
    AnalysisFailedError,
    ContractNotFoundError,
    ContractPermissionError,
    ContractValidationError,
    InvalidTransitionError,
    WorkflowError,
)


logger = logging.getLogger("aqd.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    settings = get_settings()
    print(f"🚀 Starting {settings.app_name} v{settings.app_version}")
    print(f"📍 Environment: {settings.app_env}")

    if settings.storage_backend == "postgres":
        from app.database import db
        from core.workflow.store import PostgresContractStore
        await db.connect()
        await PostgresContractStore(db.pool).ensure_tables()

    if not settings.has_openai_key:
        print("⚠️  OPENAI_API_KEY is not configured; analysis requests will fail")

    yield

    # Shutdown
    print(f"👋 Shutting down {settings.app_name}...")
    if settings.storage_backend == "postgres":
        from app.database import db
        await db.disconnect()


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Contract workflow service with bilingual AI clause analysis and deadline tracking",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ERROR_STATUS: list[tuple[type[WorkflowError], int]] = [
    (ContractNotFoundError, 404),
    (InvalidTransitionError, 409),
    (ContractPermissionError, 403),
    (ContractValidationError, 422),
    (AnalysisFailedError, 502),
]


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Map workflow errors to a single human-readable message."""
    status_code = next(
        (code for error_class, code in _ERROR_STATUS if isinstance(exc, error_class)),
        400,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r}")
    return JSONResponse(status_code=status_code, content={"detail": exc.user_message})


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
    }


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers
from app.api.routes import contracts
app.include_router(contracts.router, prefix="/api/v1/contracts", tags=["contracts"])
