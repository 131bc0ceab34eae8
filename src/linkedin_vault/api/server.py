"""FastAPI server setup."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse

from .. import __version__
from ..common import (
    VaultError, ArchiveError, BackupNotFoundError, BackupAccessError,
    BackupAlreadyProcessingError, UploadRejectedError, get_logger,
)
from ..config import VaultConfig
from ..services import VaultServices, build_services

logger = get_logger(__name__)

# Most specific first
_STATUS_CODES = (
    (BackupNotFoundError, 404),
    (BackupAccessError, 403),
    (BackupAlreadyProcessingError, 409),
    (UploadRejectedError, 400),
    (ArchiveError, 400),
)


def status_for(error: VaultError) -> int:
    for error_type, status in _STATUS_CODES:
        if isinstance(error, error_type):
            return status
    return 500


async def vault_error_handler(request: Request, exc: VaultError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"Request failed {{'path': {request.url.path!r}, 'error': {exc.message!r}}}")
    return JSONResponse(status_code=status, content={"error": exc.message})


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


def create_app(config: VaultConfig, services: Optional[VaultServices] = None) -> FastAPI:
    """Create and configure FastAPI application.

    When no services are given they are built from config and closed on shutdown.
    """
    owns_services = services is None
    services = services or build_services(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_services:
            services.close()

    app = FastAPI(
        title="linkedin-vault",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.services = services

    if config.api.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.api.cors_origins or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(VaultError, vault_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)

    from .routes import health, backups, maintenance

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(backups.router, prefix="/api", tags=["backups"])
    app.include_router(maintenance.router, prefix="/api", tags=["maintenance"])

    logger.info(
        "FastAPI application created",
        extra={"extra_fields": {"version": __version__, "database": str(config.storage.database_path)}},
    )

    return app
