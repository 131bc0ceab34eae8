"""Health check endpoints."""

import sqlite3

from fastapi import APIRouter, Depends

from ... import __version__
from ...common import get_logger
from ...services import VaultServices
from ..dependencies import get_services

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health")
def health_check(services: VaultServices = Depends(get_services)):
    """Health check endpoint."""
    logger.debug("Health check requested")

    try:
        services.db.fetch_one("SELECT 1")
        database = "ok"
    except sqlite3.Error as e:
        logger.warning(f"Health check database probe failed: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "version": __version__,
        "database": database,
    }
