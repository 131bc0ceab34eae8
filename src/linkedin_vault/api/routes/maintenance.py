"""Scheduled maintenance endpoints, called by an external scheduler."""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from ...common import get_logger
from ...services import VaultServices
from ..dependencies import get_services

router = APIRouter()
logger = get_logger(__name__)


def require_maintenance_secret(
    x_maintenance_secret: Optional[str] = Header(None),
    services: VaultServices = Depends(get_services),
) -> None:
    expected = services.config.api.maintenance_secret
    if not expected:
        raise HTTPException(status_code=403, detail="Maintenance endpoints are disabled")
    if not x_maintenance_secret or not hmac.compare_digest(x_maintenance_secret, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/maintenance/retention-sweep", dependencies=[Depends(require_maintenance_secret)])
def retention_sweep(services: VaultServices = Depends(get_services)):
    """Recover stale runs, then delete expired artifacts."""
    recovered = services.manager.recover_stale()
    summary = services.sweeper.sweep()
    return {"success": True, "recovered_stale": recovered, **summary.to_dict()}
