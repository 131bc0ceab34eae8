"""Backup endpoints: upload, list, inspect, process, export."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response

from ...analysis.insights import InsightTier
from ...common import UploadRejectedError, get_logger
from ...services import VaultServices
from ..dependencies import get_insight_tier, get_services, get_user_id

router = APIRouter()
logger = get_logger(__name__)

MB = 1024 * 1024


@router.post("/backups", status_code=201)
def upload_backup(
    file: UploadFile = File(...),
    keep_raw_forever: bool = Form(False),
    org_id: Optional[str] = Form(None),
    user_id: str = Depends(get_user_id),
    services: VaultServices = Depends(get_services),
):
    """Accept an export archive and create a pending backup."""
    limit = services.config.limits.max_upload_bytes
    data = file.file.read(limit + 1)
    if len(data) > limit:
        raise UploadRejectedError(f"File too large. Maximum size is {limit // MB}MB")

    record = services.manager.create_backup(
        user_id, data, file_name=file.filename, org_id=org_id, keep_raw_forever=keep_raw_forever,
    )
    return {"success": True, "backup": record.to_dict()}


@router.get("/backups")
def list_backups(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_user_id),
    services: VaultServices = Depends(get_services),
):
    backups = services.manager.list_backups(user_id, limit)
    return {"backups": [b.to_dict() for b in backups], "total": len(backups)}


@router.get("/backups/{backup_id}")
def get_backup(
    backup_id: str,
    user_id: str = Depends(get_user_id),
    services: VaultServices = Depends(get_services),
):
    return {"backup": services.manager.get_backup(backup_id, user_id).to_dict()}


@router.post("/backups/{backup_id}/process")
def process_backup(
    backup_id: str,
    user_id: str = Depends(get_user_id),
    tier: InsightTier = Depends(get_insight_tier),
    services: VaultServices = Depends(get_services),
):
    """Trigger processing. Ready backups return immediately."""
    outcome = services.manager.process(backup_id, user_id, tier)
    return {
        "success": True,
        "already_processed": outcome.already_processed,
        "backup": outcome.backup.to_dict(),
        "snapshot_id": outcome.snapshot.snapshot_id if outcome.snapshot else None,
        "warnings": outcome.warnings,
    }


@router.get("/backups/{backup_id}/snapshot")
def get_snapshot(
    backup_id: str,
    user_id: str = Depends(get_user_id),
    services: VaultServices = Depends(get_services),
):
    return services.manager.get_snapshot(backup_id, user_id).to_dict()


@router.get("/backups/{backup_id}/export-connections")
def export_connections(
    backup_id: str,
    user_id: str = Depends(get_user_id),
    services: VaultServices = Depends(get_services),
):
    """Download the connections file from the stored raw archive."""
    content = services.manager.export_connections(backup_id, user_id)
    logger.info(f"Exported connections {{'backup_id': {backup_id!r}, 'bytes': {len(content)}}}")
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="linkedin-connections-{backup_id}.csv"'},
    )
