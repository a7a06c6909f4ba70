"""
Backup API - download, upload, snapshot and sync of the full data set.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from ..services.backup_service import dumps, export_backup
from .state import AppState, get_state

router = APIRouter(prefix="/backup", tags=["backup"])


@router.get("/export")
def export(state: AppState = Depends(get_state)):
    doc = export_backup(state.store)
    filename = f"price-calculator-backup-{datetime.now():%Y-%m-%d}.json"
    return Response(
        content=dumps(doc),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import")
async def import_file(request: Request, state: AppState = Depends(get_state)):
    """Restore from a backup JSON body. Malformed files are rejected before any write."""
    body = await request.body()
    counts = await run_in_threadpool(state.backups.restore, body)
    return {"imported": counts}


@router.post("/snapshot")
def snapshot(state: AppState = Depends(get_state)):
    doc = state.backups.perform_backup()
    return {"exported_at": doc.exported_at, "counts": doc.counts()}


@router.post("/sync")
def sync(state: AppState = Depends(get_state)):
    return {"synced": state.backups.sync_to_remote()}


@router.get("/status")
def status(state: AppState = Depends(get_state)):
    snapshot = state.backups.snapshot
    return {
        "status": state.status.status,
        "checked_at": state.status.checked_at,
        "last_backup_at": state.backups.last_backup_at,
        "has_local_backup": snapshot.path.exists(),
    }
