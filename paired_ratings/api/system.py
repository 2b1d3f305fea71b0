"""System API routes (status, logs)"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from ..api.auth import get_current_user
from ..config import settings as app_settings
from ..services.log_service import log_service

router = APIRouter(prefix="/api/system", tags=["system"])

VERSION = "1.0.0"


@router.get("/status")
async def system_status(current_user: str = Depends(get_current_user)):
    """Basic system status check"""
    return {
        "status": "ok",
        "version": VERSION,
        "tmdb_configured": bool(
            app_settings.TMDB_API_KEY or app_settings.TMDB_API_READ_TOKEN
        ),
    }


@router.get("/logs")
async def get_logs(
    type: str = Query("error", pattern="^(error|info|tmdb)$"),
    limit: int = Query(100, ge=1, le=1000),
    current_user: str = Depends(get_current_user),
):
    """Get recent log entries"""
    try:
        logs = log_service.get_logs(type, limit)
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to read logs: {str(e)}")
    return {"log_type": type, "lines": logs, "count": len(logs)}


@router.get("/logs/download")
async def download_logs(
    type: str = Query("error", pattern="^(error|info|tmdb)$"),
    current_user: str = Depends(get_current_user),
):
    """Download full log file"""
    log_file = log_service.log_dir / f"{type}.log"
    if not log_file.exists():
        raise HTTPException(status_code=404, detail="Log file not found")
    return FileResponse(path=log_file, filename=f"{type}.log", media_type="text/plain")
