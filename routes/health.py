"""
Health Routes - System Health Check

Reports server status and whether the ADB and scrcpy executables respond.
"""

from fastapi import APIRouter
import logging

from routes import get_deps
from utils.error_handler import MirrorError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])

VERSION = "0.1.0"


@router.api_route("/health", methods=["GET", "HEAD"])
async def health_check():
    """
    Health check endpoint

    Returns server status, version, tool availability and the number of
    running mirroring sessions.
    """
    deps = get_deps()

    try:
        adb_status = "ok" if await deps.adb_bridge.check_availability() else "unavailable"
    except MirrorError as e:
        logger.warning(f"[API] Health check: {e}")
        adb_status = "unavailable"

    return {
        "status": "ok",
        "version": VERSION,
        "message": "Scrcpy Deck is running",
        "adb_status": adb_status,
        "scrcpy_available": deps.launcher.check_available(),
        "active_sessions": deps.mirror_manager.registry.active_count(),
    }
