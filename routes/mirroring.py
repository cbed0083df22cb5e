"""
Mirroring Routes - Scrcpy Session Management

Provides endpoints for starting and stopping scrcpy sessions and for checking
the bundled scrcpy build.
"""

from fastapi import APIRouter
from pydantic import BaseModel
import logging
from typing import Optional

from device_models import ScrcpyOptions
from routes import get_deps
from settings_manager import to_scrcpy_options
from utils.error_handler import MirrorError, create_success_response, handle_api_error, handle_errors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mirror", tags=["mirroring"])


class StartMirroringRequest(BaseModel):
    device_id: str
    options: Optional[ScrcpyOptions] = None  # Saved settings are used when omitted


class StopMirroringRequest(BaseModel):
    session_id: str


@router.post("/start")
@handle_errors
async def start_mirroring(request: StartMirroringRequest):
    """Start screen mirroring for a device"""
    deps = get_deps()
    try:
        options = request.options or to_scrcpy_options(deps.settings_manager.load())
        session_id = await deps.mirror_manager.start_mirroring(request.device_id, options)
        return create_success_response(data={"session_id": session_id})
    except MirrorError as e:
        logger.error(f"[API] Failed to start mirroring {request.device_id}: {e}")
        return handle_api_error(e)


@router.post("/stop")
@handle_errors
async def stop_mirroring(request: StopMirroringRequest):
    """Stop a mirroring session"""
    deps = get_deps()
    try:
        await deps.mirror_manager.stop_mirroring(request.session_id)
        return create_success_response(message=f"Stopped {request.session_id}")
    except MirrorError as e:
        return handle_api_error(e)


@router.get("/sessions")
@handle_errors
async def get_active_sessions():
    """All running mirroring sessions"""
    deps = get_deps()
    sessions = await deps.mirror_manager.get_active_sessions()
    return create_success_response(data=[s.model_dump(mode="json") for s in sessions])


@router.get("/available")
@handle_errors
async def check_scrcpy_available():
    deps = get_deps()
    return create_success_response(data={"available": deps.launcher.check_available()})


@router.get("/version")
@handle_errors
async def get_scrcpy_version():
    deps = get_deps()
    try:
        version = await deps.mirror_manager.scrcpy_version()
        return create_success_response(data={"version": version})
    except MirrorError as e:
        return handle_api_error(e)
