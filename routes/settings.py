"""
Settings Routes - User Preferences

Load and save the mirroring defaults kept in settings.json.
"""

from fastapi import APIRouter
import logging

from device_models import Settings
from routes import get_deps
from utils.error_handler import create_success_response, handle_errors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("")
@handle_errors
async def load_settings():
    deps = get_deps()
    settings = deps.settings_manager.load()
    return create_success_response(data=settings.model_dump(by_alias=True))


@router.put("")
@handle_errors
async def save_settings(settings: Settings):
    deps = get_deps()
    deps.settings_manager.save(settings)
    logger.info("[API] Settings saved")
    return create_success_response(message="Settings saved")
