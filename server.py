"""
Scrcpy Deck - FastAPI Server

Local API used by the desktop shell to list Android devices, switch them to
wireless debugging and run scrcpy mirroring sessions.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from adb_bridge import ADBBridge
from config import AppConfig
from device_catalog import DeviceCatalog
from mirror_manager import MirrorManager
from saved_device_store import SavedDeviceStore
from scrcpy_launcher import ScrcpyLauncher
from session_registry import SessionRegistry
from settings_manager import SettingsManager
from wireless_reconnect import WirelessReconnector
import routes
from routes import RouteDependencies, devices, health, mirroring, settings
from utils.error_handler import MirrorError
from utils.resource_paths import get_adb_path, get_scrcpy_dir, get_scrcpy_path, verify_bundled_resources

config = AppConfig.from_env()

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.log_level, logging.INFO),
    format='[%(asctime)s] %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Scrcpy Deck API",
    version=health.VERSION,
    description="Android device discovery and scrcpy session management"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Desktop webview origin varies by platform
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log and return detailed validation errors"""
    logger.error(f"[VALIDATION ERROR] {request.method} {request.url}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "detail": exc.errors(),
        }
    )


app.include_router(health.router)
app.include_router(devices.router)
app.include_router(mirroring.router)
app.include_router(settings.router)

executor: Optional[ThreadPoolExecutor] = None


def build_dependencies(app_config: AppConfig, pool: ThreadPoolExecutor) -> RouteDependencies:
    """Wire up every component from configuration"""
    adb_path = get_adb_path(app_config)
    scrcpy_path = get_scrcpy_path(app_config)

    adb_bridge = ADBBridge(adb_path, executor=pool, timeout=app_config.adb_timeout)
    device_catalog = DeviceCatalog(adb_bridge)
    launcher = ScrcpyLauncher(scrcpy_path, get_scrcpy_dir(app_config), adb_dir=adb_path.parent)

    return RouteDependencies(
        config=app_config,
        adb_bridge=adb_bridge,
        device_catalog=device_catalog,
        reconnector=WirelessReconnector(adb_bridge, device_catalog),
        launcher=launcher,
        mirror_manager=MirrorManager(launcher, SessionRegistry(), executor=pool),
        settings_manager=SettingsManager(app_config.settings_file),
        saved_devices=SavedDeviceStore(app_config.saved_devices_file),
    )


@app.on_event("startup")
async def startup_event():
    global executor
    logger.info("[Server] Starting Scrcpy Deck")

    try:
        verify_bundled_resources(config)
    except FileNotFoundError as e:
        logger.error(f"[Server] {e}")
        raise

    executor = ThreadPoolExecutor(max_workers=config.bridge_workers, thread_name_prefix="bridge")
    deps = build_dependencies(config, executor)
    routes.set_deps(deps)

    try:
        await deps.adb_bridge.start_server()
        logger.info("[Server] ADB server running")
    except MirrorError as e:
        logger.error(f"[Server] Could not start ADB server: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("[Server] Shutting down")
    try:
        deps = routes.get_deps()
    except RuntimeError:
        deps = None

    if deps is not None:
        await deps.reconnector.cancel_pending()
        await deps.mirror_manager.shutdown()
        routes.set_deps(None)

    if executor is not None:
        executor.shutdown(wait=False)


def main():
    uvicorn.run(app, host=config.server_host, port=config.server_port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
