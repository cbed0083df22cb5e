"""
Device Routes - Discovery and Connection Management

Provides endpoints for listing devices, connecting and disconnecting over
TCP/IP, switching a USB device to wireless mode, and the saved-device list.
"""

from fastapi import APIRouter
from pydantic import BaseModel
import logging

from device_models import DEFAULT_ADB_PORT, Device
from routes import get_deps
from utils.error_handler import (
    DeviceNotFoundError,
    MirrorError,
    create_success_response,
    handle_api_error,
    handle_errors,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/devices", tags=["devices"])


# Request models
class ConnectDeviceRequest(BaseModel):
    ip: str
    port: int = DEFAULT_ADB_PORT


class DisconnectDeviceRequest(BaseModel):
    device_id: str


class WirelessModeRequest(BaseModel):
    device_id: str
    connect: bool = False  # Also run `adb connect` once the IP is known


# =============================================================================
# DISCOVERY
# =============================================================================

@router.get("")
@handle_errors
async def get_connected_devices():
    """List all connected devices (USB and wireless)"""
    deps = get_deps()
    try:
        devices = await deps.device_catalog.enumerate()
        return create_success_response(data=[d.model_dump(mode="json") for d in devices])
    except MirrorError as e:
        return handle_api_error(e)


@router.post("/refresh")
@handle_errors
async def refresh_devices():
    """Re-scan for devices"""
    return await get_connected_devices()


@router.get("/{device_id}/info")
@handle_errors
async def get_device_info(device_id: str):
    """Model, manufacturer and Android version of a connected device"""
    deps = get_deps()
    try:
        if await deps.device_catalog.find(device_id) is None:
            raise DeviceNotFoundError(device_id)
        bridge = deps.adb_bridge
        return create_success_response(data={
            "device_id": device_id,
            "model": await bridge.get_model(device_id),
            "manufacturer": await bridge.get_manufacturer(device_id),
            "android_version": await bridge.get_android_version(device_id),
        })
    except MirrorError as e:
        return handle_api_error(e)


# =============================================================================
# CONNECTION MANAGEMENT
# =============================================================================

@router.post("/connect")
@handle_errors
async def connect_wireless_device(request: ConnectDeviceRequest):
    """Connect to a device over TCP/IP"""
    deps = get_deps()
    try:
        logger.info(f"[API] Connecting to {request.ip}:{request.port}")
        device_id = await deps.reconnector.connect(request.ip, request.port)
        return create_success_response(
            data={"device_id": device_id, "connected": True},
            message=f"Connected to {device_id}",
        )
    except MirrorError as e:
        logger.error(f"[API] Connection failed: {e}")
        return handle_api_error(e)


@router.post("/disconnect")
@handle_errors
async def disconnect_device(request: DisconnectDeviceRequest):
    """Disconnect a TCP/IP device"""
    deps = get_deps()
    try:
        output = await deps.reconnector.disconnect(request.device_id)
        return create_success_response(
            data={"device_id": request.device_id, "disconnected": True},
            message=output or f"Disconnected from {request.device_id}",
        )
    except MirrorError as e:
        logger.error(f"[API] Disconnection failed: {e}")
        return handle_api_error(e)


@router.post("/disconnect-all")
@handle_errors
async def disconnect_all_devices():
    """Disconnect every TCP/IP device"""
    deps = get_deps()
    try:
        output = await deps.adb_bridge.disconnect_all()
        return create_success_response(message=output.strip() or "Disconnected all devices")
    except MirrorError as e:
        logger.error(f"[API] Disconnect all failed: {e}")
        return handle_api_error(e)


@router.post("/restart-server")
@handle_errors
async def restart_adb_server():
    """Kill and restart the ADB server (drops every connection)"""
    deps = get_deps()
    try:
        logger.info("[API] Restarting ADB server")
        await deps.adb_bridge.kill_server()
        await deps.adb_bridge.start_server()
        return create_success_response(message="ADB server restarted")
    except MirrorError as e:
        logger.error(f"[API] ADB server restart failed: {e}")
        return handle_api_error(e)


@router.post("/wireless")
@handle_errors
async def enable_wireless_mode(request: WirelessModeRequest):
    """
    Switch a USB device to wireless debugging.

    Returns the device's WiFi address. With connect=true the address is also
    connected on port 5555.
    """
    deps = get_deps()
    try:
        logger.info(f"[API] Enabling wireless mode on {request.device_id}")
        ip = await deps.reconnector.run_enable_wireless_mode(request.device_id)

        data = {"ip_address": ip, "port": DEFAULT_ADB_PORT}
        if request.connect:
            data["device_id"] = await deps.reconnector.connect(ip, DEFAULT_ADB_PORT)

        return create_success_response(data=data, message=f"Wireless mode enabled ({ip})")
    except MirrorError as e:
        logger.error(f"[API] Wireless setup failed: {e}")
        return handle_api_error(e)


# =============================================================================
# SAVED DEVICES
# =============================================================================

@router.get("/saved")
@handle_errors
async def get_saved_devices():
    deps = get_deps()
    devices = deps.saved_devices.list()
    return create_success_response(data=[d.model_dump(mode="json") for d in devices])


@router.post("/saved")
@handle_errors
async def save_device(device: Device):
    """Add a device to the saved list, replacing an entry with the same id"""
    deps = get_deps()
    deps.saved_devices.add_or_replace(device)
    return create_success_response(message=f"Saved {device.id}")


@router.delete("/saved/{device_id}")
@handle_errors
async def remove_saved_device(device_id: str):
    deps = get_deps()
    if not deps.saved_devices.remove(device_id):
        return handle_api_error(DeviceNotFoundError(device_id))
    return create_success_response(message=f"Removed {device_id}")
