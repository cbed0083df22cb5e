"""
Scrcpy Deck - Device Catalog

Turns raw `adb devices -l` rows into normalized Device entities. Devices are
recomputed on every call; nothing is cached between snapshots.
"""

import logging
from typing import List, Optional

from adb_bridge import ADBBridge
from device_models import AdbDevice, ConnectionType, Device, DeviceStatus
from utils.error_handler import BridgeExecError

logger = logging.getLogger(__name__)

UNKNOWN_DEVICE = "Unknown Device"
UNKNOWN_MODEL = "Unknown"

_STATUS_BY_STATE = {
    "device": DeviceStatus.CONNECTED,
    "unauthorized": DeviceStatus.UNAUTHORIZED,
    "offline": DeviceStatus.OFFLINE,
}


def connection_type_for(serial: str) -> ConnectionType:
    """Wireless serials look like host:port, anything else is USB"""
    return ConnectionType.WIRELESS if ":" in serial else ConnectionType.USB


def ip_address_for(serial: str) -> Optional[str]:
    """Host part of a wireless serial, None for USB"""
    if connection_type_for(serial) is ConnectionType.WIRELESS:
        return serial.rsplit(":", 1)[0]
    return None


def status_for(state: str) -> DeviceStatus:
    return _STATUS_BY_STATE.get(state, DeviceStatus.DISCONNECTED)


def display_name_for(record: AdbDevice) -> str:
    """model, else codename, else "Unknown Device"; underscores become spaces"""
    name = record.model or record.device or UNKNOWN_DEVICE
    return name.replace("_", " ")


def build_device(record: AdbDevice, model: str) -> Device:
    """Assemble a Device from a listing row and an already-resolved model"""
    return Device(
        id=record.serial,
        name=display_name_for(record),
        model=model,
        connection_type=connection_type_for(record.serial),
        status=status_for(record.state),
        ip_address=ip_address_for(record.serial),
        product=record.product,
        device_codename=record.device,
    )


class DeviceCatalog:
    """Builds the device list shown to the user"""

    def __init__(self, bridge: ADBBridge):
        self.bridge = bridge

    async def resolve_model(self, record: AdbDevice) -> str:
        """
        Pick a model string for a listing row.

        Order: model field, product, device codename, then a single
        `ro.product.model` lookup. Devices that are not connected never get
        the property lookup because adb would block until it times out.
        """
        if record.model:
            return record.model

        if status_for(record.state) is not DeviceStatus.CONNECTED:
            return UNKNOWN_DEVICE

        if record.product:
            return record.product
        if record.device:
            return record.device

        try:
            model = await self.bridge.get_model(record.serial)
        except BridgeExecError as e:
            logger.debug(f"[DeviceCatalog] Model lookup failed for {record.serial}: {e}")
            return UNKNOWN_MODEL
        return model or UNKNOWN_MODEL

    async def enumerate(self) -> List[Device]:
        """List every device ADB reports, normalized"""
        records = await self.bridge.get_devices()

        devices = []
        for record in records:
            devices.append(build_device(record, await self.resolve_model(record)))

        logger.info(f"[DeviceCatalog] Found {len(devices)} device(s)")
        return devices

    async def find(self, device_id: str) -> Optional[Device]:
        """Look up one device by serial in a fresh snapshot"""
        for device in await self.enumerate():
            if device.id == device_id:
                return device
        return None
