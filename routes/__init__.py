"""
Route package shared state.

server.py builds the components at startup and registers them with set_deps();
routers fetch them with get_deps().
"""

from dataclasses import dataclass
from typing import Optional

from adb_bridge import ADBBridge
from config import AppConfig
from device_catalog import DeviceCatalog
from mirror_manager import MirrorManager
from saved_device_store import SavedDeviceStore
from scrcpy_launcher import ScrcpyLauncher
from settings_manager import SettingsManager
from wireless_reconnect import WirelessReconnector


@dataclass
class RouteDependencies:
    config: AppConfig
    adb_bridge: ADBBridge
    device_catalog: DeviceCatalog
    reconnector: WirelessReconnector
    launcher: ScrcpyLauncher
    mirror_manager: MirrorManager
    settings_manager: SettingsManager
    saved_devices: SavedDeviceStore


_deps: Optional[RouteDependencies] = None


def set_deps(deps: Optional[RouteDependencies]) -> None:
    global _deps
    _deps = deps


def get_deps() -> RouteDependencies:
    if _deps is None:
        raise RuntimeError("Route dependencies not initialized")
    return _deps
