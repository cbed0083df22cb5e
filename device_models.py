"""
Scrcpy Deck - Device Models

Pydantic models for devices, mirroring options, sessions and user settings.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


DEFAULT_ADB_PORT = 5555


class ConnectionType(str, Enum):
    """How the host reaches the device"""
    USB = "USB"
    WIRELESS = "Wireless"


class DeviceStatus(str, Enum):
    """Device status derived from the state column of `adb devices`"""
    CONNECTED = "Connected"
    DISCONNECTED = "Disconnected"
    UNAUTHORIZED = "Unauthorized"
    OFFLINE = "Offline"


class SessionStatus(str, Enum):
    """Mirroring session status"""
    RUNNING = "Running"
    STOPPED = "Stopped"
    ERROR = "Error"


class AdbDevice(BaseModel):
    """One row of `adb devices -l`, as reported by the tool"""
    serial: str
    state: str
    product: Optional[str] = None
    model: Optional[str] = None
    device: Optional[str] = None
    transport_id: Optional[str] = None


class Device(BaseModel):
    """Normalized device handed to the UI and to the saved-device store"""
    id: str
    name: str
    model: str
    connection_type: ConnectionType
    status: DeviceStatus
    ip_address: Optional[str] = None
    product: Optional[str] = None
    device_codename: Optional[str] = None


class ScrcpyOptions(BaseModel):
    """Options turned into scrcpy command-line flags"""
    max_size: Optional[int] = Field(default=1920, ge=0)  # pixels
    bit_rate: Optional[int] = Field(default=8_000_000, ge=0)  # bits per second
    max_fps: Optional[int] = Field(default=60, ge=0)
    always_on_top: bool = False
    stay_awake: bool = True
    turn_screen_off: bool = False


class MirrorSession(BaseModel):
    """A running mirroring session as reported to the UI"""
    session_id: str
    device_id: str
    status: SessionStatus = SessionStatus.RUNNING
    started_at: str  # ISO-8601


class Settings(BaseModel):
    """User settings persisted as settings.json (camelCase keys on disk)"""
    model_config = ConfigDict(populate_by_name=True)

    resolution: str = "default"  # "default" or a max dimension in pixels
    bitrate: int = Field(default=8_000_000, ge=0)
    max_fps: int = Field(default=60, ge=0, alias="maxFps")
    always_on_top: bool = Field(default=False, alias="alwaysOnTop")
    stay_awake: bool = Field(default=True, alias="stayAwake")
    turn_screen_off: bool = Field(default=False, alias="turnScreenOff")

    @field_validator("resolution")
    @classmethod
    def check_resolution(cls, value: str) -> str:
        value = value.strip()
        if value != "default" and not (value.isascii() and value.isdigit()):
            raise ValueError("resolution must be 'default' or a pixel count")
        return value
