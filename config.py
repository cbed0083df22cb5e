"""
Scrcpy Deck - Configuration

All settings come from environment variables so the service can be started by
the desktop shell with a handful of `KEY=value` pairs.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name, "").strip()
    return Path(value) if value else None


@dataclass
class AppConfig:
    """Runtime configuration"""
    adb_path: Optional[Path] = None  # Explicit ADB executable
    scrcpy_path: Optional[Path] = None  # Explicit scrcpy executable
    scrcpy_dir: Optional[Path] = None  # Working directory for scrcpy (DLLs live here)
    resource_dir: Optional[Path] = None  # Directory holding resources/adb and resources/scrcpy
    data_dir: Path = Path("./data")
    bridge_workers: int = 4  # Bounded pool for blocking subprocess work
    adb_timeout: float = 30.0  # Seconds per ADB invocation
    server_host: str = "127.0.0.1"
    server_port: int = 8765
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build configuration from environment variables"""
        return cls(
            adb_path=_env_path("ADB_PATH"),
            scrcpy_path=_env_path("SCRCPY_PATH"),
            scrcpy_dir=_env_path("SCRCPY_DIR"),
            resource_dir=_env_path("RESOURCE_DIR"),
            data_dir=Path(os.getenv("DATA_DIR", "./data")),
            bridge_workers=max(1, int(os.getenv("BRIDGE_WORKERS", "4"))),
            adb_timeout=float(os.getenv("ADB_TIMEOUT", "30")),
            server_host=os.getenv("SERVER_HOST", "127.0.0.1"),
            server_port=int(os.getenv("SERVER_PORT", "8765")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def settings_file(self) -> Path:
        return self.data_dir / "settings.json"

    @property
    def saved_devices_file(self) -> Path:
        return self.data_dir / "saved_devices.json"
