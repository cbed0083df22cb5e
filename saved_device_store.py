"""
Scrcpy Deck - Saved Devices

Devices the user chose to keep for quick reconnection, persisted to
saved_devices.json as a list keyed by device id.
"""

import json
import logging
import threading
from pathlib import Path
from typing import List, Union

from device_models import Device

logger = logging.getLogger(__name__)


class SavedDeviceStore:
    """Read-modify-write JSON list of Device entries"""

    def __init__(self, storage_file: Union[str, Path]):
        self.storage_file = Path(storage_file)
        self._lock = threading.Lock()

    def _load(self) -> List[Device]:
        if not self.storage_file.exists():
            return []

        try:
            with open(self.storage_file, "r") as f:
                data = json.load(f)
            return [Device(**item) for item in data]
        except (json.JSONDecodeError, OSError, TypeError, ValueError) as e:
            logger.error(f"[SavedDeviceStore] Failed to load saved devices: {e}")
            return []

    def _save(self, devices: List[Device]) -> None:
        self.storage_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.storage_file, "w") as f:
            json.dump([d.model_dump(mode="json") for d in devices], f, indent=2)
        logger.debug(f"[SavedDeviceStore] Saved {len(devices)} device(s)")

    def list(self) -> List[Device]:
        with self._lock:
            return self._load()

    def add_or_replace(self, device: Device) -> None:
        """Store a device, replacing any entry with the same id"""
        with self._lock:
            devices = [d for d in self._load() if d.id != device.id]
            devices.append(device)
            self._save(devices)
        logger.info(f"[SavedDeviceStore] Saved device {device.id}")

    def remove(self, device_id: str) -> bool:
        """Remove a device by id. Returns False if it was not saved."""
        with self._lock:
            devices = self._load()
            remaining = [d for d in devices if d.id != device_id]
            if len(remaining) == len(devices):
                return False
            self._save(remaining)
        logger.info(f"[SavedDeviceStore] Removed device {device_id}")
        return True
