"""
Scrcpy Deck - Settings Manager
Loads and saves user settings as JSON
"""

import json
import logging
from pathlib import Path
from typing import Union

from device_models import ScrcpyOptions, Settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 1920


class SettingsManager:
    """Reads and writes settings.json"""

    def __init__(self, settings_file: Union[str, Path]):
        self.settings_file = Path(settings_file)
        logger.info(f"[SettingsManager] Initialized with storage: {self.settings_file}")

    def load(self) -> Settings:
        """Load settings, falling back to defaults when the file is missing or unreadable"""
        if not self.settings_file.exists():
            return Settings()

        try:
            with open(self.settings_file, "r") as f:
                data = json.load(f)
            return Settings(**data)
        except (json.JSONDecodeError, OSError, TypeError, ValueError) as e:
            logger.error(f"[SettingsManager] Failed to load settings: {e}")
            return Settings()

    def save(self, settings: Settings) -> None:
        """Write settings to disk (camelCase keys)"""
        self.settings_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.settings_file, "w") as f:
            json.dump(settings.model_dump(by_alias=True), f, indent=2)
        logger.debug(f"[SettingsManager] Saved settings to {self.settings_file}")


def to_scrcpy_options(settings: Settings) -> ScrcpyOptions:
    """
    Convert saved settings into launch options.

    resolution is "default" (1920) or a pixel count such as "1280".
    """
    if settings.resolution == "default":
        max_size = DEFAULT_MAX_SIZE
    else:
        max_size = int(settings.resolution)

    return ScrcpyOptions(
        max_size=max_size,
        bit_rate=settings.bitrate,
        max_fps=settings.max_fps,
        always_on_top=settings.always_on_top,
        stay_awake=settings.stay_awake,
        turn_screen_off=settings.turn_screen_off,
    )
