"""
Locate the ADB and scrcpy executables.

Lookup order for each tool: explicit path from configuration, the bundled
`resources/<tool>/` directory, then the system PATH.
"""

import logging
import shutil
import sys
from pathlib import Path
from typing import Optional

from config import AppConfig

logger = logging.getLogger(__name__)


def _exe(name: str) -> str:
    return f"{name}.exe" if sys.platform == "win32" else name


def _resolve_tool(tool: str, explicit: Optional[Path], resource_dir: Optional[Path]) -> Path:
    if explicit is not None:
        if not explicit.exists():
            raise FileNotFoundError(f"{tool} executable not found at: {explicit}")
        return explicit

    if resource_dir is not None:
        bundled = resource_dir / "resources" / tool / _exe(tool)
        if bundled.exists():
            return bundled
        logger.debug(f"[ResourcePaths] No bundled {tool} at {bundled}")

    found = shutil.which(tool)
    if found:
        return Path(found)

    raise FileNotFoundError(f"{tool} executable not found (set {tool.upper()}_PATH or RESOURCE_DIR)")


def get_adb_path(config: AppConfig) -> Path:
    """Get the path to the ADB executable"""
    return _resolve_tool("adb", config.adb_path, config.resource_dir)


def get_scrcpy_path(config: AppConfig) -> Path:
    """Get the path to the scrcpy executable"""
    return _resolve_tool("scrcpy", config.scrcpy_path, config.resource_dir)


def get_scrcpy_dir(config: AppConfig) -> Path:
    """Get the directory scrcpy runs from (shared libraries are resolved there)"""
    if config.scrcpy_dir is not None:
        if not config.scrcpy_dir.is_dir():
            raise FileNotFoundError(f"Scrcpy directory not found at: {config.scrcpy_dir}")
        return config.scrcpy_dir
    return get_scrcpy_path(config).parent


def verify_bundled_resources(config: AppConfig) -> bool:
    """Raise FileNotFoundError unless both tools can be located"""
    get_adb_path(config)
    get_scrcpy_path(config)
    return True
