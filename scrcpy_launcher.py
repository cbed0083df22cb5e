"""
Scrcpy Deck - Scrcpy Launcher

Builds the scrcpy command line and starts the process. Mirroring itself is
entirely scrcpy's job; this module only launches it.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from device_models import ScrcpyOptions
from utils.error_handler import ProcessSpawnError

logger = logging.getLogger(__name__)

CREATE_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0)


def build_scrcpy_args(device_id: Optional[str], options: ScrcpyOptions) -> List[str]:
    """Command-line arguments (without the executable) for one mirroring session"""
    args = []

    if device_id:
        args += ["-s", device_id]

    if options.max_size is not None:
        args += ["--max-size", str(options.max_size)]
    if options.bit_rate is not None:
        args += ["--video-bit-rate", str(options.bit_rate)]
    if options.max_fps is not None:
        args += ["--max-fps", str(options.max_fps)]

    if options.always_on_top:
        args.append("--always-on-top")
    if options.stay_awake:
        args.append("--stay-awake")
    if options.turn_screen_off:
        args.append("--turn-screen-off")

    return args


def build_env(path_prefix: Optional[Union[str, Path]], base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Copy of the environment with path_prefix put first on PATH, so scrcpy finds our adb"""
    env = dict(os.environ if base is None else base)
    if path_prefix:
        current = env.get("PATH", "")
        env["PATH"] = f"{path_prefix}{os.pathsep}{current}" if current else str(path_prefix)
    return env


class ScrcpyLauncher:
    """Starts scrcpy processes from a fixed executable and working directory"""

    def __init__(
        self,
        scrcpy_path: Union[str, Path],
        scrcpy_dir: Union[str, Path],
        adb_dir: Optional[Union[str, Path]] = None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        """
        Args:
            scrcpy_path: Validated path to the scrcpy executable
            scrcpy_dir: Working directory (scrcpy loads its shared libraries from here)
            adb_dir: Directory prepended to PATH so scrcpy uses the same adb
        """
        self.scrcpy_path = str(scrcpy_path)
        self.scrcpy_dir = str(scrcpy_dir)
        self.adb_dir = str(adb_dir) if adb_dir else None
        self._popen = popen
        self._runner = runner

    def spawn(self, device_id: Optional[str], options: ScrcpyOptions):
        """
        Start scrcpy for a device. Blocking (fork+exec).

        Raises:
            ProcessSpawnError: scrcpy could not be started
        """
        cmd = [self.scrcpy_path, *build_scrcpy_args(device_id, options)]
        logger.info(f"[ScrcpyLauncher] Starting: {' '.join(cmd)}")

        try:
            process = self._popen(
                cmd,
                cwd=self.scrcpy_dir,
                env=build_env(self.adb_dir),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                creationflags=CREATE_NO_WINDOW,
            )
        except OSError as e:
            raise ProcessSpawnError(f"Failed to start scrcpy: {e}", device_id) from e

        logger.info(f"[ScrcpyLauncher] scrcpy running for {device_id} (pid {process.pid})")
        return process

    def get_version(self) -> str:
        """`scrcpy --version`, trimmed. Blocking."""
        try:
            result = self._runner(
                [self.scrcpy_path, "--version"],
                cwd=self.scrcpy_dir,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=10,
                creationflags=CREATE_NO_WINDOW,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ProcessSpawnError(f"Failed to execute scrcpy: {e}") from e

        if result.returncode != 0:
            raise ProcessSpawnError(f"Scrcpy error: {(result.stderr or '').strip()}")
        return (result.stdout or "").strip()

    def check_available(self) -> bool:
        return Path(self.scrcpy_path).is_file()
