"""
Scrcpy Deck - ADB Bridge

This module handles communication with the `adb` executable. Every call is a
blocking fork+exec+wait, so the async methods hand the work to a bounded
executor and never run it on the event loop.

Parsing of `adb devices -l` and `ip route` output lives here as plain
functions so it can be tested without a device.
"""

import asyncio
import logging
import subprocess
from concurrent.futures import Executor
from pathlib import Path
from typing import Callable, List, Optional, Union

from device_models import AdbDevice
from utils.error_handler import BridgeExecError, DeviceIpNotFoundError

logger = logging.getLogger(__name__)

# Keeps adb from flashing a console window on Windows (0 elsewhere)
CREATE_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0)

DEVICE_INFO_KEYS = ("product", "model", "device", "transport_id")


def parse_devices(output: str) -> List[AdbDevice]:
    """
    Parse the output of `adb devices -l`.

    The first line is the "List of devices attached" header. Every other
    non-blank line with at least two whitespace-separated tokens is a device:
    serial, state, then optional key:value pairs.
    """
    devices = []

    for line in output.splitlines()[1:]:
        line = line.strip()
        if not line:
            continue

        # Format: "R3CN70ABCDE  device product:a52q model:SM_A525F device:a52q transport_id:3"
        parts = line.split()
        if len(parts) < 2:
            continue

        info = {}
        for part in parts[2:]:
            key, sep, value = part.partition(":")
            if sep and key in DEVICE_INFO_KEYS:
                info[key] = value

        devices.append(AdbDevice(serial=parts[0], state=parts[1], **info))

    return devices


def extract_src_ip(line: str) -> Optional[str]:
    """Return the address after `src ` in an ip route line, if any"""
    src_pos = line.find("src ")
    if src_pos == -1:
        return None

    ip_part = line[src_pos + 4:]
    ip_end = ip_part.find(" ")
    ip = ip_part[:ip_end] if ip_end != -1 else ip_part
    return ip.strip() or None


def route_interface(line: str) -> Optional[str]:
    """Return the interface name after `dev ` in an ip route line, if any"""
    tokens = line.split()
    for i, token in enumerate(tokens[:-1]):
        if token == "dev":
            return tokens[i + 1]
    return None


def parse_ip_route(output: str) -> str:
    """
    Find the device's WiFi address in `ip route` output.

    Looks for lines like:
        192.168.1.0/24 dev wlan0 proto kernel scope link src 192.168.1.100
    Interface names vary (wlan0, wlan1, wifi0...). A WiFi-tagged line wins;
    otherwise the first non-loopback, non-link-local src address on a
    non-ethernet interface is used. Wired (eth*) routes never count as WiFi.

    Raises:
        DeviceIpNotFoundError: No usable address in the output
    """
    lines = output.splitlines()

    for line in lines:
        line_lower = line.lower()
        if "wlan" in line_lower or "wifi" in line_lower:
            ip = extract_src_ip(line)
            if ip:
                return ip

    for line in lines:
        interface = (route_interface(line) or "").lower()
        if interface.startswith("eth"):
            continue
        ip = extract_src_ip(line)
        if ip and not ip.startswith("127.") and not ip.startswith("169.254."):
            return ip

    raise DeviceIpNotFoundError()


class ADBBridge:
    """
    Thin async wrapper around the `adb` command-line tool.

    Handles device listing, TCP/IP mode switching, connect/disconnect and
    property lookups. Holds no device state of its own.
    """

    def __init__(
        self,
        adb_path: Union[str, Path],
        executor: Optional[Executor] = None,
        timeout: float = 30.0,
        runner: Optional[Callable[..., subprocess.CompletedProcess]] = None,
    ):
        """
        Args:
            adb_path: Validated path to the adb executable
            executor: Bounded pool for blocking calls (event loop default if None)
            timeout: Seconds before a single adb invocation is abandoned
            runner: subprocess.run-compatible callable (swapped out in tests)
        """
        self.adb_path = str(adb_path)
        self._executor = executor
        self._timeout = timeout
        self._runner = runner or subprocess.run
        logger.info(f"[ADBBridge] Initialized with {self.adb_path}")

    def execute(self, args: List[str]) -> str:
        """
        Run adb with the given arguments and return stdout.

        Blocking. Use the async methods from request handlers.

        Raises:
            BridgeExecError: adb could not be started, timed out, or exited non-zero
        """
        cmd = [self.adb_path, *args]
        logger.debug(f"[ADBBridge] Executing: {' '.join(cmd)}")

        try:
            result = self._runner(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self._timeout,
                creationflags=CREATE_NO_WINDOW,
            )
        except subprocess.TimeoutExpired:
            raise BridgeExecError(
                f"ADB command timed out after {self._timeout:g}s: {' '.join(args)}", args
            )
        except OSError as e:
            raise BridgeExecError(f"Failed to execute ADB command: {e}", args) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise BridgeExecError(f"ADB command failed: {stderr}", args)

        return result.stdout or ""

    async def _run(self, args: List[str]) -> str:
        """Run execute() on the blocking executor"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.execute, args)

    @staticmethod
    def _target(device_serial: Optional[str], args: List[str]) -> List[str]:
        if device_serial:
            return ["-s", device_serial, *args]
        return list(args)

    # === Server ===

    async def version(self) -> str:
        """Get the ADB version banner"""
        return (await self._run(["version"])).strip()

    async def start_server(self) -> None:
        """Start the ADB server"""
        await self._run(["start-server"])

    async def kill_server(self) -> None:
        """Kill the ADB server"""
        await self._run(["kill-server"])

    async def check_availability(self) -> bool:
        """Check if ADB is accessible and working"""
        try:
            await self.version()
            return True
        except BridgeExecError as e:
            raise BridgeExecError(f"ADB not available: {e.message}") from e

    # === Devices ===

    async def get_devices(self) -> List[AdbDevice]:
        """List all devices known to the ADB server"""
        output = await self._run(["devices", "-l"])
        devices = parse_devices(output)
        logger.debug(f"[ADBBridge] adb devices reported {len(devices)} device(s)")
        return devices

    async def connect(self, host: str, port: int = 5555) -> str:
        """Run `adb connect host:port` and return the raw response"""
        return await self._run(["connect", f"{host}:{port}"])

    async def disconnect(self, address: str) -> str:
        """Run `adb disconnect <address>` and return the raw response"""
        return await self._run(["disconnect", address])

    async def disconnect_all(self) -> str:
        """Disconnect every TCP/IP device"""
        return await self._run(["disconnect"])

    async def tcpip(self, device_serial: Optional[str], port: int = 5555) -> str:
        """Restart adbd on the device in TCP/IP mode (requires USB connection first)"""
        return await self._run(self._target(device_serial, ["tcpip", str(port)]))

    # === Shell ===

    async def shell(self, device_serial: Optional[str], command: str) -> str:
        """Execute a shell command on a device"""
        return await self._run(self._target(device_serial, ["shell", command]))

    async def get_route_table(self, device_serial: Optional[str]) -> str:
        """Raw `ip route` output from the device"""
        return await self._run(self._target(device_serial, ["shell", "ip", "route"]))

    async def get_device_ip(self, device_serial: Optional[str]) -> str:
        """Get the device's WiFi address from its route table"""
        return parse_ip_route(await self.get_route_table(device_serial))

    async def get_prop(self, device_serial: Optional[str], prop: str) -> str:
        """Read a system property (trimmed)"""
        return (await self.shell(device_serial, f"getprop {prop}")).strip()

    async def get_model(self, device_serial: Optional[str]) -> str:
        return await self.get_prop(device_serial, "ro.product.model")

    async def get_manufacturer(self, device_serial: Optional[str]) -> str:
        return await self.get_prop(device_serial, "ro.product.manufacturer")

    async def get_android_version(self, device_serial: Optional[str]) -> str:
        return await self.get_prop(device_serial, "ro.build.version.release")
