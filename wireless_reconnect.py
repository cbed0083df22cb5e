"""
Scrcpy Deck - Wireless Reconnection

Moves a USB-attached device to wireless ADB. After `adb tcpip` the device
drops off the bus and comes back, sometimes under a different serial, so the
device is re-identified from secondary signals (serial, model, or being the only
USB device left) over a fixed number of probes before its WiFi address is read.

The re-identification is a heuristic. With several USB devices attached and
none matching by serial or model, no device is picked and the probe budget
runs out.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from adb_bridge import ADBBridge
from device_catalog import DeviceCatalog
from device_models import DEFAULT_ADB_PORT, ConnectionType, Device
from utils.error_handler import (
    BridgeExecError,
    ConnectTimeoutError,
    DeviceIpNotFoundError,
    DeviceUnreachableError,
    UnknownResponseError,
    WirelessSetupError,
    message_with_hint,
)

logger = logging.getLogger(__name__)

REIDENTIFY_ATTEMPTS = 5
FIRST_PROBE_DELAY_MS = 1500  # First USB->TCP flip re-enumerates slowly
PROBE_DELAY_MS = 500


def is_unknown_device_error(message: str) -> bool:
    """adb answers `device 'X' not found` when the serial is stale"""
    return "not found" in message.lower()


def classify_connect_output(address: str, output: str) -> str:
    """
    Map `adb connect` output onto a result.

    adb exits 0 for most failed connects, so the text is all there is.

    Returns:
        The connected address

    Raises:
        DeviceUnreachableError: refused / unable to connect
        ConnectTimeoutError: connect timed out
        UnknownResponseError: anything else (raw text kept)
    """
    text = output.strip()
    lowered = text.lower()

    # "already connected to ..." also contains "connected"
    if "connected" in lowered:
        return address
    if "unable to connect" in lowered or "connection refused" in lowered:
        raise DeviceUnreachableError(address, text)
    if "timeout" in lowered:
        raise ConnectTimeoutError(address, text)
    raise UnknownResponseError(text)


def _normalize_model(model: str) -> str:
    return model.replace("_", " ").strip()


def match_reappeared_device(devices: List[Device], device_id: str, snapshot_model: str) -> Optional[Device]:
    """
    Pick the USB device most likely to be the one that was switched.

    A device matches when its serial is unchanged, its model equals the model
    read before the switch, or it is the only USB device present.
    """
    usb_devices = [d for d in devices if d.connection_type is ConnectionType.USB]
    wanted_model = _normalize_model(snapshot_model)
    only_one = len(usb_devices) == 1

    for device in usb_devices:
        if device.id == device_id:
            return device
        if wanted_model and _normalize_model(device.model) == wanted_model:
            return device
        if only_one:
            return device
    return None


class WirelessReconnector:
    """
    Drives the USB -> wireless transition and `adb connect`.

    Cancelling a running enable_wireless_mode() stops the search only; the
    tcpip switch already sent to the device is not undone.
    """

    def __init__(
        self,
        bridge: ADBBridge,
        catalog: DeviceCatalog,
        attempts: int = REIDENTIFY_ATTEMPTS,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        self.bridge = bridge
        self.catalog = catalog
        self.attempts = attempts
        self._sleep = sleep
        self._pending: Set[asyncio.Task] = set()

    async def _snapshot_model(self, device_id: str) -> str:
        try:
            return await self.bridge.get_model(device_id)
        except BridgeExecError as e:
            logger.warning(f"[WirelessReconnector] Could not read model of {device_id}: {e}")
            return ""

    async def _probe(self, device_id: str, snapshot_model: str, attempt: int) -> Optional[str]:
        try:
            devices = await self.catalog.enumerate()
        except BridgeExecError as e:
            logger.debug(f"[WirelessReconnector] Probe {attempt + 1}: device list failed: {e}")
            return None

        device = match_reappeared_device(devices, device_id, snapshot_model)
        if device is None:
            logger.debug(f"[WirelessReconnector] Probe {attempt + 1}: {device_id} not back yet")
            return None

        try:
            ip = await self.bridge.get_device_ip(device.id)
        except (BridgeExecError, DeviceIpNotFoundError) as e:
            logger.debug(f"[WirelessReconnector] Probe {attempt + 1}: no IP from {device.id}: {e}")
            return None

        logger.info(f"[WirelessReconnector] Re-identified {device_id} as {device.id}, IP {ip}")
        return ip

    async def enable_wireless_mode(self, device_id: str) -> str:
        """
        Switch a USB device to TCP/IP mode and return its WiFi address.

        Raises:
            WirelessSetupError: device unknown to adb, or address not found in time
            BridgeExecError: the tcpip switch failed for another reason
        """
        snapshot_model = await self._snapshot_model(device_id)

        logger.info(f"[WirelessReconnector] Enabling TCP/IP on {device_id} (port {DEFAULT_ADB_PORT})")
        try:
            await self.bridge.tcpip(device_id, DEFAULT_ADB_PORT)
        except BridgeExecError as e:
            if is_unknown_device_error(e.message):
                raise WirelessSetupError(
                    message_with_hint("device_unknown"), device_id, reason="device_unknown"
                ) from e
            raise

        try:
            for attempt in range(self.attempts):
                delay_ms = FIRST_PROBE_DELAY_MS if attempt == 0 else PROBE_DELAY_MS
                await self._sleep(delay_ms / 1000)

                ip = await self._probe(device_id, snapshot_model, attempt)
                if ip:
                    return ip
        except asyncio.CancelledError:
            logger.info(f"[WirelessReconnector] Re-identification of {device_id} cancelled")
            raise

        logger.warning(f"[WirelessReconnector] {device_id}: no IP after {self.attempts} probes")
        raise WirelessSetupError(
            message_with_hint("reidentify_exhausted"), device_id, reason="exhausted"
        )

    async def run_enable_wireless_mode(self, device_id: str) -> str:
        """enable_wireless_mode() as a tracked task that cancel_pending() can abort"""
        task = asyncio.create_task(self.enable_wireless_mode(device_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return await task

    async def cancel_pending(self) -> None:
        """Abort every running re-identification search"""
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"[WirelessReconnector] Cancelled {len(tasks)} pending wireless setup(s)")

    async def connect(self, host: str, port: int = DEFAULT_ADB_PORT) -> str:
        """Connect to a device over TCP/IP, returning its `host:port` id"""
        address = f"{host}:{port}"
        logger.info(f"[WirelessReconnector] Connecting to {address}")
        output = await self.bridge.connect(host, port)
        result = classify_connect_output(address, output)
        logger.info(f"[WirelessReconnector] Connected to {address}")
        return result

    async def disconnect(self, address: str) -> str:
        """Disconnect a TCP/IP device and return adb's response"""
        logger.info(f"[WirelessReconnector] Disconnecting {address}")
        return (await self.bridge.disconnect(address)).strip()
