"""
API tests for the device, mirroring and settings routes.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import routes
from config import AppConfig
from conftest import FakeProcess, make_bridge
from device_catalog import DeviceCatalog
from mirror_manager import MirrorManager
from routes import RouteDependencies, devices, health, mirroring, settings
from saved_device_store import SavedDeviceStore
from scrcpy_launcher import ScrcpyLauncher
from session_registry import SessionRegistry
from settings_manager import SettingsManager
from wireless_reconnect import WirelessReconnector

LISTING = (
    "List of devices attached\n"
    "R3CN70ABCDE\tdevice product:a52q model:SM_A525F device:a52q transport_id:1\n"
    "198.51.100.7:5555\tunauthorized transport_id:2\n"
)


PROPS = {
    "ro.product.model": "SM-A525F",
    "ro.product.manufacturer": "samsung",
    "ro.build.version.release": "14",
}


ROUTES = "192.168.1.0/24 dev wlan0 proto kernel scope link src 192.168.1.100\n"


def adb_handler(args):
    if args[:1] == ["devices"]:
        return LISTING
    if args[:1] == ["-s"] and args[2:3] == ["tcpip"]:
        if args[1] == "GONE":
            return (1, "", f"error: device '{args[1]}' not found\n")
        return "restarting in TCP mode port: 5555\n"
    if args[:1] == ["-s"] and args[2:] == ["shell", "ip", "route"]:
        return ROUTES
    if args[:1] == ["-s"] and args[2:3] == ["shell"]:
        return PROPS.get(args[3].replace("getprop ", ""), "") + "\n"
    if args[:1] == ["connect"]:
        if args[1].startswith("10.0.0.99"):
            return f"cannot connect to {args[1]}: Connection refused\n"
        return f"connected to {args[1]}\n"
    if args == ["disconnect"]:
        return "disconnected everything\n"
    if args[:1] == ["disconnect"]:
        return f"disconnected {args[1]}\n"
    if args[:1] == ["version"]:
        return "Android Debug Bridge version 1.0.41\n"
    return ""


async def no_sleep(seconds):
    return None


@pytest.fixture
def client(tmp_path):
    bridge, runner = make_bridge(adb_handler)
    catalog = DeviceCatalog(bridge)
    popen_calls = []

    def popen(cmd, **kwargs):
        popen_calls.append(cmd)
        return FakeProcess(pid=900 + len(popen_calls))

    launcher = ScrcpyLauncher(tmp_path / "scrcpy", tmp_path, popen=popen)
    config = AppConfig(data_dir=tmp_path)

    routes.set_deps(RouteDependencies(
        config=config,
        adb_bridge=bridge,
        device_catalog=catalog,
        reconnector=WirelessReconnector(bridge, catalog, sleep=no_sleep),
        launcher=launcher,
        mirror_manager=MirrorManager(launcher, SessionRegistry()),
        settings_manager=SettingsManager(config.settings_file),
        saved_devices=SavedDeviceStore(config.saved_devices_file),
    ))

    app = FastAPI()
    for module in (health, devices, mirroring, settings):
        app.include_router(module.router)

    with TestClient(app) as test_client:
        test_client.popen_calls = popen_calls
        test_client.adb_calls = runner.calls
        yield test_client

    routes.set_deps(None)


class TestDeviceRoutes:
    def test_list_devices(self, client):
        response = client.get("/api/devices")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data[0]["id"] == "R3CN70ABCDE"
        assert data[0]["connection_type"] == "USB"
        assert data[0]["name"] == "SM A525F"
        assert data[1]["status"] == "Unauthorized"
        assert data[1]["ip_address"] == "198.51.100.7"

    def test_connect(self, client):
        response = client.post("/api/devices/connect", json={"ip": "10.0.0.2"})
        assert response.status_code == 200
        assert response.json()["data"]["device_id"] == "10.0.0.2:5555"

    def test_connect_unreachable(self, client):
        response = client.post("/api/devices/connect", json={"ip": "10.0.0.99", "port": 5555})
        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "DEVICE_UNREACHABLE"
        assert "same network" in error["message"]

    def test_disconnect(self, client):
        response = client.post("/api/devices/disconnect", json={"device_id": "10.0.0.2:5555"})
        assert response.status_code == 200
        assert response.json()["data"]["disconnected"] is True

    def test_device_info(self, client):
        response = client.get("/api/devices/R3CN70ABCDE/info")
        assert response.status_code == 200
        assert response.json()["data"] == {
            "device_id": "R3CN70ABCDE",
            "model": "SM-A525F",
            "manufacturer": "samsung",
            "android_version": "14",
        }

    def test_device_info_unknown(self, client):
        response = client.get("/api/devices/NOPE/info")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "DEVICE_NOT_FOUND"

    def test_disconnect_all(self, client):
        response = client.post("/api/devices/disconnect-all")
        assert response.status_code == 200
        assert ["disconnect"] in client.adb_calls

    def test_restart_server(self, client):
        assert client.post("/api/devices/restart-server").status_code == 200
        assert client.adb_calls[-2:] == [["kill-server"], ["start-server"]]

    def test_wireless_mode(self, client):
        response = client.post("/api/devices/wireless", json={"device_id": "R3CN70ABCDE"})
        assert response.status_code == 200
        assert response.json()["data"] == {"ip_address": "192.168.1.100", "port": 5555}
        assert ["-s", "R3CN70ABCDE", "tcpip", "5555"] in client.adb_calls
        assert ["connect", "192.168.1.100:5555"] not in client.adb_calls

    def test_wireless_mode_and_connect(self, client):
        response = client.post("/api/devices/wireless", json={"device_id": "R3CN70ABCDE", "connect": True})
        assert response.status_code == 200
        assert response.json()["data"]["device_id"] == "192.168.1.100:5555"

    def test_wireless_mode_unknown_device(self, client):
        response = client.post("/api/devices/wireless", json={"device_id": "GONE"})
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "WIRELESS_SETUP_ERROR"
        assert error["details"]["reason"] == "device_unknown"

    def test_unexpected_error_gets_error_envelope(self, client, monkeypatch):
        def disk_full(device):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(routes.get_deps().saved_devices, "add_or_replace", disk_full)
        device = client.get("/api/devices").json()["data"][0]

        response = client.post("/api/devices/saved", json=device)
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"]["type"] == "OSError"

    def test_saved_devices(self, client):
        device = client.get("/api/devices").json()["data"][0]
        assert client.post("/api/devices/saved", json=device).status_code == 200
        assert [d["id"] for d in client.get("/api/devices/saved").json()["data"]] == ["R3CN70ABCDE"]
        assert client.delete("/api/devices/saved/R3CN70ABCDE").status_code == 200
        assert client.delete("/api/devices/saved/R3CN70ABCDE").status_code == 404


class TestMirroringRoutes:
    def test_start_list_stop(self, client):
        response = client.post("/api/mirror/start", json={"device_id": "R3CN70ABCDE"})
        assert response.status_code == 200
        session_id = response.json()["data"]["session_id"]
        assert session_id == "session_R3CN70ABCDE_901"

        sessions = client.get("/api/mirror/sessions").json()["data"]
        assert [s["session_id"] for s in sessions] == [session_id]

        assert client.post("/api/mirror/stop", json={"session_id": session_id}).status_code == 200
        assert client.get("/api/mirror/sessions").json()["data"] == []

    def test_start_uses_saved_settings(self, client):
        client.put("/api/settings", json={"resolution": "1024", "bitrate": 2000000, "maxFps": 30,
                                           "alwaysOnTop": True, "stayAwake": False, "turnScreenOff": False})
        client.post("/api/mirror/start", json={"device_id": "ABC"})

        cmd = client.popen_calls[-1]
        assert cmd[cmd.index("--max-size") + 1] == "1024"
        assert cmd[cmd.index("--video-bit-rate") + 1] == "2000000"
        assert "--always-on-top" in cmd
        assert "--stay-awake" not in cmd

    def test_stop_unknown(self, client):
        response = client.post("/api/mirror/stop", json={"session_id": "session_x_1"})
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SESSION_NOT_FOUND"


class TestSettingsRoutes:
    def test_defaults(self, client):
        data = client.get("/api/settings").json()["data"]
        assert data == {
            "resolution": "default",
            "bitrate": 8000000,
            "maxFps": 60,
            "alwaysOnTop": False,
            "stayAwake": True,
            "turnScreenOff": False,
        }

    def test_rejects_invalid_settings(self, client):
        for bad in ({"resolution": "-5"}, {"resolution": "4k"}, {"bitrate": -1}, {"maxFps": -1}):
            assert client.put("/api/settings", json=bad).status_code == 422
        assert client.get("/api/settings").json()["data"]["resolution"] == "default"

        response = client.post("/api/mirror/start", json={"device_id": "R3CN70ABCDE"})
        assert response.status_code == 200
        cmd = client.popen_calls[-1]
        assert cmd[cmd.index("--max-size") + 1] == "1920"


class TestHealth:
    def test_health(self, client):
        data = client.get("/api/health").json()
        assert data["status"] == "ok"
        assert data["adb_status"] == "ok"
        assert data["active_sessions"] == 0
