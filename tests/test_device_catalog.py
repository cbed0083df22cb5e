"""
Unit tests for device normalization.
"""

import pytest

from device_catalog import (
    UNKNOWN_DEVICE,
    build_device,
    connection_type_for,
    display_name_for,
    ip_address_for,
    status_for,
)
from device_models import AdbDevice, ConnectionType, DeviceStatus

HEADER = "List of devices attached\n"


def listing(*rows):
    return HEADER + "\n".join(rows) + "\n"


class TestClassification:
    def test_wireless_serial(self):
        assert connection_type_for("198.51.100.7:5555") is ConnectionType.WIRELESS
        assert ip_address_for("198.51.100.7:5555") == "198.51.100.7"

    def test_usb_serial(self):
        assert connection_type_for("R3CN70ABCDE") is ConnectionType.USB
        assert ip_address_for("R3CN70ABCDE") is None

    @pytest.mark.parametrize(
        "state,status",
        [
            ("device", DeviceStatus.CONNECTED),
            ("unauthorized", DeviceStatus.UNAUTHORIZED),
            ("offline", DeviceStatus.OFFLINE),
            ("recovery", DeviceStatus.DISCONNECTED),
            ("", DeviceStatus.DISCONNECTED),
        ],
    )
    def test_status(self, state, status):
        assert status_for(state) is status

    def test_display_name(self):
        assert display_name_for(AdbDevice(serial="A", state="device", model="Pixel_6", device="oriole")) == "Pixel 6"
        assert display_name_for(AdbDevice(serial="A", state="device", device="galaxy_a52")) == "galaxy a52"
        assert display_name_for(AdbDevice(serial="A", state="offline")) == UNKNOWN_DEVICE

    def test_build_device(self):
        record = AdbDevice(serial="10.0.0.5:5555", state="device", product="p", model="SM_A525F", device="a52q")
        device = build_device(record, "SM_A525F")
        assert device.id == "10.0.0.5:5555"
        assert device.name == "SM A525F"
        assert device.connection_type is ConnectionType.WIRELESS
        assert device.status is DeviceStatus.CONNECTED
        assert device.ip_address == "10.0.0.5"
        assert device.device_codename == "a52q"


class TestEnumerate:
    @pytest.mark.asyncio
    async def test_count_matches_device_lines(self, catalog_factory):
        output = listing(
            "R3CN70ABCDE\tdevice product:a52q model:SM_A525F device:a52q transport_id:1",
            "",
            "198.51.100.7:5555\tdevice product:oriole model:Pixel_6 device:oriole transport_id:2",
            "junk",
        )
        catalog, _, _ = catalog_factory(lambda args: output)
        devices = await catalog.enumerate()
        assert [d.id for d in devices] == ["R3CN70ABCDE", "198.51.100.7:5555"]

    @pytest.mark.asyncio
    async def test_idempotent_on_same_output(self, catalog_factory):
        output = listing("ABC\tdevice model:M", "DEF\toffline")
        catalog, _, _ = catalog_factory(lambda args: output)
        assert await catalog.enumerate() == await catalog.enumerate()

    @pytest.mark.asyncio
    async def test_unauthorized_skips_property_lookup(self, catalog_factory):
        catalog, _, runner = catalog_factory(lambda args: listing("SERIAL123\tunauthorized transport_id:1"))
        devices = await catalog.enumerate()
        assert devices[0].status is DeviceStatus.UNAUTHORIZED
        assert devices[0].model == UNKNOWN_DEVICE
        assert runner.count("shell") == 0

    @pytest.mark.asyncio
    async def test_model_falls_back_to_product_then_codename(self, catalog_factory):
        output = listing("AAA\tdevice product:prod_a transport_id:1", "BBB\tdevice device:code_b transport_id:2")
        catalog, _, runner = catalog_factory(lambda args: output)
        devices = await catalog.enumerate()
        assert [d.model for d in devices] == ["prod_a", "code_b"]
        assert runner.count("shell") == 0

    @pytest.mark.asyncio
    async def test_connected_without_info_reads_property_once(self, catalog_factory):
        def handler(args):
            if args[:1] == ["devices"]:
                return listing("AAA\tdevice transport_id:1")
            return "Pixel 7\n"

        catalog, _, runner = catalog_factory(handler)
        devices = await catalog.enumerate()
        assert devices[0].model == "Pixel 7"
        assert runner.count("getprop ro.product.model") == 1

    @pytest.mark.asyncio
    async def test_failed_property_lookup_gives_unknown(self, catalog_factory):
        def handler(args):
            if args[:1] == ["devices"]:
                return listing("AAA\tdevice transport_id:1")
            return 1, "", "error: closed"

        catalog, _, _ = catalog_factory(handler)
        devices = await catalog.enumerate()
        assert devices[0].model == "Unknown"

    @pytest.mark.asyncio
    async def test_find(self, catalog_factory):
        catalog, _, _ = catalog_factory(lambda args: listing("ABC\tdevice model:M"))
        assert (await catalog.find("ABC")).model == "M"
        assert await catalog.find("XYZ") is None
