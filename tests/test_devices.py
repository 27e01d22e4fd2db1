"""Tests for device enumeration in both output formats."""
from __future__ import annotations

import pytest

from smartmon_tap.capability import FormatCapability
from smartmon_tap.devices import Device, DeviceEnumerator, parse_scan_json, parse_scan_text
from smartmon_tap.errors import MalformedOutput, MissingDevicesKey
from smartctl_samples import SCAN_JSON, SCAN_JSON_NO_DEVICES_KEY, SCAN_TEXT, failed, ok

LEGACY = FormatCapability(supports_structured=False, version="6.6")
STRUCTURED = FormatCapability(supports_structured=True, version="7.2")

SCAN_JSON_MEGARAID = """{
  "devices": [
    {"name": "/dev/bus/0", "info_name": "/dev/bus/0 [megaraid_disk_00]", "type": "megaraid,0", "protocol": "SCSI"},
    {"name": "/dev/bus/0", "info_name": "/dev/bus/0 [megaraid_disk_01]", "type": "megaraid,1", "protocol": "SCSI"}
  ]
}
"""

SCAN_JSON_MEGARAID_REPEATED = """{
  "devices": [
    {"name": "/dev/bus/0", "type": "megaraid,0"},
    {"name": "/dev/bus/0", "type": "megaraid,1"},
    {"name": "/dev/bus/0", "type": "megaraid,0"}
  ]
}
"""


class TestLegacyScan:
    def test_one_device_per_line(self):
        devices = parse_scan_text(SCAN_TEXT)

        assert devices == [
            Device(name="/dev/sda", type="sat", display_name="/dev/sda [SAT]", protocol="ATA device"),
            Device(name="/dev/nvme0", type="nvme", display_name="/dev/nvme0", protocol="NVMe device"),
        ]

    def test_blank_lines_are_ignored(self):
        devices = parse_scan_text("\n" + SCAN_TEXT + "\n   \n")
        assert len(devices) == 2

    def test_unrecognized_line_fails_whole_scan(self):
        output = SCAN_TEXT + "# scan of /dev/sdc failed: permission denied\n"

        with pytest.raises(MalformedOutput) as exc_info:
            parse_scan_text(output)

        assert "/dev/sdc" in str(exc_info.value)

    def test_enumerate_uses_plain_scan(self, fake_runner):
        fake_runner.add(["--scan"], ok(SCAN_TEXT))

        devices = DeviceEnumerator(fake_runner).enumerate(LEGACY)

        assert {d.name for d in devices} == {"/dev/sda", "/dev/nvme0"}
        assert fake_runner.calls == [("--scan",)]

    def test_enumerate_returns_nothing_on_malformed_line(self, fake_runner):
        fake_runner.add(["--scan"], ok("/dev/sda garbage\n"))

        with pytest.raises(MalformedOutput):
            DeviceEnumerator(fake_runner).enumerate(LEGACY)

    def test_duplicate_names_are_dropped(self, fake_runner):
        fake_runner.add(["--scan"], ok(SCAN_TEXT + SCAN_TEXT))

        devices = DeviceEnumerator(fake_runner).enumerate(LEGACY)

        assert len(devices) == 2


class TestStructuredScan:
    def test_devices_from_json(self):
        devices = parse_scan_json(SCAN_JSON)

        assert Device(
            name="/dev/sda", type="sat", display_name="/dev/sda [SAT]", protocol="ATA"
        ) in devices
        assert len(devices) == 2

    def test_missing_devices_key(self):
        with pytest.raises(MissingDevicesKey):
            parse_scan_json(SCAN_JSON_NO_DEVICES_KEY)

    def test_missing_devices_key_is_malformed_output(self):
        with pytest.raises(MalformedOutput):
            parse_scan_json(SCAN_JSON_NO_DEVICES_KEY)

    def test_invalid_json(self):
        with pytest.raises(MalformedOutput):
            parse_scan_json('{"devices": [')

    def test_entry_without_type(self):
        with pytest.raises(MalformedOutput):
            parse_scan_json('{"devices": [{"name": "/dev/sda"}]}')

    def test_megaraid_disks_behind_one_path_are_kept(self, fake_runner):
        fake_runner.add(["-j", "--scan"], ok(SCAN_JSON_MEGARAID))

        devices = DeviceEnumerator(fake_runner).enumerate(STRUCTURED)

        assert [(d.name, d.type) for d in devices] == [
            ("/dev/bus/0", "megaraid,0"),
            ("/dev/bus/0", "megaraid,1"),
        ]

    def test_repeated_name_and_type_is_dropped(self, fake_runner, caplog):
        fake_runner.add(["-j", "--scan"], ok(SCAN_JSON_MEGARAID_REPEATED))

        with caplog.at_level("WARNING"):
            devices = DeviceEnumerator(fake_runner).enumerate(STRUCTURED)

        assert len(devices) == 2
        assert "megaraid,0" in caplog.text

    def test_enumerate_uses_json_flag(self, fake_runner):
        fake_runner.add(["-j", "--scan"], ok(SCAN_JSON))

        devices = DeviceEnumerator(fake_runner).enumerate(STRUCTURED)

        assert {d.type for d in devices} == {"sat", "nvme"}
        assert fake_runner.calls == [("-j", "--scan")]


class TestEmptyAndFailedScans:
    def test_empty_legacy_scan_is_not_an_error(self, fake_runner, caplog):
        fake_runner.add(["--scan"], ok(""))

        with caplog.at_level("WARNING"):
            devices = DeviceEnumerator(fake_runner).enumerate(LEGACY)

        assert devices == []
        assert "no devices" in caplog.text

    def test_empty_json_scan_is_not_an_error(self, fake_runner):
        fake_runner.add(["-j", "--scan"], ok('{"devices": []}'))

        assert DeviceEnumerator(fake_runner).enumerate(STRUCTURED) == []

    def test_failed_scan_command(self, fake_runner):
        fake_runner.add(["--scan"], failed(1))

        with pytest.raises(MalformedOutput):
            DeviceEnumerator(fake_runner).enumerate(LEGACY)
