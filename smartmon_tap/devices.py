from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import re
from typing import Any

from smartmon_tap.capability import FormatCapability
from smartmon_tap.errors import MalformedOutput, MissingDevicesKey
from smartmon_tap.runner import CommandRunner

SCAN_ARGS: tuple[str, ...] = ("--scan",)
JSON_OPTION = "-j"

# /dev/sda -d sat # /dev/sda [SAT], ATA device
_SCAN_LINE_RE = re.compile(r"^(/.+) -d (\w+) # (.+), (.+)")


@dataclass(frozen=True)
class Device:
    name: str
    type: str
    display_name: str = ""
    protocol: str = ""

    def device_args(self) -> tuple[str, ...]:
        return ("-d", self.type, self.name)


def parse_scan_text(output: str) -> list[Device]:
    """Parse ``smartctl --scan``; one bad line invalidates the whole scan."""
    devices: list[Device] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        match = _SCAN_LINE_RE.match(line)
        if match is None:
            raise MalformedOutput("Unable to parse device line", line)
        name, dev_type, display_name, protocol = match.groups()
        devices.append(
            Device(name=name, type=dev_type, display_name=display_name, protocol=protocol)
        )
    return devices


def _device_from_json(entry: Any) -> Device:
    if not isinstance(entry, dict):
        raise MalformedOutput("Unexpected device entry in JSON scan", repr(entry))
    name = entry.get("name")
    dev_type = entry.get("type")
    if not isinstance(name, str) or not isinstance(dev_type, str):
        raise MalformedOutput("Device entry lacks name or type", json.dumps(entry))
    return Device(
        name=name,
        type=dev_type,
        display_name=str(entry.get("info_name", "")),
        protocol=str(entry.get("protocol", "")),
    )


def parse_scan_json(output: str) -> list[Device]:
    try:
        data = json.loads(output)
    except json.JSONDecodeError as exc:
        raise MalformedOutput("Unable to parse smartctl JSON scan", str(exc)) from exc
    if not isinstance(data, dict):
        raise MalformedOutput("smartctl JSON scan is not an object")
    if "devices" not in data:
        raise MissingDevicesKey("unable to find 'devices' entry in JSON output")
    entries = data["devices"]
    if not isinstance(entries, list):
        raise MalformedOutput("'devices' entry is not a list", repr(entries))
    return [_device_from_json(entry) for entry in entries]


class DeviceEnumerator:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner
        self.logger = logging.getLogger(self.__class__.__name__)

    def enumerate(self, capability: FormatCapability) -> list[Device]:
        if capability.supports_structured:
            args = (JSON_OPTION, *SCAN_ARGS)
            parse = parse_scan_json
        else:
            args = SCAN_ARGS
            parse = parse_scan_text

        result = self.runner.run(args)
        if not result.ok:
            raise MalformedOutput("Unable to scan smart devices", result.error or "")

        devices: list[Device] = []
        seen: set[tuple[str, str]] = set()
        for device in parse(result.output):
            # Controllers such as megaraid expose several disks under one name
            key = (device.name, device.type)
            if key in seen:
                self.logger.warning(
                    "Duplicate device %s (%s) in scan output, skipping.", device.name, device.type
                )
                continue
            seen.add(key)
            devices.append(device)

        if not devices:
            self.logger.warning("smartctl scan found no devices.")
        else:
            self.logger.debug("Found %d devices: %s", len(devices), [d.name for d in devices])
        return devices
