from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import logging
import re
from typing import Callable

from smartmon_tap.devices import JSON_OPTION, Device
from smartmon_tap.errors import DeviceCommandFailed, DeviceOutputMalformed
from smartmon_tap.runner import CommandResult, CommandRunner

INFO_ARGS: tuple[str, ...] = ("-i", "-H")
ATTRIBUTE_ARGS: tuple[str, ...] = ("-A",)

# Keys of the JSON info document that are not free-form device attributes
RESERVED_JSON_KEYS = frozenset({"json_format_version", "smartctl", "device", "smart_status"})

# Device identity labels; parsed attributes never override them
IDENTITY_LABELS = frozenset({"disk", "type"})

MIN_ATTRIBUTE_FIELDS = 10

_INFO_LINE_RE = re.compile(r"^([^:]+): (.+)$")
_LABEL_NAME_RE = re.compile(r"[ /.\-]")


class OutputFormat(Enum):
    LEGACY = "legacy"
    STRUCTURED = "structured"


class TransportFamily(Enum):
    ATA = "ata"
    NVME = "nvme"
    SCSI = "scsi"
    UNKNOWN = "unknown"


def transport_family(device_type: str) -> TransportFamily:
    dev_type = device_type.lower()
    if dev_type == "ata" or dev_type.startswith(("sat", "usb")):
        return TransportFamily.ATA
    if dev_type.startswith("nvme"):
        return TransportFamily.NVME
    if dev_type.startswith(("scsi", "megaraid", "cciss", "aacraid")):
        return TransportFamily.SCSI
    return TransportFamily.UNKNOWN


def sanitize_label_name(name: str) -> str:
    """Lower-case ``name`` and replace spaces, slashes, dots and hyphens with "_"."""
    return _LABEL_NAME_RE.sub("_", name).lower()


def sanitize_label_value(value: str) -> str:
    return value.replace('"', "").replace("\n", "")


@dataclass
class DeviceInfo:
    available: bool = False
    enabled: bool = False
    healthy: bool = False
    attributes: dict[str, str] = field(default_factory=dict)

    def mark_healthy(self) -> None:
        # A pass/fail verdict implies SMART is present and switched on
        self.available = True
        self.enabled = True
        self.healthy = True


@dataclass(frozen=True)
class AttributeRow:
    id: str
    name: str
    current_value: str
    worst_value: str
    threshold: str
    raw_value: str


@dataclass(frozen=True)
class AtaAttributes:
    rows: tuple[AttributeRow, ...]


@dataclass(frozen=True)
class NvmeAttributes:
    values: dict[str, str]


@dataclass(frozen=True)
class UnsupportedAttributes:
    device_type: str


ParsedAttributes = AtaAttributes | NvmeAttributes | UnsupportedAttributes


def parse_legacy_info(output: str) -> DeviceInfo:
    """Parse the ``key: value`` lines of ``smartctl -i -H``."""
    info = DeviceInfo()
    for line in output.splitlines():
        match = _INFO_LINE_RE.match(line)
        if match is None:
            continue
        name, value = match.groups()
        info.attributes[sanitize_label_name(name)] = value.strip()
        if name.startswith("SMART support is"):
            if value.startswith("Available"):
                info.available = True
            elif value.startswith("Enabled"):
                info.enabled = True
        elif name.startswith("SMART Health Status"):
            if value.startswith("OK"):
                info.mark_healthy()
        elif name.startswith("SMART overall-health self-assessment test result"):
            if value.startswith("PASSED"):
                info.mark_healthy()
    return info


def parse_structured_info(output: str) -> DeviceInfo:
    """Parse the JSON document of ``smartctl -j -i -H``."""
    try:
        data = json.loads(output)
    except json.JSONDecodeError as exc:
        raise DeviceOutputMalformed("Unable to parse smartctl JSON info", str(exc)) from exc
    if not isinstance(data, dict):
        raise DeviceOutputMalformed("smartctl JSON info is not an object")

    info = DeviceInfo()
    for key, value in data.items():
        if key in RESERVED_JSON_KEYS:
            continue
        info.attributes[sanitize_label_name(key)] = sanitize_label_value(
            json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        )
    status = data.get("smart_status")
    if isinstance(status, dict) and status.get("passed") is True:
        info.mark_healthy()
    return info


def _attribute_table_lines(lines: list[str]) -> list[str]:
    # Skip the banner and section headers up to the column header row
    for index, line in enumerate(lines):
        if line.lstrip().startswith("ID#"):
            return lines[index + 1:]
    return lines


def parse_ata_attributes(output: str) -> AtaAttributes:
    """Parse the vendor attribute table of ``smartctl -A`` for ATA devices.

    Lines with fewer than ten fields (banners, blank lines, footers) are
    skipped. Numeric fields stay strings; they are validated per row when
    the row is normalized.
    """
    rows: list[AttributeRow] = []
    for line in _attribute_table_lines(output.splitlines()):
        fields = line.split()
        if len(fields) < MIN_ATTRIBUTE_FIELDS:
            continue
        rows.append(
            AttributeRow(
                id=fields[0],
                name=fields[1],
                current_value=fields[3],
                worst_value=fields[4],
                threshold=fields[5],
                raw_value=fields[9],
            )
        )
    return AtaAttributes(rows=tuple(rows))


def parse_nvme_attributes(output: str) -> NvmeAttributes:
    """Collect ``Key: value`` pairs of the NVMe health log."""
    values: dict[str, str] = {}
    for line in output.splitlines():
        parts = line.split(":")
        if len(parts) != 2:
            continue
        key = sanitize_label_name(parts[0].strip())
        value = parts[1].strip()
        if not key or not value or key in IDENTITY_LABELS:
            continue
        values[key] = value
    return NvmeAttributes(values=values)


@dataclass(frozen=True)
class InfoStrategy:
    options: tuple[str, ...]
    parse: Callable[[str], DeviceInfo]


INFO_STRATEGIES: dict[OutputFormat, InfoStrategy] = {
    OutputFormat.LEGACY: InfoStrategy(options=INFO_ARGS, parse=parse_legacy_info),
    OutputFormat.STRUCTURED: InfoStrategy(
        options=(JSON_OPTION, *INFO_ARGS), parse=parse_structured_info
    ),
}

# smartctl has no JSON attribute table in the supported version range, so
# every format reads the plain -A output.
ATTRIBUTE_STRATEGIES: dict[TransportFamily, Callable[[str], ParsedAttributes] | None] = {
    TransportFamily.ATA: parse_ata_attributes,
    TransportFamily.NVME: parse_nvme_attributes,
    TransportFamily.SCSI: None,
    TransportFamily.UNKNOWN: None,
}


class DeviceParser:
    """Runs the per-device info and attribute commands and parses them."""

    def __init__(self, runner: CommandRunner, output_format: OutputFormat) -> None:
        self.runner = runner
        self.output_format = output_format
        self.info_strategy = INFO_STRATEGIES[output_format]
        self.logger = logging.getLogger(self.__class__.__name__)

    def _run(self, device: Device, options: tuple[str, ...]) -> CommandResult:
        result = self.runner.run((*options, *device.device_args()))
        if not result.usable:
            raise DeviceCommandFailed(
                f"smartctl {' '.join(options)} failed for {device.name}",
                result.error or "",
            )
        if not result.ok:
            self.logger.debug(
                "smartctl reported disk status bits for %s (%s).", device.name, result.error
            )
        return result

    def parse_info(self, device: Device) -> DeviceInfo:
        result = self._run(device, self.info_strategy.options)
        return self.info_strategy.parse(result.output)

    def parse_attributes(self, device: Device) -> ParsedAttributes:
        parse = ATTRIBUTE_STRATEGIES[transport_family(device.type)]
        if parse is None:
            self.logger.debug("No attribute parser for device type %s.", device.type)
            return UnsupportedAttributes(device_type=device.type)
        result = self._run(device, ATTRIBUTE_ARGS)
        return parse(result.output)
